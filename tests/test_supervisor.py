import json
import os
import stat
import time

import pytest

from dc_finder.exceptions import InstanceAlreadyRunning, SupervisorError
from dc_finder.supervisor import BackgroundTask, InstanceLock, TaskSupervisor, pid_alive, read_pid


def _dead_pid():
    # Highest PIDs are practically never in use
    for pid in range(4194303, 4194000, -1):
        if not pid_alive(pid):
            return pid
    pytest.skip("no free PID found")


def _script(tmp_path, name, body):
    path = tmp_path / name
    path.write_text("#!/bin/sh\n" + body + "\n")
    path.chmod(path.stat().st_mode | stat.S_IEXEC)
    return str(path)


# --- instance lock -------------------------------------------------------

def test_lock_acquire_and_release(tmp_path):
    path = tmp_path / "run.lock"
    lock = InstanceLock(str(path))

    lock.acquire()
    assert read_pid(str(path)) == os.getpid()
    lock.release()
    assert not path.exists()
    # Idempotent
    lock.release()


def test_lock_held_by_live_process_raises(tmp_path):
    path = tmp_path / "run.lock"
    path.write_text(f"{os.getppid()}\n")

    with pytest.raises(InstanceAlreadyRunning) as exc_info:
        InstanceLock(str(path)).acquire()

    assert exc_info.value.pid == os.getppid()
    assert path.read_text() == f"{os.getppid()}\n"


@pytest.mark.parametrize("content", ["garbage\n", "", "-5\n", None])
def test_stale_lock_is_reclaimed(tmp_path, content):
    path = tmp_path / "run.lock"
    path.write_text(f"{_dead_pid()}\n" if content is None else content)

    with InstanceLock(str(path)):
        assert read_pid(str(path)) == os.getpid()
    assert not path.exists()


def test_release_leaves_foreign_lock(tmp_path):
    path = tmp_path / "run.lock"
    lock = InstanceLock(str(path))
    lock.acquire()
    path.write_text(f"{os.getppid()}\n")

    lock.release()

    assert path.exists()


# --- task supervisor -----------------------------------------------------

def test_stop_with_garbage_pid_file(make_config):
    config = make_config()
    supervisor = TaskSupervisor(config)
    os.makedirs(config.work_dir, exist_ok=True)
    with open(supervisor.pid_path, "w") as f:
        f.write("not a pid")

    status = supervisor.stop()

    assert status.state == "idle"
    assert "No running task" in status.message
    assert not os.path.exists(supervisor.pid_path)


def test_stop_with_dead_pid_clears_markers(make_config):
    config = make_config()
    supervisor = TaskSupervisor(config)
    dead = _dead_pid()
    BackgroundTask(dead, time.time(), supervisor.log_path, supervisor.progress_path, "").save(supervisor.pid_path)
    with open(supervisor.lock_path, "w") as f:
        f.write(f"{dead}\n")

    status = supervisor.stop()

    assert status.state == "idle"
    assert "No running task" in status.message
    assert not os.path.exists(supervisor.pid_path)
    assert not os.path.exists(supervisor.lock_path)


def test_stop_without_pid_file(make_config):
    status = TaskSupervisor(make_config()).stop()

    assert status.state == "idle"
    assert status.message == "No running task"


def test_status_reports_progress_and_clears_dead_task(make_config):
    config = make_config()
    supervisor = TaskSupervisor(config)
    BackgroundTask(_dead_pid(), time.time(), supervisor.log_path, supervisor.progress_path, "").save(supervisor.pid_path)
    with open(supervisor.progress_path, "w") as f:
        json.dump({"state": "running", "completed": 3, "total": 10}, f)

    status = supervisor.status()

    assert status.state == "idle"
    assert status.progress["completed"] == 3
    assert not os.path.exists(supervisor.pid_path)


def test_start_status_stop_lifecycle(make_config, tmp_path):
    config = make_config(stop_grace_seconds=2)
    runner = _script(tmp_path, "runner.sh", 'echo "worker up"\nexec sleep 30')
    supervisor = TaskSupervisor(config, python_executable=runner)

    started = supervisor.start_detached()
    assert started.state == "running"
    assert BackgroundTask.load(supervisor.pid_path).pid == started.pid

    with pytest.raises(SupervisorError):
        supervisor.start_detached()

    status = supervisor.status()
    assert status.running
    assert status.runtime_seconds >= 0
    assert "worker up" in supervisor.tail_log()

    stopped = supervisor.stop()
    assert stopped.state == "idle"
    assert not supervisor.status().running
    assert not os.path.exists(supervisor.pid_path)


def test_start_reports_child_that_dies(make_config, tmp_path):
    runner = _script(tmp_path, "runner.sh", 'echo "cannot import" >&2\nexit 3')
    supervisor = TaskSupervisor(make_config(), python_executable=runner)

    status = supervisor.start_detached()

    assert status.state == "failed"
    assert "code 3" in status.message
    assert "cannot import" in status.log_tail
    assert not os.path.exists(supervisor.pid_path)


def test_start_refuses_when_lock_is_held(make_config):
    config = make_config()
    supervisor = TaskSupervisor(config)
    os.makedirs(config.work_dir, exist_ok=True)
    with open(supervisor.lock_path, "w") as f:
        f.write(f"{os.getppid()}\n")

    with pytest.raises(SupervisorError):
        supervisor.start_detached()


def test_stop_escalates_to_sigkill_when_term_is_ignored(make_config, tmp_path):
    config = make_config(stop_grace_seconds=1)
    runner = _script(tmp_path, "runner.sh",
                     "trap '' TERM\necho \"ignoring TERM\"\nwhile true; do sleep 1; done")
    supervisor = TaskSupervisor(config, python_executable=runner)
    started = supervisor.start_detached()
    assert started.state == "running"

    stopped = supervisor.stop()

    assert stopped.state == "idle"
    assert stopped.message.startswith("Task killed")
    assert not supervisor.status().running
    assert not os.path.exists(supervisor.pid_path)
    assert not os.path.exists(supervisor.lock_path)
