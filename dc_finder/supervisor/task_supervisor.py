"""Start, inspect and stop the detached analysis task."""

import json
import os
import signal
import subprocess
import sys
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..config import Config
from ..constants import (
    BACKGROUND_LOG_NAME, FOLLOW_POLL_INTERVAL, LOCK_FILE_NAME, PID_FILE_NAME,
    PROGRESS_FILE_NAME, START_CONFIRM_SECONDS, STOP_POLL_INTERVAL,
)
from ..exceptions import SupervisorError
from ..models import TaskStatus
from ..utils import atomic_write_json, ensure_directory_exists, read_last_lines
from .instance_lock import pid_alive, read_pid

RUNNER_MODULE = "dc_finder.supervisor.background_runner"
KILL_WAIT_SECONDS = 2.0
DEFAULT_TAIL_LINES = 20

# Directory containing the dc_finder package, so the child can import it
PACKAGE_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


@dataclass
class BackgroundTask:
    """Handle of a detached run, persisted in the PID file."""
    pid: int
    start_time: float
    log_path: str
    progress_path: str
    config_path: str

    @classmethod
    def load(cls, path: str) -> Optional["BackgroundTask"]:
        """Read a handle; None if the file is missing or does not hold one."""
        try:
            with open(path, 'r') as f:
                data = json.load(f)
            task = cls(
                pid=int(data["pid"]),
                start_time=float(data["start_time"]),
                log_path=str(data["log_path"]),
                progress_path=str(data["progress_path"]),
                config_path=str(data.get("config_path", "")),
            )
        except (OSError, ValueError, KeyError, TypeError):
            return None
        return task if task.pid > 0 else None

    def save(self, path: str) -> None:
        atomic_write_json(path, asdict(self))


class TaskSupervisor:
    """Manages the single detached pipeline run.

    The child runs `python -m dc_finder.supervisor.background_runner` in
    its own session, so stop() can signal its whole process group.
    """

    def __init__(self, config: Config, python_executable: Optional[str] = None,
                 clock: Callable[[], float] = time.time):
        """Initialize task supervisor.

        Args:
            config: Configuration object (its file is passed to the child)
            python_executable: Interpreter for the child (defaults to sys.executable)
            clock: Source of epoch seconds
        """
        self.config = config
        self.python_executable = python_executable or sys.executable
        self.clock = clock
        self.pid_path = os.path.join(config.work_dir, PID_FILE_NAME)
        self.lock_path = os.path.join(config.work_dir, LOCK_FILE_NAME)
        self.progress_path = os.path.join(config.work_dir, PROGRESS_FILE_NAME)
        self.log_path = os.path.join(config.report_dir, BACKGROUND_LOG_NAME)
        self._children: Dict[int, subprocess.Popen] = {}

    def _is_alive(self, pid: int) -> bool:
        child = self._children.get(pid)
        if child is not None:
            # poll() reaps our own exited child instead of leaving a zombie
            return child.poll() is None
        return pid_alive(pid)

    def _read_progress(self) -> Optional[Dict[str, Any]]:
        try:
            with open(self.progress_path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError):
            return None
        return data if isinstance(data, dict) else None

    def _clear_markers(self, task_pid: Optional[int]) -> None:
        """Remove the PID file and any lock not held by some other live process."""
        try:
            os.unlink(self.pid_path)
        except FileNotFoundError:
            pass
        owner = read_pid(self.lock_path)
        if owner is None or owner == task_pid or not pid_alive(owner):
            try:
                os.unlink(self.lock_path)
            except FileNotFoundError:
                pass

    def _wait_for_exit(self, pid: int, timeout: float) -> bool:
        deadline = self.clock() + timeout
        while self.clock() < deadline:
            if not self._is_alive(pid):
                return True
            time.sleep(STOP_POLL_INTERVAL)
        return not self._is_alive(pid)

    def tail_log(self, lines: int = DEFAULT_TAIL_LINES) -> List[str]:
        """Last lines of the background log."""
        return read_last_lines(self.log_path, lines)

    def status(self, tail_lines: int = DEFAULT_TAIL_LINES) -> TaskStatus:
        """Report whether the detached task is running.

        A dead or garbage PID record is cleared and reported as idle.
        """
        progress = self._read_progress()
        log_tail = self.tail_log(tail_lines)
        task = BackgroundTask.load(self.pid_path)

        if task is None:
            if os.path.exists(self.pid_path):
                self._clear_markers(None)
                return TaskStatus("idle", "No running task (cleared invalid PID file)",
                                  progress=progress, log_tail=log_tail)
            return TaskStatus("idle", "No running task", progress=progress, log_tail=log_tail)

        if not self._is_alive(task.pid):
            self._clear_markers(task.pid)
            return TaskStatus("idle", f"Task (PID {task.pid}) is no longer running",
                              pid=task.pid, progress=progress, log_tail=log_tail)

        return TaskStatus("running", f"Task running (PID {task.pid})", pid=task.pid,
                          runtime_seconds=self.clock() - task.start_time,
                          progress=progress, log_tail=log_tail)

    def start_detached(self, endpoint_file: Optional[str] = None) -> TaskStatus:
        """Spawn the pipeline as an independent process.

        Args:
            endpoint_file: Optional endpoint list passed to the runner

        Returns:
            TaskStatus "running" once the child is confirmed alive, "failed" if
            it died during start-up, or "idle" if it already finished

        Raises:
            SupervisorError: If a task is already running or the lock is held
        """
        current = self.status(tail_lines=0)
        if current.running:
            raise SupervisorError(f"Background task already running (PID {current.pid})")
        lock_owner = read_pid(self.lock_path)
        if lock_owner is not None and pid_alive(lock_owner):
            raise SupervisorError(f"Another instance holds {self.lock_path} (PID {lock_owner})")

        ensure_directory_exists(self.config.work_dir)
        ensure_directory_exists(self.config.report_dir)

        config_path = os.path.abspath(self.config.config_path)
        command = [self.python_executable, "-m", RUNNER_MODULE, "--config", config_path]
        if endpoint_file:
            command += ["--endpoint-file", os.path.abspath(endpoint_file)]

        env = dict(os.environ)
        env["PYTHONUNBUFFERED"] = "1"
        env["PYTHONPATH"] = os.pathsep.join(p for p in (PACKAGE_ROOT, env.get("PYTHONPATH", "")) if p)

        try:
            with open(self.log_path, "a") as log:
                child = subprocess.Popen(
                    command,
                    stdin=subprocess.DEVNULL,
                    stdout=log,
                    stderr=subprocess.STDOUT,
                    env=env,
                    start_new_session=True
                )
        except OSError as e:
            return TaskStatus("failed", f"Could not start background task: {e}")

        self._children[child.pid] = child
        task = BackgroundTask(
            pid=child.pid,
            start_time=self.clock(),
            log_path=self.log_path,
            progress_path=self.progress_path,
            config_path=config_path,
        )
        task.save(self.pid_path)

        # Confirm the child survived start-up
        deadline = time.time() + START_CONFIRM_SECONDS
        while time.time() < deadline and child.poll() is None:
            time.sleep(STOP_POLL_INTERVAL)

        returncode = child.poll()
        if returncode is None:
            return TaskStatus("running", f"Background task started (PID {child.pid})", pid=child.pid,
                              runtime_seconds=0.0, log_tail=self.tail_log())

        self._clear_markers(child.pid)
        if returncode == 0:
            return TaskStatus("idle", "Background task finished during start-up", pid=child.pid,
                              progress=self._read_progress(), log_tail=self.tail_log())
        return TaskStatus("failed", f"Background task exited during start-up with code {returncode}",
                          pid=child.pid, log_tail=self.tail_log())

    def _signal_group(self, pid: int, signum: int) -> None:
        try:
            os.killpg(pid, signum)
        except ProcessLookupError:
            pass
        except PermissionError:
            # Not a group leader we own; fall back to the process itself
            try:
                os.kill(pid, signum)
            except ProcessLookupError:
                pass

    def stop(self) -> TaskStatus:
        """Terminate the detached task, escalating to SIGKILL after the grace period.

        The PID and lock markers are always cleared. A missing or garbage
        PID record reports "No running task" and never raises.
        """
        task = BackgroundTask.load(self.pid_path)
        if task is None:
            self._clear_markers(None)
            return TaskStatus("idle", "No running task")

        pid = task.pid
        try:
            if not self._is_alive(pid):
                return TaskStatus("idle", f"No running task (cleared stale PID {pid})", pid=pid)

            print(f"[INFO] Sending SIGTERM to task (PID {pid})...")
            self._signal_group(pid, signal.SIGTERM)
            if self._wait_for_exit(pid, self.config.stop_grace_seconds):
                return TaskStatus("idle", f"Task stopped (PID {pid})", pid=pid,
                                  log_tail=self.tail_log())

            print(f"[WARN] Task did not exit within {self.config.stop_grace_seconds}s, sending SIGKILL")
            self._signal_group(pid, signal.SIGKILL)
            if self._wait_for_exit(pid, KILL_WAIT_SECONDS):
                return TaskStatus("idle", f"Task killed (PID {pid})", pid=pid, log_tail=self.tail_log())
            return TaskStatus("failed", f"Task (PID {pid}) did not exit after SIGKILL", pid=pid)
        except PermissionError as e:
            return TaskStatus("failed", f"Not permitted to signal PID {pid}: {e}", pid=pid)
        finally:
            self._clear_markers(pid)
            self._children.pop(pid, None)

    def follow_log(self, poll_interval: float = FOLLOW_POLL_INTERVAL,
                   until_idle: bool = True) -> Iterator[str]:
        """Yield new background log lines as they are written.

        Args:
            poll_interval: Seconds between checks for new output
            until_idle: Stop once the task is no longer running
        """
        while not os.path.exists(self.log_path):
            if until_idle and not self.status(tail_lines=0).running:
                return
            time.sleep(poll_interval)

        with open(self.log_path, 'r', errors='replace') as f:
            f.seek(0, os.SEEK_END)
            while True:
                line = f.readline()
                if line:
                    yield line.rstrip("\n")
                    continue
                if until_idle and not self.status(tail_lines=0).running:
                    for rest in f:
                        yield rest.rstrip("\n")
                    return
                time.sleep(poll_interval)
