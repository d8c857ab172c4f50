#!/usr/bin/env python3
"""
Run the endpoint analysis detached from the terminal.

Commands:
  start    Spawn the analysis in the background
  status   Show whether it is running, its progress and the log tail
  stop     Terminate it (SIGTERM, then SIGKILL after the grace period)
  tail     Print the last lines of the background log
  follow   Stream the background log until the task ends
"""

import argparse
import datetime
import sys

from dc_finder.config import Config
from dc_finder.constants import EXIT_OK, EXIT_SETUP_FAILURE
from dc_finder.exceptions import SupervisorError
from dc_finder.models import TaskStatus
from dc_finder.supervisor import TaskSupervisor


def _format_runtime(seconds: float) -> str:
    return str(datetime.timedelta(seconds=int(seconds)))


def print_status(status: TaskStatus, show_log: bool = True) -> None:
    """Print a TaskStatus the way every command reports it."""
    tag = {"running": "[OK]", "idle": "[INFO]", "failed": "[ERROR]"}.get(status.state, "[INFO]")
    print(f"{tag} {status.message}")

    if status.runtime_seconds is not None:
        print(f"  Runtime: {_format_runtime(status.runtime_seconds)}")

    progress = status.progress
    if progress:
        total = progress.get("total") or 0
        completed = progress.get("completed") or 0
        pct = (completed / total * 100) if total else 0.0
        print(f"  Progress: {completed}/{total} ({pct:.1f}%), state: {progress.get('state', '?')}")
        if progress.get("last_endpoint"):
            print(f"  Last endpoint: {progress['last_endpoint']}")
        if progress.get("message"):
            print(f"  {progress['message']}")

    if show_log and status.log_tail:
        print("\nRecent log output:")
        print("-" * 60)
        for line in status.log_tail:
            print(line)


def main():
    parser = argparse.ArgumentParser(description="Manage the background endpoint analysis")
    parser.add_argument('command', choices=['start', 'status', 'stop', 'tail', 'follow'])
    parser.add_argument('--config', default='config.json',
                        help='Path to config file (default: config.json)')
    parser.add_argument('--endpoint-file',
                        help='Endpoint list for the background run (start only)')
    parser.add_argument('-n', '--lines', type=int, default=20,
                        help='Log lines to show for tail/status (default: 20)')
    args = parser.parse_args()

    config = Config(args.config)
    supervisor = TaskSupervisor(config)

    if args.command == 'start':
        try:
            status = supervisor.start_detached(args.endpoint_file)
        except SupervisorError as e:
            print(f"[ERROR] {e}")
            return EXIT_SETUP_FAILURE
        print_status(status)
        if status.running:
            print("\nUse 'python3 background_task.py status' to check progress")
        return EXIT_OK if status.state != "failed" else EXIT_SETUP_FAILURE

    if args.command == 'status':
        print_status(supervisor.status(tail_lines=args.lines))
        return EXIT_OK

    if args.command == 'stop':
        status = supervisor.stop()
        print_status(status, show_log=False)
        return EXIT_OK if status.state != "failed" else EXIT_SETUP_FAILURE

    if args.command == 'tail':
        lines = supervisor.tail_log(args.lines)
        if not lines:
            print(f"[INFO] No background log at {supervisor.log_path}")
        for line in lines:
            print(line)
        return EXIT_OK

    # follow
    print(f"[INFO] Following {supervisor.log_path} (Ctrl+C to stop)")
    try:
        for line in supervisor.follow_log():
            print(line, flush=True)
    except KeyboardInterrupt:
        print()
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
