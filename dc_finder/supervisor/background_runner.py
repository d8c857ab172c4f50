"""Entry point of the detached analysis process.

Started by TaskSupervisor as `python -m dc_finder.supervisor.background_runner`.
Output goes to the background log; progress goes to progress.json.
"""

import argparse
import os
import sys

from ..config import Config
from ..constants import EXIT_SETUP_FAILURE, PID_FILE_NAME
from ..exceptions import DCFinderError
from ..orchestrator import Pipeline
from ..utils import get_current_timestamp
from .task_supervisor import BackgroundTask


def _release_pid_file(path: str) -> None:
    """Remove the PID file if it still describes this process."""
    task = BackgroundTask.load(path)
    if task is not None and task.pid == os.getpid():
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Detached endpoint analysis worker")
    parser.add_argument("--config", default="config.json", help="Path to configuration file")
    parser.add_argument("--endpoint-file", help="Endpoint list to use before the discovery command")
    args = parser.parse_args(argv)

    print(f"[INFO] [{get_current_timestamp()}] Background analysis started (PID {os.getpid()})", flush=True)
    config = Config(args.config)
    pid_path = os.path.join(config.work_dir, PID_FILE_NAME)

    try:
        return Pipeline(config).run(endpoint_file=args.endpoint_file)
    except DCFinderError as e:
        print(f"[ERROR] {e}", flush=True)
        return EXIT_SETUP_FAILURE
    finally:
        _release_pid_file(pid_path)
        print(f"[INFO] [{get_current_timestamp()}] Background analysis finished", flush=True)


if __name__ == "__main__":
    sys.exit(main())
