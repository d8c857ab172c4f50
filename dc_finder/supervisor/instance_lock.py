"""Cross-process single-instance lock backed by an O_EXCL lock file."""

import atexit
import os
from typing import Optional

from ..exceptions import InstanceAlreadyRunning
from ..utils import ensure_directory_exists


def pid_alive(pid: int) -> bool:
    """Whether a process with this PID exists."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but belongs to another user
        return True
    return True


def read_pid(path: str) -> Optional[int]:
    """Read a PID from the first line of a file; None if missing or garbage."""
    try:
        with open(path, 'r') as f:
            text = f.readline().strip()
    except (OSError, UnicodeDecodeError):
        return None
    if not text.isdigit():
        return None
    pid = int(text)
    return pid if pid > 0 else None


class InstanceLock:
    """Lock file holding the owner PID.

    A lock whose recorded PID is dead or unreadable is stale and gets
    reclaimed. Release is idempotent and is also registered with atexit.
    """

    def __init__(self, path: str):
        """Initialize instance lock.

        Args:
            path: Lock file path
        """
        self.path = path
        self.acquired = False
        self._atexit_registered = False

    def acquire(self) -> None:
        """Take the lock.

        Raises:
            InstanceAlreadyRunning: If a live process owns the lock
        """
        if self.acquired:
            return
        ensure_directory_exists(os.path.dirname(self.path))

        # Second pass runs only after a stale lock was removed
        for _ in range(2):
            try:
                fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                owner = read_pid(self.path)
                if owner is not None and owner != os.getpid() and pid_alive(owner):
                    raise InstanceAlreadyRunning(self.path, owner)
                print(f"[WARN] Removing stale lock {self.path} (owner PID {owner if owner else 'unknown'})")
                try:
                    os.unlink(self.path)
                except FileNotFoundError:
                    pass
                continue

            with os.fdopen(fd, 'w') as f:
                f.write(f"{os.getpid()}\n")
            self.acquired = True
            if not self._atexit_registered:
                atexit.register(self.release)
                self._atexit_registered = True
            return

        owner = read_pid(self.path)
        raise InstanceAlreadyRunning(self.path, owner or 0)

    def release(self) -> None:
        """Remove the lock file if this process still owns it."""
        if not self.acquired:
            return
        self.acquired = False
        if read_pid(self.path) not in (os.getpid(), None):
            return
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass

    def __enter__(self) -> "InstanceLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
