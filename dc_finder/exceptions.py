"""Exception types raised on setup and supervision paths."""


class DCFinderError(Exception):
    """Base class for fatal datacenter finder errors."""


class EndpointSourceError(DCFinderError):
    """The endpoint source could not be reached or produced no usable endpoints."""


class InstanceAlreadyRunning(DCFinderError):
    """Another instance holds the single-instance lock."""

    def __init__(self, lock_path: str, pid: int):
        super().__init__(f"Another instance is already running (PID {pid}, lock {lock_path})")
        self.lock_path = lock_path
        self.pid = pid


class SupervisorError(DCFinderError):
    """The detached task could not be started or controlled."""


class RulesFileError(DCFinderError):
    """A classification rules file is unreadable or malformed."""
