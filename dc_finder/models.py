"""Record types passed between pipeline stages."""

import threading
import time
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Tuple

from .constants import LATENCY_TIMEOUT, UNKNOWN_LOCATION, UNKNOWN_PROVIDER, SOURCE_UNKNOWN


@dataclass(frozen=True)
class ProbeResult:
    endpoint: str
    latency_ms: float       # LATENCY_TIMEOUT when no probe succeeded
    measured_at: str        # ISO timestamp

    @property
    def timed_out(self) -> bool:
        return self.latency_ms == LATENCY_TIMEOUT


@dataclass(frozen=True)
class ClassificationRecord:
    endpoint: str
    provider: str
    location: str
    source: str             # one of constants.CLASSIFICATION_SOURCES
    resolved_at: float      # epoch seconds, used for TTL checks
    region_code: str = ""   # canonical region id when the location table matched

    @property
    def is_unknown(self) -> bool:
        return self.provider == UNKNOWN_PROVIDER and self.location == UNKNOWN_LOCATION

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClassificationRecord":
        return cls(
            endpoint=str(data["endpoint"]),
            provider=str(data["provider"]),
            location=str(data["location"]),
            source=str(data.get("source", SOURCE_UNKNOWN)),
            resolved_at=float(data["resolved_at"]),
            region_code=str(data.get("region_code", "")),
        )


@dataclass(frozen=True)
class ResultRecord:
    """One endpoint's joined probe + classification outcome."""
    endpoint: str
    provider: str
    location: str
    latency_ms: float
    source: str = SOURCE_UNKNOWN
    measured_at: Optional[str] = None

    @property
    def timed_out(self) -> bool:
        return self.latency_ms == LATENCY_TIMEOUT

    @classmethod
    def join(cls, probe: ProbeResult, classification: ClassificationRecord) -> "ResultRecord":
        return cls(
            endpoint=probe.endpoint,
            provider=classification.provider,
            location=classification.location,
            latency_ms=probe.latency_ms,
            source=classification.source,
            measured_at=probe.measured_at,
        )

    def identity(self) -> Tuple[str, str, str, float]:
        """Fields that survive a Result Store round trip."""
        return (self.endpoint, self.provider, self.location, round(self.latency_ms, 2))


@dataclass(frozen=True)
class ProviderStats:
    provider: str
    count: int
    share_pct: float
    mean_latency_ms: Optional[float]   # None when every record timed out
    availability_pct: float


@dataclass(frozen=True)
class LocationStats:
    provider: str
    location: str
    count: int
    mean_latency_ms: Optional[float]


@dataclass(frozen=True)
class LatencySummary:
    total: int
    responsive: int
    timeouts: int
    timeout_ratio_pct: float
    min_ms: Optional[float]
    max_ms: Optional[float]
    mean_ms: Optional[float]


@dataclass(frozen=True)
class AggregateReport:
    summary: LatencySummary
    providers: List[ProviderStats] = field(default_factory=list)
    locations: List[LocationStats] = field(default_factory=list)
    recommendations: List[LocationStats] = field(default_factory=list)
    nearest: List[ResultRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        # inf is not valid JSON
        data["nearest"] = [
            {"endpoint": r.endpoint, "provider": r.provider,
             "location": r.location, "latency_ms": r.latency_ms}
            for r in self.nearest
        ]
        return data


@dataclass
class TaskStatus:
    """Snapshot of the detached task as seen by the supervisor."""
    state: str                          # "running", "idle" or "failed"
    message: str
    pid: Optional[int] = None
    runtime_seconds: Optional[float] = None
    progress: Optional[Dict[str, Any]] = None
    log_tail: List[str] = field(default_factory=list)

    @property
    def running(self) -> bool:
        return self.state == "running"


@dataclass
class RunState:
    """Counters for the run in progress; `completed` is guarded by a lock."""
    total: int
    concurrency: int
    started_at: float = field(default_factory=time.time)
    completed: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_completion(self) -> int:
        """Count one finished endpoint and return the new completed total."""
        with self._lock:
            self.completed += 1
            return self.completed

    def elapsed(self) -> float:
        return time.time() - self.started_at

    def reset(self) -> None:
        with self._lock:
            self.total = 0
            self.completed = 0
