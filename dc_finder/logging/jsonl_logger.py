"""JSONL run history for the datacenter finder."""

import json
import os
from typing import Any, Dict, List, Optional

from ..models import AggregateReport


class JSONLLogger:
    """Appends one JSON line per finished run."""

    def __init__(self, log_file: str):
        """Initialize JSONL logger.

        Args:
            log_file: Path to JSONL log file
        """
        self.log_file = log_file

    def _ensure_file_exists(self) -> None:
        """Ensure log file and directory exist."""
        if not os.path.exists(self.log_file):
            os.makedirs(os.path.dirname(self.log_file) or ".", exist_ok=True)
            with open(self.log_file, "w"):
                pass

    def log_run(self, timestamp: str, status: str, duration_seconds: float,
                concurrency: int, endpoint_count: int, report: AggregateReport) -> None:
        """Log the summary of one run.

        Args:
            timestamp: ISO format timestamp of run completion
            status: "completed" or "cancelled"
            duration_seconds: Wall-clock duration of the run
            concurrency: Worker pool width used
            endpoint_count: Endpoints in the input set
            report: Aggregate report of the run
        """
        summary = report.summary
        entry = {
            "timestamp": timestamp,
            "status": status,
            "duration_seconds": round(duration_seconds, 1),
            "concurrency": concurrency,
            "endpoints": endpoint_count,
            "records": summary.total,
            "responsive": summary.responsive,
            "timeout_ratio_pct": summary.timeout_ratio_pct,
            "latency_ms": {
                "min": summary.min_ms,
                "max": summary.max_ms,
                "mean": summary.mean_ms,
            },
            "providers": {p.provider: p.count for p in report.providers},
            "recommendations": [
                {"provider": r.provider, "location": r.location,
                 "count": r.count, "mean_latency_ms": r.mean_latency_ms}
                for r in report.recommendations
            ],
        }

        self._ensure_file_exists()
        with open(self.log_file, "a") as f:
            json.dump(entry, f)
            f.write("\n")
            f.flush()  # Ensure data is written to disk

    def read_runs(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Read logged runs, newest last; unparsable lines are skipped."""
        if not os.path.exists(self.log_file):
            return []
        runs = []
        with open(self.log_file, "r") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    runs.append(json.loads(line))
                except json.JSONDecodeError:
                    continue
        if limit is not None:
            runs = runs[-limit:] if limit > 0 else []
        return runs
