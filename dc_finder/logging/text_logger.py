"""Human-readable per-endpoint analysis log."""

import datetime
import os

from ..constants import DETAILED_HEADER_EVERY
from ..models import ResultRecord
from ..utils import format_latency, truncate

SEPARATOR_WIDTH = 100


def format_header() -> str:
    """Column header shared by console progress and the detailed log."""
    return (f"{'Time':<8} | {'Endpoint':<15} | {'Latency':<8} | {'Provider':<15} | "
            f"{'Location':<30} | Progress")


def format_progress_line(record: ResultRecord, completed: int, total: int) -> str:
    """One table row for a finished endpoint."""
    latency = format_latency(record.latency_ms)
    if latency != "timeout":
        latency += "ms"
    now = datetime.datetime.now().strftime("%H:%M:%S")
    return (f"{now:<8} | {record.endpoint:<15} | {latency:<8} | "
            f"{truncate(record.provider, 15):<15} | {truncate(record.location, 30):<30} | "
            f"{completed}/{total}")


class TextLogger:
    """Writes the detailed analysis log with a header row every few entries."""

    def __init__(self, log_file: str, header_every: int = DETAILED_HEADER_EVERY):
        """Initialize text logger.

        Args:
            log_file: Path to detailed analysis log
            header_every: Repeat the column header after this many rows
        """
        self.log_file = log_file
        self.header_every = header_every

    def _ensure_file_exists(self) -> None:
        """Ensure log directory exists."""
        if not os.path.exists(self.log_file):
            os.makedirs(os.path.dirname(self.log_file) or ".", exist_ok=True)

    def log_run_start(self, timestamp: str, total: int, concurrency: int) -> None:
        self._ensure_file_exists()
        with open(self.log_file, "a") as f:
            f.write(f"\n[{timestamp}] Analysis started: {total} endpoints, concurrency {concurrency}\n")

    def log_result(self, record: ResultRecord, completed: int, total: int) -> None:
        """Append one row; the header is repeated before rows 1, 1+N, 1+2N, ..."""
        self._ensure_file_exists()
        with open(self.log_file, "a") as f:
            if (completed - 1) % self.header_every == 0:
                f.write("-" * 40 + "\n")
                f.write(format_header() + "\n")
                f.write("=" * 40 + "\n")
            f.write(format_progress_line(record, completed, total) + "\n")

    def log_run_end(self, timestamp: str, completed: int, total: int, status: str) -> None:
        self._ensure_file_exists()
        with open(self.log_file, "a") as f:
            f.write(f"[{timestamp}] Analysis {status}: {completed}/{total} endpoints\n")
            f.write("=" * SEPARATOR_WIDTH + "\n")
