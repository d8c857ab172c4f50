"""Append-only results file shared by all workers of a run."""

import os
import threading
from typing import List

from ..models import ResultRecord
from ..utils import ensure_directory_exists, format_latency, parse_latency

FIELD_SEPARATOR = "|"


def sanitize_field(value: str) -> str:
    """Make a value safe for one pipe-delimited field."""
    return (value.replace(FIELD_SEPARATOR, "/")
            .replace("\r\n", " ").replace("\n", " ").replace("\r", " ")
            .strip())


def format_record(record: ResultRecord) -> str:
    """Serialize a record as `endpoint|provider|location|latency` plus newline."""
    fields = [
        sanitize_field(record.endpoint),
        sanitize_field(record.provider),
        sanitize_field(record.location),
        format_latency(record.latency_ms),
    ]
    return FIELD_SEPARATOR.join(fields) + "\n"


def parse_record(line: str) -> ResultRecord:
    """Parse one stored line (without its newline).

    Raises:
        ValueError: If the line does not hold exactly four valid fields
    """
    fields = line.split(FIELD_SEPARATOR)
    if len(fields) != 4:
        raise ValueError(f"expected 4 fields, got {len(fields)}")
    endpoint, provider, location, latency = fields
    if not endpoint or not provider or not location:
        raise ValueError("empty field")
    return ResultRecord(
        endpoint=endpoint,
        provider=provider,
        location=location,
        latency_ms=parse_latency(latency),
    )


class ResultStore:
    """Pipe-delimited result file with whole-line appends under a lock."""

    def __init__(self, path: str):
        """Initialize result store.

        Args:
            path: Results file path
        """
        self.path = path
        self._lock = threading.Lock()
        ensure_directory_exists(os.path.dirname(path))

    def reset(self) -> None:
        """Truncate the store at the start of a run."""
        with self._lock:
            with open(self.path, "w"):
                pass

    def append(self, record: ResultRecord) -> None:
        """Append one record as a single write followed by flush."""
        line = format_record(record)
        with self._lock:
            with open(self.path, "a") as f:
                f.write(line)
                f.flush()

    def read_all(self) -> List[ResultRecord]:
        """Read every complete record.

        Blank lines are ignored. Malformed lines, including a final line
        without its newline left by a killed writer, are skipped with a
        warning.
        """
        if not os.path.exists(self.path):
            return []

        records = []
        with open(self.path, "r", errors="replace") as f:
            for line_number, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                if not line.endswith("\n"):
                    print(f"[WARN] Skipping incomplete line {line_number} in {self.path}")
                    continue
                try:
                    records.append(parse_record(line.rstrip("\n")))
                except ValueError as e:
                    print(f"[WARN] Skipping malformed line {line_number} in {self.path}: {e}")
        return records
