"""Shared utilities for the datacenter finder."""

import datetime
import json
import os
import tempfile
from typing import Any, Dict, List

from .constants import LATENCY_TIMEOUT, TIMEOUT_LABEL, UTC


def get_current_timestamp() -> str:
    """Get current timestamp in UTC, ISO format with seconds precision."""
    return datetime.datetime.now(UTC).isoformat(timespec="seconds")


def ensure_directory_exists(directory: str) -> None:
    """Ensure directory exists, create if necessary."""
    if directory:
        os.makedirs(directory, exist_ok=True)


def is_timeout(latency: float) -> bool:
    """Whether a latency value is the timeout sentinel."""
    return latency == LATENCY_TIMEOUT


def format_latency(latency: float) -> str:
    """Format a latency for persisted files: two decimals or the timeout label."""
    if is_timeout(latency):
        return TIMEOUT_LABEL
    return f"{latency:.2f}"


def parse_latency(text: str) -> float:
    """Parse a persisted latency value.

    Raises:
        ValueError: If the text is neither a number nor the timeout label
    """
    text = text.strip()
    if text == TIMEOUT_LABEL:
        return LATENCY_TIMEOUT
    value = float(text)
    if value < 0 or value != value:  # negative or NaN
        raise ValueError(f"invalid latency: {text!r}")
    return value


def atomic_write_json(path: str, data: Dict[str, Any]) -> None:
    """Write JSON to path atomically: write to temp file then rename."""
    directory = os.path.dirname(path) or "."
    ensure_directory_exists(directory)
    temp_fd, temp_path = tempfile.mkstemp(dir=directory, prefix=".tmp-", text=True)
    try:
        with os.fdopen(temp_fd, 'w') as f:
            json.dump(data, f, indent=2)
        # Atomic rename
        os.replace(temp_path, path)
    except Exception:
        # Clean up temp file on error
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


def read_last_lines(path: str, lines: int) -> List[str]:
    """Return the last `lines` lines of a text file (empty list if missing)."""
    if lines <= 0 or not os.path.exists(path):
        return []
    with open(path, 'r', errors='replace') as f:
        content = f.read().splitlines()
    return content[-lines:]


def truncate(text: str, width: int) -> str:
    """Cut text to a fixed display width."""
    return text if len(text) <= width else text[:width]
