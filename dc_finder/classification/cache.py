"""Per-endpoint resolution cache stored as one JSON file per address."""

import json
import os
import time
from typing import Callable, Optional

from ..constants import UNKNOWN_PROVIDER
from ..models import ClassificationRecord
from ..utils import atomic_write_json, ensure_directory_exists


class ResolutionCache:
    """Directory-backed cache of ClassificationRecords with TTL expiry.

    Records with an Unknown provider expire after `negative_ttl` instead of
    `ttl`. Writes go through a temp file and os.replace, so concurrent
    workers may recompute the same entry but never leave a half-written
    file behind.
    """

    def __init__(self, cache_dir: str, ttl: int, negative_ttl: int,
                 clock: Callable[[], float] = time.time):
        """Initialize resolution cache.

        Args:
            cache_dir: Directory holding <ip>.json entries
            ttl: Lifetime in seconds of resolved entries (0 disables the cache)
            negative_ttl: Lifetime in seconds of entries with an Unknown provider
            clock: Source of epoch seconds
        """
        self.cache_dir = cache_dir
        self.ttl = ttl
        self.negative_ttl = negative_ttl
        self.clock = clock
        ensure_directory_exists(cache_dir)

    def _path(self, endpoint: str) -> str:
        return os.path.join(self.cache_dir, f"{endpoint}.json")

    def _ttl_for(self, record: ClassificationRecord) -> int:
        # Negative whenever the provider is Unknown, even with a known location
        return self.negative_ttl if record.provider == UNKNOWN_PROVIDER else self.ttl

    def get(self, endpoint: str) -> Optional[ClassificationRecord]:
        """Return the cached record if present and not expired."""
        if self.ttl <= 0:
            return None

        path = self._path(endpoint)
        if not os.path.exists(path):
            return None
        try:
            with open(path, 'r') as f:
                record = ClassificationRecord.from_dict(json.load(f))
        except (OSError, ValueError, KeyError, TypeError):
            # Unreadable entries are overwritten on the next put
            return None

        if self.clock() - record.resolved_at < self._ttl_for(record):
            return record
        return None

    def put(self, record: ClassificationRecord) -> None:
        """Store a record; failures are reported and otherwise ignored."""
        if self.ttl <= 0:
            return
        data = record.to_dict()
        data["ttl_seconds"] = self._ttl_for(record)
        try:
            atomic_write_json(self._path(record.endpoint), data)
        except OSError as e:
            print(f"[WARN] Failed to write cache entry for {record.endpoint}: {e}")

    def clear(self) -> int:
        """Delete every cache entry. Returns the number removed."""
        removed = 0
        if not os.path.isdir(self.cache_dir):
            return removed
        for name in os.listdir(self.cache_dir):
            if name.endswith('.json'):
                try:
                    os.unlink(os.path.join(self.cache_dir, name))
                    removed += 1
                except OSError as e:
                    print(f"[WARN] Failed to remove cache entry {name}: {e}")
        return removed
