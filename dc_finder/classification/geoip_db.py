"""Download and refresh of the GeoLite2 files behind the offline lookup tier."""

import http.client
import os
import shutil
import tempfile
import time
import urllib.error
import urllib.request
from typing import List, Optional

from ..config import Config
from ..utils import ensure_directory_exists

SECONDS_PER_DAY = 86400


def database_is_stale(path: str, max_age_days: int, now: Optional[float] = None) -> bool:
    """Whether a database file is missing or older than max_age_days.

    Args:
        path: .mmdb file path
        max_age_days: Refresh threshold; 0 keeps an existing file forever
        now: Epoch seconds to compare against (defaults to the current time)
    """
    if not os.path.exists(path):
        return True
    if max_age_days <= 0:
        return False
    now = time.time() if now is None else now
    return now - os.path.getmtime(path) >= max_age_days * SECONDS_PER_DAY


def download_database(url: str, dest: str, timeout: float) -> None:
    """Download a database file to dest; dest is only replaced on success.

    Raises:
        urllib.error.URLError, OSError: On transport or write failure
        http.client.HTTPException: On a truncated response
        ValueError: If the server sent an empty body
    """
    directory = os.path.dirname(dest) or "."
    ensure_directory_exists(directory)
    temp_fd, temp_path = tempfile.mkstemp(dir=directory, prefix=".tmp-", suffix=".mmdb")
    try:
        with os.fdopen(temp_fd, 'wb') as out:
            request = urllib.request.Request(url)
            with urllib.request.urlopen(request, timeout=timeout) as response:
                shutil.copyfileobj(response, out)
        if os.path.getsize(temp_path) == 0:
            raise ValueError(f"empty download from {url}")
        # Atomic rename
        os.replace(temp_path, dest)
    except Exception:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


def ensure_databases(config: Config, now: Optional[float] = None) -> List[str]:
    """Fetch any GeoLite2 database that is missing or stale.

    A failed download is a warning only: an older file stays in place and
    a missing one leaves the offline tier disabled.

    Returns:
        Paths that were downloaded in this call
    """
    updated: List[str] = []
    wanted = (
        ("ASN", config.asn_database_path, config.asn_database_url),
        ("City", config.city_database_path, config.city_database_url),
    )
    for label, path, url in wanted:
        if not url or not database_is_stale(path, config.geoip_max_age_days, now):
            continue

        print(f"[INFO] Downloading GeoLite2 {label} database to {path}...")
        try:
            download_database(url, path, config.geoip_download_timeout_seconds)
        except (urllib.error.URLError, OSError, http.client.HTTPException, ValueError) as e:
            if os.path.exists(path):
                print(f"[WARN] GeoLite2 {label} database refresh failed, keeping existing file: {e}")
            else:
                print(f"[WARN] GeoLite2 {label} database download failed: {e}")
            continue

        print(f"[OK] GeoLite2 {label} database ready")
        updated.append(path)
    return updated
