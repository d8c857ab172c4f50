"""Endpoint list loader with command fallback."""

import os
from typing import List, Optional

from ..config import Config
from ..exceptions import EndpointSourceError
from .endpoint_filter import filter_endpoints
from .endpoint_source import EndpointSource, extract_ipv4


def read_endpoint_file(path: str) -> List[str]:
    """Read candidate addresses from a text file.

    Blank lines and lines starting with '#' are ignored. Any other line may
    hold one or more addresses anywhere in it.
    """
    candidates = []
    with open(path, 'r') as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith('#'):
                continue
            candidates.extend(extract_ipv4(line))
    return candidates


def load_endpoints(config: Config, endpoint_file: Optional[str] = None,
                   source: Optional[EndpointSource] = None) -> List[str]:
    """Load the working set of endpoints.

    The file is used when given and readable; otherwise the discovery
    command runs. Either way the result passes through the endpoint filter.

    Args:
        config: Loaded configuration
        endpoint_file: Optional path to a saved endpoint list
        source: Endpoint source override (built from config when None)

    Returns:
        Deduplicated, validated endpoints

    Raises:
        EndpointSourceError: If no usable endpoint could be obtained
    """
    candidates: List[str] = []

    if endpoint_file:
        if os.path.exists(endpoint_file):
            try:
                candidates = read_endpoint_file(endpoint_file)
                print(f"[INFO] Loaded {len(candidates)} candidate addresses from {endpoint_file}")
            except (OSError, UnicodeDecodeError) as e:
                print(f"[WARN] Could not read endpoint file {endpoint_file}: {e}")
        else:
            print(f"[WARN] Endpoint file not found: {endpoint_file}")

    if not candidates:
        if endpoint_file:
            print("[INFO] Falling back to endpoint discovery command")
        if source is None:
            source = EndpointSource(
                config.endpoint_command,
                timeout=config.endpoint_command_timeout_seconds,
                retries=config.endpoint_command_retries
            )
        candidates = source.fetch()

    endpoints = filter_endpoints(candidates)
    if not endpoints:
        raise EndpointSourceError("No valid public IPv4 endpoints found")

    print(f"[OK] {len(endpoints)} unique endpoints ready for analysis")
    return endpoints
