"""Validation and deduplication of candidate endpoints."""

import ipaddress
from typing import Iterable, List, Optional


def normalize_endpoint(candidate: str) -> Optional[str]:
    """Return the canonical form of a routable unicast IPv4 address.

    Private, loopback, link-local, multicast, reserved, unspecified,
    shared (100.64/10) and benchmarking ranges are rejected, as are
    malformed strings and IPv6.

    Args:
        candidate: Address text

    Returns:
        Canonical address string, or None if rejected
    """
    try:
        address = ipaddress.ip_address(candidate.strip())
    except ValueError:
        return None

    if address.version != 4:
        return None
    if (address.is_private or address.is_loopback or address.is_link_local
            or address.is_multicast or address.is_reserved or address.is_unspecified):
        return None
    # Covers 100.64.0.0/10 and 198.18.0.0/15, which is_private does not on every version
    if not address.is_global:
        return None
    return str(address)


def filter_endpoints(candidates: Iterable[str]) -> List[str]:
    """Validate candidates and deduplicate, keeping first-seen order.

    Args:
        candidates: Raw address strings

    Returns:
        Accepted endpoints
    """
    seen = set()
    endpoints = []
    rejected = 0
    for candidate in candidates:
        endpoint = normalize_endpoint(candidate)
        if endpoint is None:
            rejected += 1
            continue
        if endpoint in seen:
            continue
        seen.add(endpoint)
        endpoints.append(endpoint)

    if rejected:
        print(f"[INFO] Filtered out {rejected} invalid or non-public addresses")
    return endpoints
