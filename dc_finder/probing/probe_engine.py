"""TCP reachability and latency probing."""

import socket
import time
from typing import Callable, List, Optional

from ..constants import LATENCY_TIMEOUT
from ..models import ProbeResult
from ..utils import get_current_timestamp

# (ip, port, timeout) -> latency in ms, or None when the connect failed
Connector = Callable[[str, int, float], Optional[float]]


def tcp_connect(ip: str, port: int, timeout: float) -> Optional[float]:
    """Time a single TCP connect.

    Args:
        ip: IPv4 address
        port: TCP port
        timeout: Connect timeout in seconds

    Returns:
        Connect time in milliseconds, or None if the connection failed
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.settimeout(timeout)
    try:
        start_time = time.perf_counter()
        result = sock.connect_ex((ip, port))
        elapsed = (time.perf_counter() - start_time) * 1000  # Convert to ms
    except OSError:
        return None
    finally:
        sock.close()

    if result == 0:
        return elapsed
    return None


def probe(endpoint: str, ports: List[int], timeout: float, retries: int,
          connector: Connector = tcp_connect,
          clock: Callable[[], float] = time.monotonic) -> float:
    """Measure the best TCP connect latency to an endpoint.

    Each attempt walks the ports in order and stops at the first successful
    connect. The port that answered moves to the front for later attempts of
    this call. The whole call is bounded by retries * timeout seconds.

    Args:
        endpoint: IPv4 address
        ports: Ports in preference order
        timeout: Per-connect timeout in seconds
        retries: Number of attempts
        connector: Connect function (replaced in tests)
        clock: Monotonic clock used for the deadline

    Returns:
        Minimum latency in milliseconds, or LATENCY_TIMEOUT
    """
    order = list(ports)
    deadline = clock() + retries * timeout
    best = LATENCY_TIMEOUT

    for _ in range(retries):
        for port in list(order):
            remaining = deadline - clock()
            if remaining <= 0:
                return best
            latency = connector(endpoint, port, min(timeout, remaining))
            if latency is None:
                continue
            best = min(best, latency)
            if order[0] != port:
                order.remove(port)
                order.insert(0, port)
            break

    return best


class ProbeEngine:
    """Probes endpoints with a fixed port list, timeout and retry count."""

    def __init__(self, ports: List[int], timeout: float, retries: int,
                 connector: Connector = tcp_connect):
        """Initialize probe engine.

        Args:
            ports: Ports tried in order on every attempt
            timeout: Per-connect timeout in seconds
            retries: Attempts per endpoint
            connector: Connect function (replaced in tests)
        """
        self.ports = list(ports)
        self.timeout = timeout
        self.retries = retries
        self.connector = connector

    def probe(self, endpoint: str) -> ProbeResult:
        """Probe one endpoint; unreachable endpoints get the timeout sentinel."""
        latency = probe(endpoint, self.ports, self.timeout, self.retries, self.connector)
        return ProbeResult(endpoint=endpoint, latency_ms=latency, measured_at=get_current_timestamp())
