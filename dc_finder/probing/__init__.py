"""Latency probing and work scheduling for the datacenter finder."""

from .probe_engine import ProbeEngine, probe, tcp_connect
from .scheduler import ProbeScheduler

__all__ = ['ProbeEngine', 'probe', 'tcp_connect', 'ProbeScheduler']
