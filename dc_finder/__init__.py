"""Endpoint latency probing and hosting datacenter classification."""

__version__ = "0.1.0"
