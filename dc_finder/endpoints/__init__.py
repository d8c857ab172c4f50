"""Endpoint discovery and filtering for the datacenter finder."""

from .endpoint_source import EndpointSource, extract_ipv4
from .endpoint_filter import filter_endpoints, normalize_endpoint
from .endpoint_loader import load_endpoints, read_endpoint_file

__all__ = ['EndpointSource', 'extract_ipv4', 'filter_endpoints', 'normalize_endpoint',
           'load_endpoints', 'read_endpoint_file']
