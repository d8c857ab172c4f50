#!/usr/bin/env python3
"""
Probe and classify individual endpoints.

Measures TCP latency to each address and resolves its provider and
datacenter through the same cache and lookup chain as a full run.

Usage: python3 tool_scripts/test_endpoint.py <ip> [<ip> ...]
"""

import argparse
import os
import sys

# Add parent directory to path for imports
parent_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if parent_dir not in sys.path:
    sys.path.insert(0, parent_dir)

from dc_finder.classification import ClassificationResolver
from dc_finder.config import Config
from dc_finder.endpoints import normalize_endpoint
from dc_finder.exceptions import DCFinderError
from dc_finder.probing import ProbeEngine
from dc_finder.utils import format_latency


def main():
    parser = argparse.ArgumentParser(description="Probe and classify individual endpoints")
    parser.add_argument('endpoints', nargs='+', metavar='IP', help='IPv4 addresses to test')
    parser.add_argument('--config', default='config.json',
                        help='Path to config file (default: config.json)')
    parser.add_argument('--no-cache', action='store_true',
                        help='Bypass the resolution cache for this lookup')
    args = parser.parse_args()

    config = Config(args.config)
    try:
        resolver = ClassificationResolver.from_config(config)
    except DCFinderError as e:
        print(f"[ERROR] {e}")
        return 1
    if args.no_cache:
        resolver.cache = None
    engine = ProbeEngine(config.probe_ports, config.timeout_seconds, config.retries)

    exit_code = 0
    try:
        for candidate in args.endpoints:
            endpoint = normalize_endpoint(candidate)
            if endpoint is None:
                print(f"[ERROR] Not a public IPv4 address: {candidate}")
                exit_code = 1
                continue

            print(f"\nTesting {endpoint}")
            print("=" * 40)
            probe_result = engine.probe(endpoint)
            record = resolver.resolve(endpoint)

            latency = format_latency(probe_result.latency_ms)
            print(f"Latency:     {latency}{'' if probe_result.timed_out else ' ms'}")
            print(f"Provider:    {record.provider}")
            print(f"Location:    {record.location}")
            print(f"Region code: {record.region_code or 'n/a'}")
            print(f"Source:      {record.source}")
            print("=" * 40)
    finally:
        resolver.close()

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
