#!/usr/bin/env python3
"""
Find which providers and datacenters host a set of network endpoints.

This is the main entry point for the datacenter finder. It discovers the
endpoints, measures TCP latency to each of them, classifies each one by
hosting provider and location, and writes a ranked distribution report.
"""

import argparse
import os
import sys

from dc_finder.classification import ResolutionCache
from dc_finder.config import Config
from dc_finder.constants import CACHE_DIR_NAME, EXIT_SETUP_FAILURE
from dc_finder.exceptions import DCFinderError
from dc_finder.orchestrator import Pipeline


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Measure latency to endpoints and rank their hosting datacenters",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Discover endpoints with the configured command and analyze them
  python3 analyze_endpoints.py

  # Analyze a saved endpoint list (one address per line)
  python3 analyze_endpoints.py --endpoint-file endpoints.txt

  # Analyze specific addresses with a wider worker pool
  DCF_CONCURRENCY=50 python3 analyze_endpoints.py --endpoints 1.1.1.1 8.8.8.8

  # Run detached from the terminal
  python3 background_task.py start
"""
    )
    parser.add_argument('--config', default='config.json',
                        help='Path to config file (default: config.json)')
    parser.add_argument('--endpoint-file',
                        help='Endpoint list to use instead of the discovery command')
    parser.add_argument('--endpoints', nargs='+', metavar='IP',
                        help='Analyze these addresses only')
    parser.add_argument('--clear-cache', action='store_true',
                        help='Drop cached classifications before running')
    args = parser.parse_args()

    config = Config(args.config)

    if args.clear_cache:
        cache = ResolutionCache(os.path.join(config.report_dir, CACHE_DIR_NAME),
                                config.cache_ttl_seconds, config.negative_cache_ttl_seconds)
        print(f"[INFO] Removed {cache.clear()} cached classifications")

    print(f"Concurrency: {config.concurrency}, timeout: {config.timeout_seconds}s, "
          f"retries: {config.retries}, ports: {', '.join(str(p) for p in config.probe_ports)}")
    print("=" * 60)

    try:
        return Pipeline(config).run(endpoints=args.endpoints, endpoint_file=args.endpoint_file)
    except DCFinderError as e:
        print(f"[ERROR] {e}")
        return EXIT_SETUP_FAILURE


if __name__ == "__main__":
    sys.exit(main())
