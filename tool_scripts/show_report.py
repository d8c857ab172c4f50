#!/usr/bin/env python3
"""
Show the latest analysis report, or rebuild it from the results file.

Usage:
  python3 tool_scripts/show_report.py                 # print latest_report.txt
  python3 tool_scripts/show_report.py --regenerate    # rebuild from results.txt
  python3 tool_scripts/show_report.py --by-provider   # locations grouped by provider
  python3 tool_scripts/show_report.py --history 10    # last runs from run_history.jsonl
"""

import argparse
import os
import sys

# Add parent directory to path for imports
parent_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if parent_dir not in sys.path:
    sys.path.insert(0, parent_dir)

from dc_finder.config import Config
from dc_finder.constants import LATEST_REPORT_NAME, RESULTS_FILE_NAME, RUN_HISTORY_NAME
from dc_finder.logging import JSONLLogger, ResultStore
from dc_finder.reporting import format_report, generate, provider_breakdown


def _ms(value):
    return "n/a" if value is None else f"{value:.2f} ms"


def show_by_provider(store: ResultStore) -> int:
    records = store.read_all()
    if not records:
        print(f"[WARN] No results in {store.path}")
        return 1
    for provider, locations in provider_breakdown(records).items():
        count = sum(loc.count for loc in locations)
        print(f"\n{provider} ({count} endpoints)")
        print("-" * 60)
        for loc in locations:
            print(f"  {loc.location:<35} {loc.count:>6d}  {_ms(loc.mean_latency_ms):>12}")
    return 0


def show_history(logger: JSONLLogger, limit: int) -> int:
    runs = logger.read_runs(limit)
    if not runs:
        print(f"[INFO] No runs recorded in {logger.log_file}")
        return 0
    print(f"{'Timestamp':<26} {'Status':<10} {'Endpoints':>9} {'Timeout%':>9} {'Mean':>12}")
    print("-" * 70)
    for run in runs:
        latency = run.get("latency_ms") or {}
        print(f"{run.get('timestamp', '?'):<26} {run.get('status', '?'):<10} "
              f"{run.get('endpoints', 0):>9d} {run.get('timeout_ratio_pct', 0.0):>8.1f}% "
              f"{_ms(latency.get('mean')):>12}")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Show or rebuild the analysis report")
    parser.add_argument('--config', default='config.json',
                        help='Path to config file (default: config.json)')
    group = parser.add_mutually_exclusive_group()
    group.add_argument('--regenerate', action='store_true',
                       help='Rebuild the report from the results file and save it')
    group.add_argument('--by-provider', action='store_true',
                       help='List locations grouped under each provider')
    group.add_argument('--history', type=int, metavar='N',
                       help='Show the last N runs from the run history')
    args = parser.parse_args()

    config = Config(args.config)
    report_path = os.path.join(config.report_dir, LATEST_REPORT_NAME)
    store = ResultStore(os.path.join(config.work_dir, RESULTS_FILE_NAME))

    if args.by_provider:
        return show_by_provider(store)
    if args.history is not None:
        return show_history(JSONLLogger(os.path.join(config.report_dir, RUN_HISTORY_NAME)), args.history)

    if args.regenerate:
        records = store.read_all()
        if not records:
            print(f"[WARN] No results in {store.path}")
            return 1
        text = format_report(generate(records, config.recommendation_count, config.nearest_count))
        with open(report_path, "w") as f:
            f.write(text)
        print(text)
        print(f"[OK] Report saved to {report_path}")
        return 0

    if not os.path.exists(report_path):
        print(f"[WARN] No report at {report_path}; run analyze_endpoints.py or use --regenerate")
        return 1
    with open(report_path, "r") as f:
        print(f.read(), end="")
    return 0


if __name__ == "__main__":
    sys.exit(main())
