"""Aggregate statistics and the plain-text analysis report."""

from collections import OrderedDict
from typing import Dict, List, Optional, Tuple

from ..models import AggregateReport, LatencySummary, LocationStats, ProviderStats, ResultRecord
from ..utils import truncate

# Rows shown in the provider and location ranking tables
RANKING_LIMIT = 20
RULE_WIDTH = 94


def _mean(values: List[float]) -> Optional[float]:
    if not values:
        return None
    return sum(values) / len(values)


def _mean_sort_key(mean: Optional[float]) -> Tuple[int, float]:
    # n/a sorts after every real mean
    return (1, 0.0) if mean is None else (0, mean)


def summarize(records: List[ResultRecord]) -> LatencySummary:
    """Global latency summary over the responsive records."""
    latencies = [r.latency_ms for r in records if not r.timed_out]
    total = len(records)
    timeouts = total - len(latencies)
    return LatencySummary(
        total=total,
        responsive=len(latencies),
        timeouts=timeouts,
        timeout_ratio_pct=(timeouts / total * 100) if total else 0.0,
        min_ms=min(latencies) if latencies else None,
        max_ms=max(latencies) if latencies else None,
        mean_ms=_mean(latencies),
    )


def provider_stats(records: List[ResultRecord]) -> List[ProviderStats]:
    """Per-provider count, share, mean latency and availability.

    Sorted by count descending, then provider name.
    """
    total = len(records)
    grouped: Dict[str, List[ResultRecord]] = {}
    for record in records:
        grouped.setdefault(record.provider, []).append(record)

    stats = []
    for provider, group in grouped.items():
        latencies = [r.latency_ms for r in group if not r.timed_out]
        stats.append(ProviderStats(
            provider=provider,
            count=len(group),
            share_pct=len(group) / total * 100,
            mean_latency_ms=_mean(latencies),
            availability_pct=len(latencies) / len(group) * 100,
        ))
    stats.sort(key=lambda s: (-s.count, s.provider))
    return stats


def location_stats(records: List[ResultRecord]) -> List[LocationStats]:
    """Per (provider, location) count and mean latency.

    Sorted by count descending, mean latency ascending (n/a last), then names.
    """
    grouped: Dict[Tuple[str, str], List[ResultRecord]] = {}
    for record in records:
        grouped.setdefault((record.provider, record.location), []).append(record)

    stats = []
    for (provider, location), group in grouped.items():
        latencies = [r.latency_ms for r in group if not r.timed_out]
        stats.append(LocationStats(
            provider=provider,
            location=location,
            count=len(group),
            mean_latency_ms=_mean(latencies),
        ))
    stats.sort(key=lambda s: (-s.count, _mean_sort_key(s.mean_latency_ms), s.provider, s.location))
    return stats


def nearest_endpoints(records: List[ResultRecord], count: int) -> List[ResultRecord]:
    """Responsive endpoints with the lowest latency."""
    responsive = [r for r in records if not r.timed_out]
    responsive.sort(key=lambda r: (r.latency_ms, r.endpoint))
    return responsive[:count]


def generate(records: List[ResultRecord], recommendation_count: int = 3,
             nearest_count: int = 20) -> AggregateReport:
    """Build the aggregate report for one run's records.

    Args:
        records: Every ResultRecord of the run, in any order
        recommendation_count: Number of deployment recommendations
        nearest_count: Number of nearest endpoints to list

    Returns:
        AggregateReport; empty input gives zero totals and no rankings
    """
    records = list(records)
    locations = location_stats(records)
    return AggregateReport(
        summary=summarize(records),
        providers=provider_stats(records),
        locations=locations,
        recommendations=locations[:recommendation_count],
        nearest=nearest_endpoints(records, nearest_count),
    )


def _ms(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value:.2f} ms"


def format_report(report: AggregateReport) -> str:
    """Render the report as plain text.

    The output depends only on the report contents, so the same records
    always render to the same bytes.
    """
    summary = report.summary
    lines: List[str] = []
    add = lines.append

    add("=" * RULE_WIDTH)
    add("Endpoint Datacenter Distribution Report".center(RULE_WIDTH).rstrip())
    add("=" * RULE_WIDTH)
    add("")

    add(f"[Nearest endpoints (top {len(report.nearest)})]")
    add("-" * RULE_WIDTH)
    add(f"{'Endpoint':<15} | {'Provider':<20} | {'Location':<30} | {'Latency (ms)':>15}")
    add("-" * RULE_WIDTH)
    for record in report.nearest:
        add(f"{record.endpoint:<15} | {truncate(record.provider, 20):<20} | "
            f"{truncate(record.location, 30):<30} | {record.latency_ms:>15.2f}")
    add("")

    add("[Latency summary]")
    add("-" * RULE_WIDTH)
    add(f"Total endpoints:   {summary.total:>12d}")
    add(f"Responsive:        {summary.responsive:>12d}")
    add(f"Timeouts:          {summary.timeouts:>12d}")
    add(f"Timeout ratio:     {summary.timeout_ratio_pct:>11.1f}%")
    add(f"Min latency:       {_ms(summary.min_ms):>12}")
    add(f"Max latency:       {_ms(summary.max_ms):>12}")
    add(f"Mean latency:      {_ms(summary.mean_ms):>12}")
    add("")

    add("[Provider distribution]")
    add("-" * RULE_WIDTH)
    if report.providers:
        top = report.providers[0]
        add(f"Dominant provider: {top.provider}")
        add(f"Endpoints: {top.count} (share: {top.share_pct:.1f}%)")
        add("")
    add(f"{'Provider':<25} | {'Count':>8} | {'Share':>8} | {'Mean latency':>15} | {'Availability':>12}")
    add("-" * RULE_WIDTH)
    for stats in report.providers[:RANKING_LIMIT]:
        add(f"{truncate(stats.provider, 25):<25} | {stats.count:>8d} | {stats.share_pct:>7.1f}% | "
            f"{_ms(stats.mean_latency_ms):>15} | {stats.availability_pct:>11.1f}%")
    add("")

    add(f"[Location distribution (top {min(len(report.locations), RANKING_LIMIT)})]")
    add("-" * RULE_WIDTH)
    lines.extend(_location_table(report.locations[:RANKING_LIMIT]))
    add("")

    add("[Deployment recommendations]")
    add("-" * RULE_WIDTH)
    lines.extend(_location_table(report.recommendations))
    add("")
    add("Deployment notes:")
    add("1. Locations hosting many endpoints are already proven by other operators.")
    add("2. Prefer locations with lower mean latency.")
    add("3. Keep two or three locations from different providers as fallbacks.")
    add("4. Re-run the analysis periodically; placement changes over time.")
    add("=" * RULE_WIDTH)
    return "\n".join(lines) + "\n"


def _location_table(rows: List[LocationStats]) -> List[str]:
    table = [
        f"{'Location':<35} | {'Provider':<20} | {'Count':>8} | {'Mean latency':>15}",
        "-" * RULE_WIDTH,
    ]
    for stats in rows:
        table.append(f"{truncate(stats.location, 35):<35} | {truncate(stats.provider, 20):<20} | "
                     f"{stats.count:>8d} | {_ms(stats.mean_latency_ms):>15}")
    return table


def provider_breakdown(records: List[ResultRecord]) -> "OrderedDict[str, List[LocationStats]]":
    """Locations grouped under each provider, providers in ranking order."""
    breakdown: "OrderedDict[str, List[LocationStats]]" = OrderedDict()
    for stats in provider_stats(records):
        breakdown[stats.provider] = []
    for stats in location_stats(records):
        breakdown[stats.provider].append(stats)
    return breakdown
