import random

from dc_finder.constants import LATENCY_TIMEOUT
from dc_finder.logging import ResultStore
from dc_finder.models import ResultRecord
from dc_finder.reporting import format_report, generate, provider_breakdown
from dc_finder.reporting.report_generator import location_stats, provider_stats, summarize


def _rec(endpoint, latency, provider="AWS", location="Tokyo (ap-northeast-1)"):
    return ResultRecord(endpoint, provider, location, latency)


MIXED = [
    _rec("3.112.0.1", 1.5),
    _rec("3.112.0.2", 2.5),
    _rec("3.112.0.3", LATENCY_TIMEOUT),
    _rec("13.228.0.1", 70.0, location="Singapore (ap-southeast-1)"),
    _rec("34.84.0.1", 3.0, provider="Google Cloud", location="Tokyo (asia-northeast1)"),
    _rec("34.84.0.2", 5.0, provider="Google Cloud", location="Tokyo (asia-northeast1)"),
    _rec("47.74.0.1", LATENCY_TIMEOUT, provider="Alibaba Cloud", location="Tokyo (ap-northeast-1)"),
    _rec("8.8.8.8", LATENCY_TIMEOUT, provider="Unknown", location="Unknown Location"),
]


def test_three_endpoint_scenario():
    records = [_rec("8.8.8.8", 10.0), _rec("1.1.1.1", 20.0), _rec("9.9.9.9", LATENCY_TIMEOUT)]

    report = generate(records)
    text = format_report(report)

    assert report.summary.total == 3
    assert report.summary.responsive == 2
    assert report.summary.timeouts == 1
    assert round(report.summary.timeout_ratio_pct, 1) == 33.3
    assert report.summary.mean_ms == 15.0
    assert "33.3%" in text
    assert "15.00 ms" in text


def test_provider_shares_sum_to_100():
    stats = provider_stats(MIXED)

    assert abs(sum(s.share_pct for s in stats) - 100.0) < 1e-9
    assert sum(s.count for s in stats) == len(MIXED)


def test_provider_ranking_and_availability():
    stats = provider_stats(MIXED)

    assert [s.provider for s in stats] == ["AWS", "Google Cloud", "Alibaba Cloud", "Unknown"]
    aws = stats[0]
    assert aws.count == 4
    assert aws.availability_pct == 75.0
    assert aws.mean_latency_ms == (1.5 + 2.5 + 70.0) / 3
    assert stats[2].mean_latency_ms is None


def test_location_ranking_breaks_ties_on_mean_latency():
    stats = location_stats(MIXED)

    assert (stats[0].provider, stats[0].location, stats[0].count) == ("AWS", "Tokyo (ap-northeast-1)", 3)
    assert stats[0].mean_latency_ms == 2.0
    # Same count: lower mean first, n/a after every real mean
    singles = [(s.provider, s.mean_latency_ms) for s in stats if s.count == 1]
    assert singles == [("AWS", 70.0), ("Alibaba Cloud", None), ("Unknown", None)]


def test_recommendations_and_nearest():
    report = generate(MIXED, recommendation_count=2, nearest_count=3)

    assert [r.location for r in report.recommendations] == [
        "Tokyo (ap-northeast-1)", "Tokyo (asia-northeast1)"]
    assert [r.endpoint for r in report.nearest] == ["3.112.0.1", "3.112.0.2", "34.84.0.1"]


def test_empty_input():
    report = generate([])
    text = format_report(report)

    assert report.summary.total == 0
    assert report.summary.timeout_ratio_pct == 0.0
    assert report.providers == []
    assert "n/a" in text


def test_all_timeouts_report_na():
    summary = summarize([_rec("8.8.8.8", LATENCY_TIMEOUT), _rec("1.1.1.1", LATENCY_TIMEOUT)])

    assert summary.timeout_ratio_pct == 100.0
    assert summary.mean_ms is None
    assert summary.min_ms is None


def test_report_is_order_independent():
    shuffled = list(MIXED)
    random.Random(7).shuffle(shuffled)

    assert format_report(generate(shuffled)) == format_report(generate(MIXED))


def test_report_from_unchanged_store_is_byte_identical(tmp_path):
    store = ResultStore(str(tmp_path / "results.txt"))
    store.reset()
    for record in MIXED:
        store.append(record)

    first = format_report(generate(store.read_all()))
    second = format_report(generate(store.read_all()))

    assert first.encode() == second.encode()


def test_report_dict_is_json_safe():
    data = generate(MIXED).to_dict()

    assert all(r["latency_ms"] != LATENCY_TIMEOUT for r in data["nearest"])
    assert data["summary"]["total"] == len(MIXED)


def test_provider_breakdown_groups_locations():
    breakdown = provider_breakdown(MIXED)

    assert list(breakdown) == ["AWS", "Google Cloud", "Alibaba Cloud", "Unknown"]
    assert [loc.location for loc in breakdown["AWS"]] == [
        "Tokyo (ap-northeast-1)", "Singapore (ap-southeast-1)"]
