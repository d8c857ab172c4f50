import threading

from dc_finder.classification import ClassificationResolver, ClassificationRules, IpinfoTier
from dc_finder.constants import LATENCY_TIMEOUT
from dc_finder.logging import ResultStore
from dc_finder.models import RunState
from dc_finder.probing import ProbeScheduler

ENDPOINTS = [f"8.8.{i // 250}.{i % 250 + 1}" for i in range(40)]


def _latencies():
    return {ip: float(i + 1) for i, ip in enumerate(ENDPOINTS) if i % 7}


def test_every_endpoint_produces_one_record(tmp_path, fake_engine, fake_resolver):
    store = ResultStore(str(tmp_path / "results.txt"))
    scheduler = ProbeScheduler(fake_engine(_latencies()), fake_resolver(), store)

    results = scheduler.run(ENDPOINTS, concurrency=8)

    assert len(results) == len(ENDPOINTS)
    assert sorted(r.endpoint for r in results) == sorted(ENDPOINTS)
    assert len(store.read_all()) == len(ENDPOINTS)


def test_concurrency_bound_is_never_exceeded(tmp_path, fake_engine, fake_resolver):
    store = ResultStore(str(tmp_path / "results.txt"))
    scheduler = ProbeScheduler(fake_engine(_latencies(), delay=0.02), fake_resolver(), store)

    scheduler.run(ENDPOINTS, concurrency=4)

    assert 1 <= scheduler.max_active <= 4
    assert scheduler.active == 0


def test_width_one_and_ten_give_same_records(tmp_path, fake_engine, fake_resolver):
    narrow = ProbeScheduler(fake_engine(_latencies()), fake_resolver(),
                            ResultStore(str(tmp_path / "narrow.txt")))
    wide = ProbeScheduler(fake_engine(_latencies()), fake_resolver(),
                          ResultStore(str(tmp_path / "wide.txt")))

    narrow_results = narrow.run(ENDPOINTS, concurrency=1)
    wide_results = wide.run(ENDPOINTS, concurrency=10)

    assert {r.identity() for r in narrow_results} == {r.identity() for r in wide_results}
    assert ({r.identity() for r in narrow.store.read_all()}
            == {r.identity() for r in wide.store.read_all()})


def test_failing_resolver_keeps_measured_latency(tmp_path, fake_engine, capsys):
    class BrokenResolver:
        def resolve(self, endpoint):
            raise RuntimeError("lookup exploded")

    latencies = _latencies()
    store = ResultStore(str(tmp_path / "results.txt"))
    scheduler = ProbeScheduler(fake_engine(latencies), BrokenResolver(), store)

    results = scheduler.run(ENDPOINTS[:5], concurrency=2)

    assert len(results) == 5
    assert all(r.provider == "Unknown" and r.location == "Unknown Location" for r in results)
    for r in results:
        assert r.latency_ms == latencies.get(r.endpoint, LATENCY_TIMEOUT)
    assert sum(not r.timed_out for r in results) == 4
    assert {r.identity() for r in store.read_all()} == {r.identity() for r in results}
    assert "lookup exploded" in capsys.readouterr().out


def test_failing_engine_still_classifies(tmp_path, fake_resolver, capsys):
    class BrokenEngine:
        def probe(self, endpoint):
            raise RuntimeError("socket exploded")

    scheduler = ProbeScheduler(BrokenEngine(), fake_resolver(), ResultStore(str(tmp_path / "results.txt")))

    results = scheduler.run(ENDPOINTS[:3], concurrency=2)

    assert len(results) == 3
    assert all(r.timed_out and r.provider == "AWS" for r in results)
    assert "socket exploded" in capsys.readouterr().out


def test_progress_counter_reaches_total(tmp_path, fake_engine, fake_resolver):
    state = RunState(total=0, concurrency=0)
    seen = []
    seen_lock = threading.Lock()

    def on_progress(completed, total, endpoint, record):
        with seen_lock:
            seen.append((completed, total))

    scheduler = ProbeScheduler(fake_engine(_latencies()), fake_resolver(),
                               ResultStore(str(tmp_path / "results.txt")), state)
    scheduler.run(ENDPOINTS, concurrency=6, on_progress=on_progress)

    assert state.completed == len(ENDPOINTS)
    assert sorted(c for c, _ in seen) == list(range(1, len(ENDPOINTS) + 1))
    assert all(t == len(ENDPOINTS) for _, t in seen)


def test_cancel_stops_submitting_work(tmp_path, fake_engine, fake_resolver):
    scheduler = ProbeScheduler(fake_engine(_latencies(), delay=0.02), fake_resolver(),
                               ResultStore(str(tmp_path / "results.txt")))

    def on_progress(completed, total, endpoint, record):
        if completed == 3:
            scheduler.cancel()

    results = scheduler.run(ENDPOINTS, concurrency=2, on_progress=on_progress)

    assert scheduler.cancelled
    assert 3 <= len(results) < len(ENDPOINTS)


def test_cancel_before_run_processes_nothing(tmp_path, fake_engine, fake_resolver):
    scheduler = ProbeScheduler(fake_engine(), fake_resolver(), ResultStore(str(tmp_path / "results.txt")))
    scheduler.cancel()

    assert scheduler.run(ENDPOINTS, concurrency=4) == []


def test_bound_instrumentation_resets_between_runs(tmp_path, fake_engine, fake_resolver):
    scheduler = ProbeScheduler(fake_engine(_latencies(), delay=0.02), fake_resolver(),
                               ResultStore(str(tmp_path / "results.txt")))

    scheduler.run(ENDPOINTS[:12], concurrency=6)
    results = scheduler.run(ENDPOINTS[:5], concurrency=1)

    assert len(results) == 5
    assert scheduler.max_active == 1
    assert scheduler.active == 0


def test_malformed_lookup_response_keeps_latency_and_organization(tmp_path, fake_engine, monkeypatch):
    monkeypatch.setattr("dc_finder.classification.lookups.fetch_json",
                        lambda url, timeout, headers=None: {"org": "AS16509 Amazon", "city": 5, "country": "JP"})
    resolver = ClassificationResolver(ClassificationRules(), [IpinfoTier()])
    scheduler = ProbeScheduler(fake_engine({"3.112.1.1": 12.5}), resolver,
                               ResultStore(str(tmp_path / "results.txt")))

    [record] = scheduler.run(["3.112.1.1"], concurrency=1)

    assert record.latency_ms == 12.5
    assert record.provider == "AWS"
    assert record.location == "Unknown Location"
