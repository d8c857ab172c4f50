import json
import pathlib
import sys
import time

import pytest

# Ensure project root is on sys.path so 'import dc_finder' works from any cwd
_ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from dc_finder.config import Config
from dc_finder.constants import LATENCY_TIMEOUT, SOURCE_API_PRIMARY
from dc_finder.models import ClassificationRecord, ProbeResult


@pytest.fixture
def make_config(tmp_path):
    """Write a config file under tmp_path and load it with no environment overrides."""
    def _make(**overrides):
        data = {
            "report_dir": str(tmp_path / "reports"),
            "work_dir": str(tmp_path / "work"),
        }
        data.update(overrides)
        path = tmp_path / "config.json"
        path.write_text(json.dumps(data))
        return Config(str(path), environ={})
    return _make


class FakeEngine:
    """Probe engine returning canned latencies (missing endpoints time out)."""

    def __init__(self, latencies=None, delay=0.0):
        self.latencies = latencies or {}
        self.delay = delay

    def probe(self, endpoint):
        if self.delay:
            time.sleep(self.delay)
        return ProbeResult(endpoint, self.latencies.get(endpoint, LATENCY_TIMEOUT),
                           "2024-01-01T00:00:00+00:00")


class FakeResolver:
    """Resolver mapping every endpoint to a fixed provider and location."""

    def __init__(self, mapping=None):
        self.mapping = mapping or {}
        self.calls = []

    def resolve(self, endpoint):
        self.calls.append(endpoint)
        provider, location = self.mapping.get(endpoint, ("AWS", "Tokyo (ap-northeast-1)"))
        return ClassificationRecord(endpoint, provider, location, SOURCE_API_PRIMARY, 0.0)

    def close(self):
        pass


@pytest.fixture
def fake_engine():
    return FakeEngine


@pytest.fixture
def fake_resolver():
    return FakeResolver
