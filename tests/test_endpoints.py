import subprocess

import pytest

from dc_finder.endpoints import (
    EndpointSource, extract_ipv4, filter_endpoints, load_endpoints, normalize_endpoint,
    read_endpoint_file,
)
from dc_finder.exceptions import EndpointSourceError


@pytest.mark.parametrize("candidate,expected", [
    ("8.8.8.8", "8.8.8.8"),
    (" 1.1.1.1 ", "1.1.1.1"),
    ("10.0.0.1", None),
    ("192.168.1.10", None),
    ("172.16.5.4", None),
    ("127.0.0.1", None),
    ("169.254.1.1", None),
    ("224.0.0.1", None),
    ("0.0.0.0", None),
    ("240.0.0.1", None),
    ("100.64.0.1", None),
    ("256.1.1.1", None),
    ("1.2.3", None),
    ("2001:4860:4860::8888", None),
    ("not-an-ip", None),
])
def test_normalize_endpoint(candidate, expected):
    assert normalize_endpoint(candidate) == expected


def test_filter_endpoints_dedups_in_first_seen_order(capsys):
    result = filter_endpoints(["8.8.8.8", "10.0.0.1", "1.1.1.1", "8.8.8.8", "garbage"])

    assert result == ["8.8.8.8", "1.1.1.1"]
    assert "Filtered out 2" in capsys.readouterr().out


def test_extract_ipv4_from_gossip_output():
    output = (
        "IP Address      | Identity                                     | Gossip | TPU\n"
        "----------------+----------------------------------------------+--------+------\n"
        "3.112.45.10     | 7Np41oeYqPefeNQEHSv1UDhYrehxin3NStELsSKCT4K2 | 8001   | 8003\n"
        "52.68.1.200     | 9QxCLckBiJc783jnMvXZubK4wH86Eqqvashtrwvcsgkv | 8001   | 8004\n"
    )

    assert extract_ipv4(output) == ["3.112.45.10", "52.68.1.200"]


def test_read_endpoint_file_skips_comments(tmp_path):
    path = tmp_path / "endpoints.txt"
    path.write_text("# saved list\n\n8.8.8.8\n1.1.1.1 some note\n#9.9.9.9\n")

    assert read_endpoint_file(str(path)) == ["8.8.8.8", "1.1.1.1"]


class StaticSource:
    def __init__(self, candidates):
        self.candidates = candidates
        self.fetched = False

    def fetch(self):
        self.fetched = True
        return self.candidates


def test_load_endpoints_prefers_file(make_config, tmp_path):
    path = tmp_path / "endpoints.txt"
    path.write_text("8.8.8.8\n8.8.8.8\n10.0.0.1\n")
    source = StaticSource(["1.1.1.1"])

    endpoints = load_endpoints(make_config(), str(path), source)

    assert endpoints == ["8.8.8.8"]
    assert not source.fetched


def test_load_endpoints_falls_back_to_command(make_config, tmp_path):
    source = StaticSource(["1.1.1.1", "9.9.9.9"])

    endpoints = load_endpoints(make_config(), str(tmp_path / "missing.txt"), source)

    assert endpoints == ["1.1.1.1", "9.9.9.9"]
    assert source.fetched


def test_load_endpoints_raises_when_nothing_valid(make_config):
    with pytest.raises(EndpointSourceError):
        load_endpoints(make_config(), None, StaticSource(["10.0.0.1", "127.0.0.1"]))


def test_endpoint_source_missing_command_is_fatal(monkeypatch):
    def _missing(*args, **kwargs):
        raise FileNotFoundError("solana")

    monkeypatch.setattr(subprocess, "run", _missing)

    with pytest.raises(EndpointSourceError, match="not found"):
        EndpointSource(["solana", "gossip"], retries=3, retry_delay=0).fetch()


def test_endpoint_source_retries_then_succeeds(monkeypatch):
    attempts = []

    def _run(command, **kwargs):
        attempts.append(command)
        if len(attempts) < 2:
            raise subprocess.TimeoutExpired(command, kwargs["timeout"])
        return subprocess.CompletedProcess(command, 0, stdout="8.8.8.8 | node\n", stderr="")

    monkeypatch.setattr(subprocess, "run", _run)

    candidates = EndpointSource(["solana", "gossip"], timeout=1, retries=3, retry_delay=0).fetch()

    assert candidates == ["8.8.8.8"]
    assert len(attempts) == 2


def test_endpoint_source_gives_up_after_retries(monkeypatch):
    def _fail(command, **kwargs):
        return subprocess.CompletedProcess(command, 1, stdout="", stderr="rpc error\n")

    monkeypatch.setattr(subprocess, "run", _fail)

    with pytest.raises(EndpointSourceError, match="after 2 attempts"):
        EndpointSource(["solana", "gossip"], retries=2, retry_delay=0).fetch()
