import json

import pytest

from dc_finder.config import Config
from dc_finder.constants import DEFAULT_PROBE_PORTS, GEOLITE_ASN_URL


def test_defaults_when_file_missing(tmp_path, capsys):
    config = Config(str(tmp_path / "missing.json"), environ={})

    assert config.concurrency == 10
    assert config.timeout_seconds == 2
    assert config.retries == 2
    assert config.cache_ttl_seconds == 86400
    assert config.probe_ports == DEFAULT_PROBE_PORTS
    assert "[WARN]" in capsys.readouterr().out


def test_values_from_file(make_config):
    config = make_config(concurrency=50, probe_ports=[80, 443], retries=3)

    assert config.concurrency == 50
    assert config.probe_ports == [80, 443]
    assert config.retries == 3


@pytest.mark.parametrize("key,value", [
    ("concurrency", 0),
    ("concurrency", 201),
    ("timeout_seconds", 11),
    ("retries", 0),
    ("retries", 6),
    ("cache_ttl_seconds", -1),
    ("geoip_max_age_days", -1),
    ("asn_database_url", 5),
    ("concurrency", "10"),
    ("concurrency", True),
    ("probe_ports", []),
    ("probe_ports", [0]),
    ("probe_ports", [70000]),
    ("endpoint_command", "solana gossip"),
])
def test_out_of_range_values_exit(make_config, capsys, key, value):
    with pytest.raises(SystemExit) as exc_info:
        make_config(**{key: value})

    assert exc_info.value.code == 1
    assert "[ERROR]" in capsys.readouterr().out


def test_invalid_json_exits(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")

    with pytest.raises(SystemExit):
        Config(str(path), environ={})


def test_environment_overrides_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"concurrency": 5, "work_dir": str(tmp_path / "work")}))
    environ = {
        "DCF_CONCURRENCY": "25",
        "DCF_PROBE_PORTS": "22, 443",
        "DCF_ENDPOINT_COMMAND": "cat '/tmp/my endpoints.txt'",
        "UNRELATED": "x",
    }

    config = Config(str(path), environ=environ)

    assert config.concurrency == 25
    assert config.probe_ports == [22, 443]
    assert config.endpoint_command == ["cat", "/tmp/my endpoints.txt"]
    assert config.work_dir == str(tmp_path / "work")


def test_non_numeric_environment_override_exits(tmp_path):
    with pytest.raises(SystemExit):
        Config(str(tmp_path / "missing.json"), environ={"DCF_RETRIES": "many"})


def test_database_paths_default_under_report_dir(make_config, tmp_path):
    config = make_config()

    assert config.asn_database_path == str(tmp_path / "reports" / "asn_db" / "GeoLite2-ASN.mmdb")
    assert config.city_database_path == str(tmp_path / "reports" / "asn_db" / "GeoLite2-City.mmdb")


def test_database_download_settings(make_config):
    assert make_config().asn_database_url == GEOLITE_ASN_URL
    assert make_config().geoip_max_age_days == 30

    config = make_config(city_database_url=None, geoip_max_age_days=0)

    assert config.city_database_url == ""
    assert config.geoip_max_age_days == 0


def test_probe_ports_returns_copy(make_config):
    config = make_config()

    config.probe_ports.append(1)

    assert config.probe_ports == DEFAULT_PROBE_PORTS
