"""Configuration management for the datacenter finder."""

import json
import os
import shlex
import sys
from typing import Any, Dict, List, Mapping, Optional

from .constants import (
    DEFAULT_CACHE_TTL_SECONDS, DEFAULT_CONCURRENCY, DEFAULT_ENDPOINT_COMMAND,
    DEFAULT_GEOIP_MAX_AGE_DAYS, DEFAULT_NEGATIVE_CACHE_TTL_SECONDS, DEFAULT_PROBE_PORTS,
    DEFAULT_RETRIES, DEFAULT_TIMEOUT_SECONDS, GEOLITE_ASN_URL, GEOLITE_CITY_URL,
)

ENV_PREFIX = "DCF_"

# option -> (default, minimum, maximum); None bounds are unchecked
_INT_OPTIONS = {
    'concurrency': (DEFAULT_CONCURRENCY, 1, 200),
    'timeout_seconds': (DEFAULT_TIMEOUT_SECONDS, 1, 10),
    'retries': (DEFAULT_RETRIES, 1, 5),
    'cache_ttl_seconds': (DEFAULT_CACHE_TTL_SECONDS, 0, None),
    'negative_cache_ttl_seconds': (DEFAULT_NEGATIVE_CACHE_TTL_SECONDS, 0, None),
    'api_timeout_seconds': (5, 1, 30),
    'whois_timeout_seconds': (10, 1, 60),
    'geoip_max_age_days': (DEFAULT_GEOIP_MAX_AGE_DAYS, 0, None),
    'geoip_download_timeout_seconds': (60, 1, 600),
    'endpoint_command_timeout_seconds': (30, 1, 600),
    'endpoint_command_retries': (3, 1, 10),
    'recommendation_count': (3, 1, 50),
    'nearest_count': (20, 1, 500),
    'stop_grace_seconds': (5, 1, 120),
}

_STR_OPTIONS = {
    'ipinfo_token': "",
    'asn_database_path': "",
    'city_database_path': "",
    'asn_database_url': GEOLITE_ASN_URL,
    'city_database_url': GEOLITE_CITY_URL,
    'classification_rules_file': "",
    'report_dir': "~/dc_finder_reports",
    'work_dir': "/tmp/dc_finder",
}

_PATH_OPTIONS = (
    'asn_database_path', 'city_database_path', 'classification_rules_file',
    'report_dir', 'work_dir',
)


class Config:
    """Immutable, validated configuration.

    Values come from the JSON file, then `DCF_<OPTION>` environment
    variables override them. Every component receives this object at
    construction; nothing reads process-wide state afterwards.
    """

    def __init__(self, config_path: str = "config.json",
                 environ: Optional[Mapping[str, str]] = None):
        """Load and validate configuration.

        Args:
            config_path: Path to configuration file (missing file means defaults)
            environ: Environment mapping for overrides (defaults to os.environ)
        """
        self._config_path = config_path
        self._load_and_validate(config_path, os.environ if environ is None else environ)

    def _load_and_validate(self, config_path: str, environ: Mapping[str, str]) -> None:
        """Load configuration, apply environment overrides and validate ranges."""
        try:
            raw: Dict[str, Any] = {}
            if config_path and os.path.exists(config_path):
                with open(config_path, 'r') as f:
                    raw = json.load(f)
                if not isinstance(raw, dict):
                    raise ValueError("top-level JSON value must be an object")
            else:
                print(f"[WARN] Configuration file '{config_path}' not found, using defaults")

            raw.update(self._env_overrides(environ))
            self._data = self._validate(raw)

        except json.JSONDecodeError as e:
            print(f"[ERROR] Invalid JSON in configuration file: {e}")
            sys.exit(1)
        except (ValueError, TypeError) as e:
            print(f"[ERROR] Invalid configuration: {e}")
            sys.exit(1)
        except OSError as e:
            print(f"[ERROR] Error loading config: {e}")
            sys.exit(1)

    @staticmethod
    def _env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
        """Collect DCF_* overrides; lists are comma-separated, the command is shell-split."""
        overrides: Dict[str, Any] = {}
        for key in list(_INT_OPTIONS) + list(_STR_OPTIONS) + ['probe_ports', 'endpoint_command']:
            env_key = ENV_PREFIX + key.upper()
            if env_key not in environ:
                continue
            value = environ[env_key]
            if key in _INT_OPTIONS:
                overrides[key] = int(value)
            elif key == 'probe_ports':
                overrides[key] = [int(p) for p in value.split(',') if p.strip()]
            elif key == 'endpoint_command':
                overrides[key] = shlex.split(value)
            else:
                overrides[key] = value
        return overrides

    @staticmethod
    def _validate(raw: Dict[str, Any]) -> Dict[str, Any]:
        data: Dict[str, Any] = {}

        for key, (default, minimum, maximum) in _INT_OPTIONS.items():
            value = raw.get(key, default)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{key} must be an integer, got {value!r}")
            if minimum is not None and value < minimum:
                raise ValueError(f"{key} must be >= {minimum}, got {value}")
            if maximum is not None and value > maximum:
                raise ValueError(f"{key} must be <= {maximum}, got {value}")
            data[key] = value

        for key, default in _STR_OPTIONS.items():
            value = raw.get(key, default)
            if value is None:
                value = ""
            if not isinstance(value, str):
                raise ValueError(f"{key} must be a string, got {value!r}")
            data[key] = os.path.expanduser(value) if key in _PATH_OPTIONS else value

        ports = raw.get('probe_ports', DEFAULT_PROBE_PORTS)
        if not isinstance(ports, list) or not ports:
            raise ValueError("probe_ports must be a non-empty list")
        for port in ports:
            if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 65535:
                raise ValueError(f"invalid probe port: {port!r}")
        data['probe_ports'] = tuple(ports)

        command = raw.get('endpoint_command', DEFAULT_ENDPOINT_COMMAND)
        if not isinstance(command, list) or not command or not all(isinstance(c, str) for c in command):
            raise ValueError("endpoint_command must be a non-empty list of strings")
        data['endpoint_command'] = tuple(command)

        # Database paths default to the report directory
        asn_db_dir = os.path.join(data['report_dir'], "asn_db")
        if not data['asn_database_path']:
            data['asn_database_path'] = os.path.join(asn_db_dir, "GeoLite2-ASN.mmdb")
        if not data['city_database_path']:
            data['city_database_path'] = os.path.join(asn_db_dir, "GeoLite2-City.mmdb")

        return data

    @property
    def config_path(self) -> str:
        """Path the configuration was loaded from."""
        return self._config_path

    @property
    def concurrency(self) -> int:
        """Worker pool width."""
        return self._data['concurrency']

    @property
    def timeout_seconds(self) -> int:
        """Per-connection probe timeout."""
        return self._data['timeout_seconds']

    @property
    def retries(self) -> int:
        """Probe attempts per endpoint."""
        return self._data['retries']

    @property
    def probe_ports(self) -> List[int]:
        """Ports tried in order on each probe attempt."""
        return list(self._data['probe_ports'])

    @property
    def cache_ttl_seconds(self) -> int:
        """Lifetime of resolved classification cache entries."""
        return self._data['cache_ttl_seconds']

    @property
    def negative_cache_ttl_seconds(self) -> int:
        """Lifetime of cached "Unknown" classifications."""
        return self._data['negative_cache_ttl_seconds']

    @property
    def api_timeout_seconds(self) -> int:
        """Timeout for metadata API requests."""
        return self._data['api_timeout_seconds']

    @property
    def whois_timeout_seconds(self) -> int:
        """Timeout for whois lookups."""
        return self._data['whois_timeout_seconds']

    @property
    def ipinfo_token(self) -> str:
        """Optional ipinfo.io bearer token."""
        return self._data['ipinfo_token']

    @property
    def asn_database_path(self) -> str:
        """GeoLite2 ASN database file."""
        return self._data['asn_database_path']

    @property
    def city_database_path(self) -> str:
        """GeoLite2 City database file."""
        return self._data['city_database_path']

    @property
    def asn_database_url(self) -> str:
        """Download URL for the ASN database (empty disables the download)."""
        return self._data['asn_database_url']

    @property
    def city_database_url(self) -> str:
        """Download URL for the City database (empty disables the download)."""
        return self._data['city_database_url']

    @property
    def geoip_max_age_days(self) -> int:
        """Age after which a database file is downloaded again (0 never refreshes)."""
        return self._data['geoip_max_age_days']

    @property
    def geoip_download_timeout_seconds(self) -> int:
        """Socket timeout for database downloads."""
        return self._data['geoip_download_timeout_seconds']

    @property
    def classification_rules_file(self) -> str:
        """Optional JSON file with extra normalization rules."""
        return self._data['classification_rules_file']

    @property
    def endpoint_command(self) -> List[str]:
        """External command that lists candidate endpoints."""
        return list(self._data['endpoint_command'])

    @property
    def endpoint_command_timeout_seconds(self) -> int:
        """Timeout for one run of the endpoint command."""
        return self._data['endpoint_command_timeout_seconds']

    @property
    def endpoint_command_retries(self) -> int:
        """Attempts at running the endpoint command."""
        return self._data['endpoint_command_retries']

    @property
    def report_dir(self) -> str:
        """Directory for reports, logs and the resolution cache."""
        return self._data['report_dir']

    @property
    def work_dir(self) -> str:
        """Directory for per-run state: results, lock, PID and progress files."""
        return self._data['work_dir']

    @property
    def recommendation_count(self) -> int:
        """Number of deployment recommendations in the report."""
        return self._data['recommendation_count']

    @property
    def nearest_count(self) -> int:
        """Number of nearest endpoints listed in the report."""
        return self._data['nearest_count']

    @property
    def stop_grace_seconds(self) -> int:
        """Seconds between SIGTERM and SIGKILL when stopping a detached task."""
        return self._data['stop_grace_seconds']
