"""Shared constants for the datacenter finder."""

from datetime import timezone

# Timezone used for every persisted timestamp
UTC = timezone.utc

# Sentinel latency for "no successful probe"; never a real measurement
LATENCY_TIMEOUT = float("inf")
TIMEOUT_LABEL = "timeout"

# Labels used when every classification tier fails
UNKNOWN_PROVIDER = "Unknown"
UNKNOWN_LOCATION = "Unknown Location"

# Classification sources
SOURCE_CACHE = "cache"
SOURCE_ASN_DB = "asn-db"
SOURCE_API_PRIMARY = "api-primary"
SOURCE_API_SECONDARY = "api-secondary"
SOURCE_WHOIS = "whois"
SOURCE_UNKNOWN = "unknown"

CLASSIFICATION_SOURCES = (
    SOURCE_CACHE, SOURCE_ASN_DB, SOURCE_API_PRIMARY,
    SOURCE_API_SECONDARY, SOURCE_WHOIS, SOURCE_UNKNOWN,
)

# Default values
DEFAULT_CONCURRENCY = 10
DEFAULT_TIMEOUT_SECONDS = 2
DEFAULT_RETRIES = 2
DEFAULT_PROBE_PORTS = [8899, 8900, 8001, 8000]
DEFAULT_CACHE_TTL_SECONDS = 86400
DEFAULT_NEGATIVE_CACHE_TTL_SECONDS = 3600
DEFAULT_ENDPOINT_COMMAND = ["solana", "gossip"]

# Lookup endpoints
IPINFO_URL = "https://ipinfo.io/{ip}/json"
IP_API_URL = "http://ip-api.com/json/{ip}"

# GeoLite2 mirrors; an empty URL in the config turns the download off
GEOLITE_ASN_URL = "https://raw.githubusercontent.com/P3TERX/GeoLite.mmdb/download/GeoLite2-ASN.mmdb"
GEOLITE_CITY_URL = "https://raw.githubusercontent.com/P3TERX/GeoLite.mmdb/download/GeoLite2-City.mmdb"
DEFAULT_GEOIP_MAX_AGE_DAYS = 30

# File names inside work_dir / report_dir
RESULTS_FILE_NAME = "results.txt"
LOCK_FILE_NAME = "dc_finder.lock"
PID_FILE_NAME = "background.pid"
PROGRESS_FILE_NAME = "progress.json"
LATEST_REPORT_NAME = "latest_report.txt"
DETAILED_LOG_NAME = "detailed_analysis.log"
RUN_HISTORY_NAME = "run_history.jsonl"
BACKGROUND_LOG_NAME = "background.log"
CACHE_DIR_NAME = "cache"

# Detached task supervision
START_CONFIRM_SECONDS = 2  # how long start_detached waits before declaring the child alive
STOP_POLL_INTERVAL = 0.2
FOLLOW_POLL_INTERVAL = 0.5

# Detailed log prints a header row every N endpoints
DETAILED_HEADER_EVERY = 20

# Exit codes
EXIT_OK = 0
EXIT_SETUP_FAILURE = 1
EXIT_CANCELLED = 130
