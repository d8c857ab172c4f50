"""Lookup tiers that turn an address into raw organization and location data.

Each tier returns a LookupResult or None. Failures inside a tier are
reported as warnings and come back as None; they never propagate.
"""

import http.client
import json
import os
import re
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import geoip2.database
import geoip2.errors
import maxminddb
from ipwhois import IPWhois
from ipwhois.exceptions import BaseIpwhoisException

from ..config import Config
from ..constants import (
    IP_API_URL, IPINFO_URL, SOURCE_API_PRIMARY, SOURCE_API_SECONDARY,
    SOURCE_ASN_DB, SOURCE_WHOIS,
)
from .geoip_db import ensure_databases

ASN_PREFIX_PATTERN = re.compile(r'^AS(\d+)\s*', re.IGNORECASE)


@dataclass
class LookupResult:
    """Raw, un-normalized output of one tier."""
    organization: str = ""
    location: str = ""
    asn: Optional[int] = None


def text_field(value: Any) -> str:
    """Strip a raw response field; anything other than a string counts as empty."""
    return value.strip() if isinstance(value, str) else ""


def format_location(city: Any, region: Any, country: Any) -> str:
    """Build "city, region, country"; city and country are required."""
    city = text_field(city)
    region = text_field(region)
    country = text_field(country)
    if not city or not country:
        return ""
    if region and region != city:
        return f"{city}, {region}, {country}"
    return f"{city}, {country}"


def split_asn_prefix(value: Any) -> Tuple[Optional[int], str]:
    """Split "AS16509 Amazon.com, Inc." into (16509, "Amazon.com, Inc.")."""
    value = text_field(value)
    match = ASN_PREFIX_PATTERN.match(value)
    if not match:
        return None, value
    return int(match.group(1)), value[match.end():].strip()


def fetch_json(url: str, timeout: float, headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """GET a URL and decode a JSON object body.

    Raises:
        urllib.error.URLError, OSError, http.client.HTTPException, ValueError:
            On transport or decode failure
    """
    request = urllib.request.Request(url, headers=headers or {})
    with urllib.request.urlopen(request, timeout=timeout) as response:
        data = json.loads(response.read().decode('utf-8'))
    if not isinstance(data, dict):
        raise ValueError("response is not a JSON object")
    return data


class LookupTier:
    """Base class for one step of the fallback chain."""

    name = ""

    def lookup(self, ip: str) -> Optional[LookupResult]:
        raise NotImplementedError

    def close(self) -> None:
        pass


class AsnDatabaseTier(LookupTier):
    """Offline lookup against GeoLite2 ASN and City databases."""

    name = SOURCE_ASN_DB

    def __init__(self, asn_database_path: str, city_database_path: str = ""):
        """Open whichever database files exist.

        Args:
            asn_database_path: GeoLite2-ASN.mmdb path
            city_database_path: GeoLite2-City.mmdb path (optional)
        """
        self.asn_reader = self._open(asn_database_path)
        self.city_reader = self._open(city_database_path)

    @staticmethod
    def _open(path: str) -> Optional[geoip2.database.Reader]:
        if not path or not os.path.exists(path):
            return None
        try:
            return geoip2.database.Reader(path)
        except (OSError, ValueError, maxminddb.InvalidDatabaseError) as e:
            print(f"[WARN] Cannot open GeoIP database {path}: {e}")
            return None

    @property
    def available(self) -> bool:
        return self.asn_reader is not None or self.city_reader is not None

    def lookup(self, ip: str) -> Optional[LookupResult]:
        if not self.available:
            return None

        result = LookupResult()
        if self.asn_reader is not None:
            try:
                response = self.asn_reader.asn(ip)
                result.asn = response.autonomous_system_number
                result.organization = response.autonomous_system_organization or ""
            except geoip2.errors.AddressNotFoundError:
                pass
            except (geoip2.errors.GeoIP2Error, ValueError, maxminddb.InvalidDatabaseError) as e:
                print(f"[WARN] ASN database lookup failed for {ip}: {e}")

        if self.city_reader is not None:
            try:
                response = self.city_reader.city(ip)
                result.location = format_location(
                    response.city.name,
                    response.subdivisions.most_specific.name,
                    response.country.name
                )
            except geoip2.errors.AddressNotFoundError:
                pass
            except (geoip2.errors.GeoIP2Error, ValueError, maxminddb.InvalidDatabaseError) as e:
                print(f"[WARN] City database lookup failed for {ip}: {e}")

        if not result.organization and result.asn is None and not result.location:
            return None
        return result

    def close(self) -> None:
        for reader in (self.asn_reader, self.city_reader):
            if reader is not None:
                reader.close()
        self.asn_reader = None
        self.city_reader = None


class IpinfoTier(LookupTier):
    """ipinfo.io JSON API, optionally authenticated with a bearer token."""

    name = SOURCE_API_PRIMARY

    def __init__(self, token: str = "", timeout: float = 5):
        self.token = token
        self.timeout = timeout

    def lookup(self, ip: str) -> Optional[LookupResult]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            data = fetch_json(IPINFO_URL.format(ip=ip), self.timeout, headers)
        except (urllib.error.URLError, OSError, http.client.HTTPException, ValueError) as e:
            print(f"[WARN] ipinfo.io lookup failed for {ip}: {e}")
            return None

        asn, organization = split_asn_prefix(data.get("org"))
        location = format_location(data.get("city"), data.get("region"), data.get("country"))
        if not organization and not location:
            return None
        return LookupResult(organization=organization, location=location, asn=asn)


class IpApiTier(LookupTier):
    """ip-api.com JSON API."""

    name = SOURCE_API_SECONDARY

    def __init__(self, timeout: float = 5):
        self.timeout = timeout

    def lookup(self, ip: str) -> Optional[LookupResult]:
        try:
            data = fetch_json(IP_API_URL.format(ip=ip), self.timeout)
        except (urllib.error.URLError, OSError, http.client.HTTPException, ValueError) as e:
            print(f"[WARN] ip-api.com lookup failed for {ip}: {e}")
            return None

        if data.get("status") != "success":
            return None

        asn, _ = split_asn_prefix(data.get("as"))
        organization = text_field(data.get("isp")) or text_field(data.get("org"))
        location = format_location(data.get("city"), data.get("regionName"), data.get("country"))
        if not organization and not location and asn is None:
            return None
        return LookupResult(organization=organization, location=location, asn=asn)


class WhoisTier(LookupTier):
    """Registry whois lookup through ipwhois."""

    name = SOURCE_WHOIS

    def __init__(self, timeout: float = 10):
        self.timeout = timeout

    def lookup(self, ip: str) -> Optional[LookupResult]:
        try:
            data = IPWhois(ip, timeout=self.timeout).lookup_whois()
        except (BaseIpwhoisException, OSError, ValueError) as e:
            print(f"[WARN] whois lookup failed for {ip}: {e}")
            return None

        nets = data.get("nets")
        first = nets[0] if isinstance(nets, list) and nets and isinstance(nets[0], dict) else {}
        organization = (text_field(first.get("description")) or text_field(first.get("name"))
                        or text_field(data.get("asn_description")))
        # Multi-line descr fields: keep the first line
        organization = organization.splitlines()[0] if organization else ""
        location = format_location(first.get("city"), first.get("state"), first.get("country"))

        # "asn" may be "NA" or hold several space-separated numbers
        asn_tokens = str(data.get("asn") or "").split()
        asn = int(asn_tokens[0]) if asn_tokens and asn_tokens[0].isdigit() else None

        if not organization and not location and asn is None:
            return None
        return LookupResult(organization=organization, location=location, asn=asn)


def build_tiers(config: Config) -> List[LookupTier]:
    """Create the tier chain in resolution order.

    Missing or stale GeoLite2 files are downloaded first. The database
    tier is skipped entirely when neither file is available afterwards.
    """
    ensure_databases(config)
    tiers: List[LookupTier] = []
    database_tier = AsnDatabaseTier(config.asn_database_path, config.city_database_path)
    if database_tier.available:
        tiers.append(database_tier)
    else:
        print(f"[INFO] GeoIP databases not found under {os.path.dirname(config.asn_database_path)}, "
              "skipping offline tier")
    tiers.append(IpinfoTier(config.ipinfo_token, config.api_timeout_seconds))
    tiers.append(IpApiTier(config.api_timeout_seconds))
    tiers.append(WhoisTier(config.whois_timeout_seconds))
    return tiers
