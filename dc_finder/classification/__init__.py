"""Provider and location classification for the datacenter finder."""

from .cache import ResolutionCache
from .geoip_db import ensure_databases
from .lookups import (
    AsnDatabaseTier, IpApiTier, IpinfoTier, LookupResult, LookupTier, WhoisTier, build_tiers,
)
from .resolver import ClassificationResolver
from .rules import ClassificationRules

__all__ = ['ResolutionCache', 'ensure_databases', 'AsnDatabaseTier', 'IpApiTier', 'IpinfoTier',
           'LookupResult', 'LookupTier', 'WhoisTier', 'build_tiers', 'ClassificationResolver',
           'ClassificationRules']
