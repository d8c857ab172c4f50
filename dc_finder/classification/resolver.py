"""Classification of endpoints into provider and location labels."""

import os
import time
from dataclasses import replace
from typing import Callable, List, Optional

from ..config import Config
from ..constants import CACHE_DIR_NAME, SOURCE_CACHE, SOURCE_UNKNOWN
from ..models import ClassificationRecord
from .cache import ResolutionCache
from .lookups import LookupTier, build_tiers
from .rules import ClassificationRules


class ClassificationResolver:
    """Resolves an endpoint through the cache and the ordered lookup tiers.

    Tiers fill the organization and the location independently; a later
    tier is only consulted while one of them is still missing. The result
    is normalized through the rule tables and written back to the cache.
    """

    def __init__(self, rules: ClassificationRules, tiers: List[LookupTier],
                 cache: Optional[ResolutionCache] = None,
                 clock: Callable[[], float] = time.time):
        """Initialize classification resolver.

        Args:
            rules: Normalization tables
            tiers: Lookup tiers in resolution order
            cache: Resolution cache (None disables caching)
            clock: Source of epoch seconds for resolved_at
        """
        self.rules = rules
        self.tiers = tiers
        self.cache = cache
        self.clock = clock

    @classmethod
    def from_config(cls, config: Config) -> "ClassificationResolver":
        """Build the resolver with rules, tiers and cache from configuration."""
        rules = ClassificationRules.load(config.classification_rules_file)
        cache = ResolutionCache(
            os.path.join(config.report_dir, CACHE_DIR_NAME),
            ttl=config.cache_ttl_seconds,
            negative_ttl=config.negative_cache_ttl_seconds
        )
        return cls(rules, build_tiers(config), cache)

    def resolve(self, endpoint: str) -> ClassificationRecord:
        """Resolve one endpoint. Always returns a record.

        Args:
            endpoint: IPv4 address

        Returns:
            ClassificationRecord, with Unknown labels when every tier failed
        """
        if self.cache is not None:
            cached = self.cache.get(endpoint)
            if cached is not None:
                return replace(cached, source=SOURCE_CACHE)

        organization = ""
        asn = None
        location = ""
        provider_source = None
        location_source = None

        for tier in self.tiers:
            try:
                result = tier.lookup(endpoint)
            except Exception as e:
                # A broken tier must not cut the chain short
                print(f"[WARN] {tier.name} lookup raised for {endpoint}: {e!r}", flush=True)
                continue
            if result is None:
                continue

            if not organization and asn is None and (result.organization or result.asn is not None):
                organization = result.organization
                asn = result.asn
                provider_source = tier.name
            elif not organization and result.organization:
                organization = result.organization

            if not location and result.location:
                location = result.location
                location_source = tier.name

            if (organization or asn is not None) and location:
                break

        provider, display_location, region_code = self.rules.normalize(organization, location, asn)
        record = ClassificationRecord(
            endpoint=endpoint,
            provider=provider,
            location=display_location,
            source=provider_source or location_source or SOURCE_UNKNOWN,
            resolved_at=self.clock(),
            region_code=region_code,
        )

        if self.cache is not None:
            self.cache.put(record)
        return record

    def close(self) -> None:
        for tier in self.tiers:
            tier.close()
