"""
Location Resolver

Best-effort geographic classification of a listing. Strategies are tried in
order and the first hit wins:

1. Permanent store, by listing reference
2. Description cache (sha256 of the description)
3. Development cache (development + district)
4. Completion service, label validation and geocoding

Any miss or upstream failure falls through; when nothing resolves, a
fallback result built from the listing's own district or city is returned.
resolve() never raises.
"""

import logging
import threading
from dataclasses import dataclass, fields
from typing import Callable, List, Optional

from core.comp_engine.errors import UpstreamServiceError
from core.comp_engine.models import PropertyRecord

from .cache import LocationCache, description_key, development_key
from .completion import CompletionClient
from .geocoder import NominatimGeocoder
from .models import (
    METHOD_COMPLETION,
    METHOD_FALLBACK,
    SOURCE_COMPLETION,
    SOURCE_DESCRIPTION_CACHE,
    SOURCE_DEVELOPMENT_CACHE,
    SOURCE_FALLBACK,
    SOURCE_PERMANENT,
    CompletionAnalysis,
    LocationCacheEntry,
    LocationResult,
)
from .store import PERMANENT_CONFIDENCE_THRESHOLD, PermanentLocationStore
from .validation import is_valid_location_label


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Constants
# =============================================================================

MIN_DESCRIPTION_LENGTH = 20

# Completion confidence is reported on a 1-10 scale
CONFIDENCE_SCALE = 10
MIN_CONFIDENCE_POINTS = 1
REJECTED_LABEL_PENALTY = 5

FALLBACK_CONFIDENCE = 0.3
FALLBACK_LABEL = "Unknown location"

# Development-tier writes need at least this confidence
DEVELOPMENT_CACHE_MIN_CONFIDENCE = 0.7


@dataclass
class ResolverMetrics:
    """Counters for one resolver instance."""
    total_queries: int = 0
    permanent_hits: int = 0
    description_cache_hits: int = 0
    development_cache_hits: int = 0
    completion_calls: int = 0
    completion_failures: int = 0
    geocode_calls: int = 0
    fallbacks: int = 0

    @property
    def cache_hits(self) -> int:
        return self.permanent_hits + self.description_cache_hits + self.development_cache_hits

    @property
    def hit_rate(self) -> float:
        if not self.total_queries:
            return 0.0
        return round(self.cache_hits / self.total_queries, 3)

    def to_dict(self) -> dict:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["cache_hits"] = self.cache_hits
        data["hit_rate"] = self.hit_rate
        return data


class LocationResolver:
    """
    Resolves a listing to a place label, optional coordinates and confidence.

    Every collaborator is optional: with none configured, every call returns
    the fallback result.
    """

    def __init__(
        self,
        completion: Optional[CompletionClient] = None,
        geocoder: Optional[NominatimGeocoder] = None,
        store: Optional[PermanentLocationStore] = None,
        cache: Optional[LocationCache] = None,
    ):
        """
        Args:
            completion: Completion-service client
            geocoder: Geocoding client for resolved labels
            store: Permanent store keyed by listing reference
            cache: In-memory description/development cache
        """
        self._completion = completion
        self._geocoder = geocoder
        self._store = store
        self._cache = cache or LocationCache()
        self._metrics = ResolverMetrics()
        self._metrics_lock = threading.Lock()

        self._strategies: List[Callable[[PropertyRecord], Optional[LocationResult]]] = [
            self._from_permanent_store,
            self._from_description_cache,
            self._from_development_cache,
            self._from_completion,
        ]

    @property
    def cache(self) -> LocationCache:
        return self._cache

    @property
    def metrics(self) -> ResolverMetrics:
        return self._metrics

    def resolve(self, record: PropertyRecord) -> LocationResult:
        """
        Resolve a listing's location.

        Args:
            record: Listing to resolve (description, reference and address
                    components are used)

        Returns:
            LocationResult; method "fallback" when nothing resolved
        """
        self._count("total_queries")

        for strategy in self._strategies:
            result = strategy(record)
            if result is not None:
                return result

        self._count("fallbacks")
        logger.debug(
            "No location resolved for %s", record.identity,
            extra={"subject": record.identity, "source": SOURCE_FALLBACK},
        )
        return self.fallback(record)

    @staticmethod
    def fallback(record: PropertyRecord, reason: str = "No specific location resolved") -> LocationResult:
        """Basic result from the listing's own district or city."""
        return LocationResult(
            label=record.district or record.city or FALLBACK_LABEL,
            confidence=FALLBACK_CONFIDENCE,
            method=METHOD_FALLBACK,
            source=SOURCE_FALLBACK,
            coordinates=record.coordinates,
            reason=reason,
        )

    # -------------------------------------------------------------------------
    # Strategies
    # -------------------------------------------------------------------------

    def _from_permanent_store(self, record: PropertyRecord) -> Optional[LocationResult]:
        if self._store is None or not record.reference:
            return None
        entry = self._store.get(record.reference)
        if entry is None:
            return None
        self._count("permanent_hits")
        logger.debug("Permanent store hit for %s", record.reference)
        return entry.to_result(SOURCE_PERMANENT)

    def _from_description_cache(self, record: PropertyRecord) -> Optional[LocationResult]:
        if not self._has_usable_description(record):
            return None
        entry = self._cache.get_description(description_key(record.description))
        if entry is None:
            return None
        self._count("description_cache_hits")
        return entry.to_result(SOURCE_DESCRIPTION_CACHE)

    def _from_development_cache(self, record: PropertyRecord) -> Optional[LocationResult]:
        entry = self._cache.get_development(development_key(record.development, record.district))
        if entry is None:
            return None
        self._count("development_cache_hits")
        return entry.to_result(SOURCE_DEVELOPMENT_CACHE)

    def _from_completion(self, record: PropertyRecord) -> Optional[LocationResult]:
        if self._completion is None or not self._has_usable_description(record):
            return None

        self._count("completion_calls")
        try:
            analysis = self._completion.analyze(
                record.description, city=record.city, district=record.district,
            )
        except UpstreamServiceError as e:
            self._count("completion_failures")
            logger.warning(
                "Completion service failed for %s: %s", record.identity, e,
                extra={"subject": record.identity, "source": SOURCE_COMPLETION},
            )
            return None

        result = self._result_from_analysis(record, analysis)
        self._write_through(record, result)
        logger.info(
            "Resolved %s to %r", record.identity, result.label,
            extra={"subject": record.identity, "source": result.source, "confidence": result.confidence},
        )
        return result

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _has_usable_description(record: PropertyRecord) -> bool:
        return len((record.description or "").strip()) >= MIN_DESCRIPTION_LENGTH

    def _result_from_analysis(
        self,
        record: PropertyRecord,
        analysis: CompletionAnalysis,
    ) -> LocationResult:
        points = analysis.confidence
        label = analysis.location if analysis.hasSpecific else None
        has_specific = analysis.hasSpecific

        if label is not None and not is_valid_location_label(label):
            logger.info("Rejected location label %r for %s", label, record.identity)
            label = None
            has_specific = False
            points = max(MIN_CONFIDENCE_POINTS, points - REJECTED_LABEL_PENALTY)
        elif not label:
            has_specific = False

        coordinates = None
        if has_specific and label:
            coordinates = self._geocode(label, record.district or record.city)

        return LocationResult(
            label=label or record.district or record.city or FALLBACK_LABEL,
            confidence=points / CONFIDENCE_SCALE,
            method=METHOD_COMPLETION,
            source=SOURCE_COMPLETION,
            coordinates=coordinates or record.coordinates,
            landmarks=list(analysis.landmarks),
            proximity=list(analysis.proximity),
            has_specific=has_specific,
            condition_rating=analysis.condition.rating if analysis.condition else None,
            reason=analysis.reason,
        )

    def _geocode(self, label: str, hint: str) -> Optional[tuple]:
        if self._geocoder is None:
            return None
        self._count("geocode_calls")
        try:
            found = self._geocoder.geocode(label, hint=hint)
        except UpstreamServiceError as e:
            logger.warning("Geocoding failed for %r: %s", label, e)
            return None
        return found.coordinates if found else None

    def _write_through(self, record: PropertyRecord, result: LocationResult) -> None:
        """Populate cache tiers and the permanent store per the write rules."""
        self._cache.put_description(
            LocationCacheEntry.from_result(description_key(record.description), result)
        )

        dev_key = development_key(record.development, record.district)
        if dev_key:
            entry = LocationCacheEntry.from_result(dev_key, result)
            if self._qualifies_for_development_cache(entry):
                self._cache.put_development(entry)

        if (
            self._store is not None
            and record.reference
            and result.confidence >= PERMANENT_CONFIDENCE_THRESHOLD
        ):
            try:
                self._store.put(record.reference, LocationCacheEntry.from_result(record.reference, result))
            except OSError as e:
                logger.warning("Permanent store write failed for %s: %s", record.reference, e)

    @staticmethod
    def _qualifies_for_development_cache(entry: LocationCacheEntry) -> bool:
        """
        Shared development/district keys only take confident AI resolutions
        that carry a useful signal (a landmark or proximity clue, or high
        confidence on its own).
        """
        confident = entry.confidence >= DEVELOPMENT_CACHE_MIN_CONFIDENCE
        return (
            entry.method == METHOD_COMPLETION
            and confident
            and (entry.has_useful_signal or confident)
        )

    def _count(self, name: str) -> None:
        with self._metrics_lock:
            setattr(self._metrics, name, getattr(self._metrics, name) + 1)
