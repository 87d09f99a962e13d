"""
Location Resolver package.

Resolves a listing to a specific place label, optional coordinates and a
confidence, through a permanent store, two in-memory cache tiers and a
completion service.
"""

from .cache import LocationCache, description_key, development_key
from .completion import CompletionClient, select_route
from .geocoder import GeocodeResult, NominatimGeocoder
from .models import CompletionAnalysis, LocationCacheEntry, LocationResult
from .resolver import LocationResolver, ResolverMetrics
from .store import PermanentLocationStore
from .validation import is_valid_location_label

__all__ = [
    "CompletionAnalysis",
    "CompletionClient",
    "GeocodeResult",
    "LocationCache",
    "LocationCacheEntry",
    "LocationResolver",
    "LocationResult",
    "NominatimGeocoder",
    "PermanentLocationStore",
    "ResolverMetrics",
    "description_key",
    "development_key",
    "is_valid_location_label",
    "select_route",
]
