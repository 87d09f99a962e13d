"""
In-memory location caches.

Two tiers, both keyed deterministically:
- description tier: sha256 of the listing description
- development tier: (development, district) pair, case-folded; both required

Entries are never mutated after they are written. Concurrent writers are
serialised by a single lock; a concurrent second write of the same key is
a harmless overwrite with an equivalent entry.
"""

import hashlib
import threading
from typing import Dict, Optional

from core.comp_engine.geography import fold

from .models import LocationCacheEntry


def description_key(description: str) -> str:
    """Stable key for a description (sha256 hex of the UTF-8 text)."""
    return hashlib.sha256(description.encode("utf-8")).hexdigest()


def development_key(development: Optional[str], district: Optional[str]) -> Optional[str]:
    """
    Key for the development tier.

    Only a (development, district) pair identifies a place narrowly enough
    to share a resolution between listings.

    Returns:
        "development|district", or None unless both parts are known
    """
    dev = fold(development)
    dist = fold(district)
    if not dev or not dist:
        return None
    return f"{dev}|{dist}"


class LocationCache:
    """Thread-safe two-tier cache of AI resolutions."""

    def __init__(self):
        self._lock = threading.Lock()
        self._by_description: Dict[str, LocationCacheEntry] = {}
        self._by_development: Dict[str, LocationCacheEntry] = {}

    def get_description(self, key: str) -> Optional[LocationCacheEntry]:
        with self._lock:
            return self._by_description.get(key)

    def put_description(self, entry: LocationCacheEntry) -> None:
        with self._lock:
            self._by_description[entry.key] = entry

    def get_development(self, key: Optional[str]) -> Optional[LocationCacheEntry]:
        if key is None:
            return None
        with self._lock:
            return self._by_development.get(key)

    def put_development(self, entry: LocationCacheEntry) -> None:
        with self._lock:
            self._by_development[entry.key] = entry

    def clear(self) -> None:
        with self._lock:
            self._by_description.clear()
            self._by_development.clear()

    def stats(self) -> dict:
        with self._lock:
            return {
                "description_entries": len(self._by_description),
                "development_entries": len(self._by_development),
            }
