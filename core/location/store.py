"""
Permanent Location Store - Durable Resolutions Keyed by Listing Reference

Only high-confidence resolutions are promoted here. Each reference is stored
as one JSON file:
{store_root}/{reference}.json

Reads treat a missing or unreadable file as a miss. Writes are best-effort:
the caller logs failures and carries on.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Final, Optional

from .models import LocationCacheEntry


logger = logging.getLogger(__name__)


# =============================================================================
# Store Configuration
# =============================================================================

DEFAULT_STORE_PATH: Final[str] = "data/location_cache"

# Only resolutions at or above this confidence are stored permanently
PERMANENT_CONFIDENCE_THRESHOLD: Final[float] = 0.95


# =============================================================================
# Permanent Store
# =============================================================================


class PermanentLocationStore:
    """
    File-backed store of permanent location resolutions.
    """

    def __init__(self, store_root: Optional[str] = None):
        """
        Args:
            store_root: Directory for stored entries. Defaults to data/location_cache.
        """
        self._store_root = Path(store_root or DEFAULT_STORE_PATH)
        self._lock = threading.Lock()

    @property
    def store_root(self) -> Path:
        return self._store_root

    def _entry_path(self, reference: str) -> Path:
        safe = reference.replace("/", "_").replace("\\", "_").replace("..", "_").strip().strip(".")
        return self._store_root / f"{safe or 'entry'}.json"

    def get(self, reference: Optional[str]) -> Optional[LocationCacheEntry]:
        """
        Look up a stored resolution.

        Returns:
            The entry, or None when absent, unreadable, not flagged permanent or below threshold
        """
        if not reference:
            return None

        path = self._entry_path(reference)
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                payload = json.load(f)
            if not payload.get("permanent_cache"):
                return None
            entry = LocationCacheEntry.from_dict(payload)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Unreadable permanent location entry %s: %s", path.name, e)
            return None

        if entry.confidence < PERMANENT_CONFIDENCE_THRESHOLD:
            return None
        return entry

    def put(self, reference: str, entry: LocationCacheEntry) -> bool:
        """
        Store a resolution for a reference.

        Writes to a temp file and renames, so readers never see a partial
        entry.

        Returns:
            True if stored, False if below threshold

        Raises:
            OSError: On filesystem failure
        """
        if entry.confidence < PERMANENT_CONFIDENCE_THRESHOLD:
            return False

        path = self._entry_path(reference)
        tmp_path = path.with_suffix(".json.tmp")
        with self._lock:
            self._store_root.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump({**entry.to_dict(), "permanent_cache": True}, f, indent=2)
            os.replace(tmp_path, path)
        return True

    def count(self) -> int:
        return sum(1 for _ in self._store_root.glob("*.json"))
