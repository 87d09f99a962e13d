"""
Catalog Index for the Comp Engine

Inverted lists over the property catalog keyed by city, category and
transaction partition. Candidate retrieval is a cheap set intersection done
before any per-record filtering.

Transaction partitions are strict: a sale query never sees a record from a
rental partition and vice versa, at any relaxation level.
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from pathlib import Path
from typing import Any, Final, Iterable, Mapping, Optional, Union

from core.comp_engine.errors import CatalogUnavailableError
from core.comp_engine.geography import fold
from core.comp_engine.models import PropertyRecord, TransactionType
from core.comp_engine.normalise import normalise_record


logger = logging.getLogger(__name__)


# =============================================================================
# Catalog Configuration
# =============================================================================

DEFAULT_CATALOG_PATH: Final[str] = "data/properties.json"


# =============================================================================
# Catalog Index
# =============================================================================


class CatalogIndex:
    """
    In-memory catalog with inverted lists.

    Indexes:
    - by_city: folded city -> ids
    - by_category: lower-cased category -> ids
    - by_transaction: transaction type -> folded city -> ids

    The index is a pure function of the loaded records; rebuild() after
    any change.
    """

    def __init__(self, records: Optional[Iterable[PropertyRecord]] = None):
        """
        Initialise the catalog.

        Args:
            records: Canonical records to index. A catalog built without
                     records is considered unavailable until load() or
                     add_records() is called.
        """
        self._records: dict[str, PropertyRecord] = {}
        self._by_city: dict[str, set[str]] = defaultdict(set)
        self._by_category: dict[str, set[str]] = defaultdict(set)
        self._by_transaction: dict[TransactionType, dict[str, set[str]]] = {
            t: defaultdict(set) for t in TransactionType
        }
        self._position: dict[str, int] = {}
        self._loaded = False

        if records is not None:
            self.add_records(records)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    @classmethod
    def from_raw(cls, raw_records: Iterable[Mapping[str, Any]]) -> "CatalogIndex":
        """Build a catalog from raw feed dicts."""
        return cls(normalise_record(raw) for raw in raw_records)

    @classmethod
    def from_file(cls, path: Union[str, Path, None] = None) -> "CatalogIndex":
        """
        Load a catalog from a JSON array of raw records.

        Raises:
            CatalogUnavailableError: If the file is missing or unreadable
        """
        catalog = cls()
        catalog.load(path)
        return catalog

    def load(self, path: Union[str, Path, None] = None) -> int:
        """
        (Re)load records from a JSON file.

        Args:
            path: Catalog file, defaults to data/properties.json

        Returns:
            Number of records loaded

        Raises:
            CatalogUnavailableError: If the file is missing or unreadable
        """
        catalog_path = Path(path or DEFAULT_CATALOG_PATH)
        if not catalog_path.exists():
            raise CatalogUnavailableError(f"Catalog file not found: {catalog_path}")

        try:
            payload = json.loads(catalog_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise CatalogUnavailableError(f"Catalog file unreadable: {catalog_path}: {exc}") from exc

        if isinstance(payload, Mapping):
            payload = payload.get("properties", [])
        if not isinstance(payload, list):
            raise CatalogUnavailableError(f"Catalog file has unexpected format: {catalog_path}")

        self._records.clear()
        self.add_records(normalise_record(raw) for raw in payload if isinstance(raw, Mapping))
        logger.info("Loaded %d properties from %s", len(self._records), catalog_path)
        return len(self._records)

    def add_records(self, records: Iterable[PropertyRecord]) -> None:
        """Add or replace records and rebuild the index."""
        for record in records:
            self._records[record.id] = record
        self.rebuild()

    def rebuild(self) -> None:
        """Rebuild every inverted list from the current records."""
        self._by_city.clear()
        self._by_category.clear()
        self._position = {rid: pos for pos, rid in enumerate(self._records)}
        for partition in self._by_transaction.values():
            partition.clear()

        for record_id, record in self._records.items():
            city_key = fold(record.city)
            if city_key:
                self._by_city[city_key].add(record_id)
            if record.category:
                self._by_category[record.category.lower()].add(record_id)
            self._by_transaction[record.transaction_type][city_key].add(record_id)

        self._loaded = True
        logger.debug(
            "Rebuilt indexes: %d cities, %d categories",
            len(self._by_city), len(self._by_category),
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def is_available(self) -> bool:
        return self._loaded

    def ensure_available(self) -> None:
        """
        Raises:
            CatalogUnavailableError: If nothing has been loaded
        """
        if not self._loaded:
            raise CatalogUnavailableError("Catalog has not been loaded")

    def find_candidates(
        self,
        city: str,
        category: Optional[str],
        transaction_type: TransactionType,
    ) -> set[str]:
        """
        Intersect the city, category and transaction lists.

        Args:
            city: Subject city (case- and accent-insensitive)
            category: Category to match; None matches any category
            transaction_type: Mandatory transaction partition

        Returns:
            Set of record ids
        """
        self.ensure_available()

        city_key = fold(city)
        city_ids = self._by_city.get(city_key, set())
        transaction_ids = self._by_transaction[transaction_type].get(city_key, set())
        candidates = city_ids & transaction_ids

        if category is not None:
            candidates = candidates & self._by_category.get(category.lower(), set())

        return candidates

    def get_by_id(self, record_id: str) -> Optional[PropertyRecord]:
        self.ensure_available()
        return self._records.get(record_id)

    def records_for(self, ids: Iterable[str]) -> list[PropertyRecord]:
        """
        Fetch records for ids in stable catalog order.

        Catalog order keeps results deterministic across runs even though
        candidate sets are unordered.
        """
        ordered = sorted((rid for rid in ids if rid in self._position), key=self._position.__getitem__)
        return [self._records[rid] for rid in ordered]

    def __len__(self) -> int:
        return len(self._records)

    def stats(self) -> dict:
        """Record counts per city, category and transaction type."""
        return {
            "total_properties": len(self._records),
            "by_city": {city: len(ids) for city, ids in sorted(self._by_city.items())},
            "by_category": {cat: len(ids) for cat, ids in sorted(self._by_category.items())},
            "by_transaction": {
                t.value: sum(len(ids) for ids in partition.values())
                for t, partition in self._by_transaction.items()
            },
        }
