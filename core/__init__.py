"""
Comp Match Engine - Core Business Logic

This module provides the comparable-property pipeline:
1. Ingestion (record normalisation into PropertyRecord)
2. Location Resolution (permanent store, caches, completion service)
3. Tiered Search (street -> development -> district -> neighbours -> city -> broad)
4. Similarity Scoring
5. Fallback Relaxation
6. Result Assembly
"""

from .comp_engine import (
    CatalogIndex,
    CatalogUnavailableError,
    Comparable,
    ComparableEngine,
    ComparableSearchResult,
    PropertyRecord,
    SearchCriteria,
    TransactionType,
    normalise_record,
)
from .location import LocationResolver, LocationResult

__all__ = [
    "CatalogIndex",
    "CatalogUnavailableError",
    "Comparable",
    "ComparableEngine",
    "ComparableSearchResult",
    "PropertyRecord",
    "SearchCriteria",
    "TransactionType",
    "normalise_record",
    "LocationResolver",
    "LocationResult",
]
