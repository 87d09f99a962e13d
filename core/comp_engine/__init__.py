"""
Comp Engine v1.0

Comparable property matching and ranking over a normalised listing catalog:
tiered geographic search, similarity scoring, progressive relaxation and
result assembly.
"""

from .models import (
    AreaType,
    Comparable,
    ComparableSearchResult,
    Condition,
    PropertyRecord,
    ScoredCandidate,
    SearchCriteria,
    TransactionType,
)
from .errors import (
    CatalogUnavailableError,
    ClientError,
    CompEngineError,
    InvalidCompletionError,
    RateLimitedError,
    ServerError,
    UpstreamServiceError,
)
from .catalog import CatalogIndex
from .filters import CriteriaFilter
from .scoring import SimilarityScorer
from .planner import TieredSearchPlanner
from .relaxer import FallbackRelaxer
from .assembler import ResultAssembler
from .normalise import normalise_record
from .engine import ComparableEngine

__all__ = [
    # Models
    "AreaType",
    "Comparable",
    "ComparableSearchResult",
    "Condition",
    "PropertyRecord",
    "ScoredCandidate",
    "SearchCriteria",
    "TransactionType",
    # Errors
    "CatalogUnavailableError",
    "ClientError",
    "CompEngineError",
    "InvalidCompletionError",
    "RateLimitedError",
    "ServerError",
    "UpstreamServiceError",
    # Engine
    "CatalogIndex",
    "CriteriaFilter",
    "SimilarityScorer",
    "TieredSearchPlanner",
    "FallbackRelaxer",
    "ResultAssembler",
    "ComparableEngine",
    "normalise_record",
]

__version__ = "1.0"
