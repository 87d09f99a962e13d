"""
Data models for the Comp Engine

Defines the canonical property record every component works on, the search
criteria derived from a subject property, and the comparable output shape.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional, Tuple


class TransactionType(Enum):
    """
    Transaction partition of a listing.

    Sale <-> Sale only
    Short-let <-> Short-let only
    Long-let <-> Long-let only
    """
    SALE = "sale"
    SHORT_TERM = "short-term-rental"
    LONG_TERM = "long-term-rental"

    @classmethod
    def from_string(cls, value: str) -> Optional["TransactionType"]:
        """Convert string to TransactionType, case-insensitive."""
        normalised = value.lower().strip().replace("_", "-")
        aliases = {
            "short-term": cls.SHORT_TERM,
            "short-let": cls.SHORT_TERM,
            "long-term": cls.LONG_TERM,
            "long-let": cls.LONG_TERM,
            "rental": cls.LONG_TERM,
        }
        if normalised in aliases:
            return aliases[normalised]
        for member in cls:
            if member.value == normalised:
                return member
        return None


class Condition(Enum):
    """
    Property condition rating.

    Ordered for distance-based scoring only, not by desirability.
    """
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    NEEDS_RENOVATION = "needs renovation"
    NEW_BUILD = "new build"

    @classmethod
    def from_string(cls, value: str) -> Optional["Condition"]:
        """Convert string to Condition, case-insensitive."""
        normalised = value.lower().strip().replace("_", " ").replace("-", " ")
        aliases = {
            "very good": cls.GOOD,
            "needs work": cls.NEEDS_RENOVATION,
            "rebuild": cls.NEEDS_RENOVATION,
            "newly built": cls.NEW_BUILD,
        }
        if normalised in aliases:
            return aliases[normalised]
        for member in cls:
            if member.value == normalised:
                return member
        return None

    @property
    def rank(self) -> int:
        """Position on the condition ladder."""
        return list(Condition).index(self)


class AreaType(Enum):
    """Which area field a display area was taken from."""
    BUILD = "build"
    PLOT = "plot"
    TERRACE = "terrace"


@dataclass
class PropertyRecord:
    """
    A catalog entry in canonical shape.

    Populated once at the ingestion boundary by the record normaliser;
    matching code never sees raw feed dicts.
    """
    # Required fields
    id: str
    category: str  # Lower-cased, e.g. "villa", "apartment"

    # Transaction flags (sale-only or rental-only)
    is_sale: bool = True
    is_short_term: bool = False
    is_long_term: bool = False

    # Location
    address: str = ""
    street: str = ""
    development: str = ""  # Urbanisation / gated complex
    district: str = ""  # Suburb / neighbourhood
    city: str = ""
    province: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    # Size
    bedrooms: int = 0
    bathrooms: int = 0
    build_area: float = 0.0
    plot_area: float = 0.0
    terrace_area: float = 0.0

    # Price
    price: float = 0.0
    monthly_price: float = 0.0
    weekly_price_from: float = 0.0
    weekly_price_to: float = 0.0

    # Descriptive
    condition: Optional[Condition] = None
    features: List[str] = field(default_factory=list)
    listed_date: Optional[date] = None
    last_updated: Optional[date] = None
    year_built: Optional[int] = None
    reference: str = ""
    description: str = ""
    images: List[str] = field(default_factory=list)

    @property
    def transaction_type(self) -> TransactionType:
        """Resolve the transaction partition from the flags."""
        if self.is_sale:
            return TransactionType.SALE
        if self.is_short_term:
            return TransactionType.SHORT_TERM
        return TransactionType.LONG_TERM

    @property
    def identity(self) -> str:
        """Key used for cross-tier deduplication."""
        return self.reference or self.address or self.id

    @property
    def asking_price(self) -> float:
        """Sale price, or the rental price for rentals without one."""
        if self.price > 0:
            return self.price
        if self.monthly_price > 0:
            return self.monthly_price
        return self.weekly_price_from or self.weekly_price_to or 0.0

    @property
    def coordinates(self) -> Optional[Tuple[float, float]]:
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)


@dataclass
class SearchCriteria:
    """
    Query derived from a subject property.

    Bedroom and bathroom targets are a +-1 window, not an exact match.
    Fields set to None are not filtered on.
    """
    transaction_type: TransactionType
    city: str
    category: Optional[str] = None

    # Location components for tier post-filtering
    street: str = ""
    development: str = ""
    district: str = ""

    # Numeric targets
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_area: Optional[float] = None
    max_area: Optional[float] = None

    # Scoring inputs
    target_area: float = 0.0
    target_price: float = 0.0
    features: List[str] = field(default_factory=list)
    conditions: List[Condition] = field(default_factory=list)

    # Geography
    max_distance_km: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    exclude_id: str = ""
    exclude_reference: str = ""
    target_count: int = 12

    @property
    def coordinates(self) -> Optional[Tuple[float, float]]:
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)


@dataclass
class ScoredCandidate:
    """A catalog record plus its similarity score."""
    record: PropertyRecord
    score: float = 1.0
    location_score: Optional[float] = None  # Set only by the low-information ordering
    tier: str = ""

    @property
    def identity(self) -> str:
        return self.record.identity


@dataclass
class Comparable:
    """
    A comparable listing as exposed to callers.

    Output format of find_comparables.
    """
    address: str
    price: float
    area: int
    area_type: AreaType
    bedrooms: int
    bathrooms: int
    category: str
    transaction_type: TransactionType
    listed_date: Optional[date] = None
    days_on_market: Optional[int] = None
    price_per_m2: Optional[int] = None
    condition: Optional[Condition] = None
    features: List[str] = field(default_factory=list)
    reference: str = ""
    images: List[str] = field(default_factory=list)
    score: float = 0.0
    location_score: Optional[float] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "address": self.address,
            "price": self.price,
            "m2": self.area,
            "area_type": self.area_type.value,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "property_type": self.category,
            "transaction_type": self.transaction_type.value,
            "listing_date": self.listed_date.isoformat() if self.listed_date else None,
            "days_on_market": self.days_on_market,
            "price_per_m2": self.price_per_m2,
            "condition": self.condition.value if self.condition else None,
            "features": list(self.features),
            "ref_number": self.reference,
            "images": list(self.images),
            "score": round(self.score, 3),
        }


@dataclass
class ComparableSearchResult:
    """Result of a comparable search."""
    comparables: List[Comparable]
    total_found: int = 0

    # Search metadata
    tiers_run: List[str] = field(default_factory=list)
    relaxation_steps: List[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.comparables)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "comparables": [c.to_dict() for c in self.comparables],
            "total_found": self.total_found,
            "tiers_run": list(self.tiers_run),
            "relaxation_steps": list(self.relaxation_steps),
        }
