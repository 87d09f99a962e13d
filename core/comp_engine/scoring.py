"""
Similarity Scorer for the Comp Engine

Additive score between the subject's search criteria and each surviving
candidate. Every candidate starts at BASE_SCORE; each factor adds a banded
bonus. Scores are unbounded and only meaningful relative to one another
within a single search.
"""

from datetime import date
from typing import Iterable, List, Optional, Sequence, Tuple

from .areas import display_area
from .models import Condition, PropertyRecord, ScoredCandidate, SearchCriteria


# =============================================================================
# Configuration Constants
# =============================================================================

BASE_SCORE = 1.0

# Exact matches
BEDROOM_MATCH_BONUS = 2.0
BATHROOM_MATCH_BONUS = 1.5
CATEGORY_MATCH_BONUS = 1.0

# Condition: exact, then by ladder distance (steps -> bonus)
CONDITION_EXACT_BONUS = 2.0
CONDITION_STEP_BONUS = {1: 1.5, 2: 1.0, 3: 0.5}
CONDITION_FAR_BONUS = 0.1

# Relative difference bands shared by area and price (max ratio, bonus)
RELATIVE_DIFF_BANDS: Tuple[Tuple[float, float], ...] = (
    (0.05, 1.5),
    (0.15, 1.0),
    (0.30, 0.5),
    (0.50, 0.2),
)

# Feature overlap bands (min matched/requested ratio, bonus)
FEATURE_OVERLAP_BANDS: Tuple[Tuple[float, float], ...] = (
    (0.8, 1.0),
    (0.6, 0.7),
    (0.4, 0.4),
    (0.2, 0.2),
)

# Recency bands (max days since listing, bonus)
RECENCY_BANDS: Tuple[Tuple[int, float], ...] = (
    (30, 0.3),
    (90, 0.1),
)


class SimilarityScorer:
    """
    Scores candidates against search criteria.

    Factors:
    1. Exact bedroom / bathroom match
    2. Condition similarity (ladder distance)
    3. Area similarity (display area vs requested area)
    4. Price similarity
    5. Feature overlap
    6. Exact category match
    7. Listing recency
    """

    def __init__(self, reference_date: date = None):
        """
        Initialize scorer with reference date.

        Args:
            reference_date: Date to calculate listing age from (default: today)
        """
        self._reference_date = reference_date or date.today()

    def score(self, record: PropertyRecord, criteria: SearchCriteria) -> float:
        """Total similarity score for one candidate."""
        total = BASE_SCORE

        if criteria.bedrooms and record.bedrooms == criteria.bedrooms:
            total += BEDROOM_MATCH_BONUS
        if criteria.bathrooms and record.bathrooms == criteria.bathrooms:
            total += BATHROOM_MATCH_BONUS

        total += self.condition_similarity(criteria.conditions, record.condition)
        total += self.relative_similarity(criteria.target_area, display_area(record))
        total += self.relative_similarity(criteria.target_price, record.asking_price)
        total += self.feature_similarity(criteria.features, record.features)

        if criteria.category and record.category == criteria.category.lower():
            total += CATEGORY_MATCH_BONUS

        total += self.recency_score(record.listed_date)
        return total

    def score_all(
        self,
        records: Iterable[PropertyRecord],
        criteria: SearchCriteria,
        tier: str = "",
    ) -> List[ScoredCandidate]:
        """Score records, keeping input order."""
        return [
            ScoredCandidate(record=r, score=self.score(r, criteria), tier=tier)
            for r in records
        ]

    @staticmethod
    def rank(candidates: List[ScoredCandidate]) -> List[ScoredCandidate]:
        """
        Sort descending by score.

        Sort is stable, so ties keep insertion (tier) order and geographically
        tighter tiers win.
        """
        return sorted(candidates, key=lambda c: c.score, reverse=True)

    @staticmethod
    def condition_similarity(
        requested: Sequence[Condition],
        candidate: Optional[Condition],
    ) -> float:
        """Exact match scores highest; otherwise by nearest ladder distance."""
        if not requested or candidate is None:
            return 0.0
        if candidate in requested:
            return CONDITION_EXACT_BONUS

        distance = min(abs(c.rank - candidate.rank) for c in requested)
        return CONDITION_STEP_BONUS.get(distance, CONDITION_FAR_BONUS)

    @staticmethod
    def relative_similarity(requested: float, actual: float) -> float:
        """Banded bonus on |requested - actual| / requested."""
        if not requested or not actual:
            return 0.0
        ratio = abs(requested - actual) / requested
        for max_ratio, bonus in RELATIVE_DIFF_BANDS:
            if ratio <= max_ratio:
                return bonus
        return 0.0

    @staticmethod
    def feature_similarity(requested: Sequence[str], actual: Sequence[str]) -> float:
        """Banded bonus on the share of requested features the candidate has."""
        if not requested or not actual:
            return 0.0
        actual_lower = {f.lower() for f in actual}
        matched = sum(1 for f in requested if f.lower() in actual_lower)
        ratio = matched / len(requested)
        for min_ratio, bonus in FEATURE_OVERLAP_BANDS:
            if ratio >= min_ratio:
                return bonus
        return 0.0

    def recency_score(self, listed_date: Optional[date]) -> float:
        if listed_date is None:
            return 0.0
        days = (self._reference_date - listed_date).days
        for max_days, bonus in RECENCY_BANDS:
            if days <= max_days:
                return bonus
        return 0.0
