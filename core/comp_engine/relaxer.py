"""
Fallback Relaxer for the Comp Engine

When the tier ladder yields fewer than the target count, constraints are
dropped one step at a time until the target is met or the steps run out.
Each step only adds candidates not already accepted.

The transaction partition is never relaxed.
"""

import logging
from dataclasses import replace
from typing import Dict, List, Optional

from .models import SearchCriteria
from .scoring import SimilarityScorer
from .search import CandidateSource, SearchState


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Constants
# =============================================================================

RELAXED_DISTANCE_KM = 10.0
WIDE_DISTANCE_KM = 15.0

# Category substitutions tried in order by the related-category step
RELATED_CATEGORIES: Dict[str, List[str]] = {
    "apartment": ["flat", "studio", "duplex"],
    "penthouse": ["apartment", "duplex"],
    "villa": ["house", "bungalow"],
    "house": ["villa", "townhouse", "bungalow"],
    "townhouse": ["house", "duplex"],
    "duplex": ["apartment", "townhouse"],
    "studio": ["apartment"],
    "bungalow": ["house", "villa"],
}


def related_categories(category: Optional[str]) -> List[str]:
    if not category:
        return []
    return list(RELATED_CATEGORIES.get(category.lower(), []))


class FallbackRelaxer:
    """
    Progressive constraint relaxation.

    Steps, in order:
    1. Widen distance to 10 km
    2. Drop bedroom/bathroom filtering (distance 10 km)
    3. Substitute each related category (stop at target)
    4. Drop the price band, widen distance to 15 km
    5. Same city and transaction type only
    """

    def __init__(self, source: CandidateSource, scorer: SimilarityScorer):
        self._source = source
        self._scorer = scorer

    def relax(self, criteria: SearchCriteria, state: SearchState) -> SearchState:
        """
        Fill state up to the target count.

        Candidates are always scored against the unrelaxed criteria, so a
        substituted category never earns the category bonus.

        Args:
            criteria: Base criteria derived from the subject
            state: Running search state from the tier ladder

        Returns:
            The same state, updated
        """
        if state.is_satisfied:
            return state

        logger.info(
            "Only %d of %d comparables after tiers, relaxing criteria",
            state.accepted_count, state.target_count,
        )

        # Step 1: wider radius
        self._run_step(
            "distance_10km",
            replace(criteria, max_distance_km=RELAXED_DISTANCE_KM),
            criteria, state,
        )

        # Step 2: no bedroom/bathroom window
        no_rooms = replace(
            criteria, bedrooms=None, bathrooms=None, max_distance_km=RELAXED_DISTANCE_KM,
        )
        self._run_step("drop_rooms", no_rooms, criteria, state)

        # Step 3: related categories
        for category in related_categories(criteria.category):
            self._run_step(
                f"related_category:{category}",
                replace(no_rooms, category=category),
                criteria, state,
            )

        # Step 4: no price band
        self._run_step(
            "drop_price",
            replace(no_rooms, min_price=None, max_price=None, max_distance_km=WIDE_DISTANCE_KM),
            criteria, state,
        )

        # Step 5: city and transaction type only
        city_only = replace(
            criteria,
            category=None,
            bedrooms=None,
            bathrooms=None,
            min_price=None,
            max_price=None,
            min_area=None,
            max_area=None,
            max_distance_km=None,
        )
        self._run_step("city_only", city_only, criteria, state)

        if not state.is_satisfied:
            logger.info(
                "Catalog exhausted: %d of %d comparables after relaxation",
                state.accepted_count, state.target_count,
            )
        return state

    def _run_step(
        self,
        name: str,
        step_criteria: SearchCriteria,
        scoring_criteria: SearchCriteria,
        state: SearchState,
    ) -> None:
        if state.is_satisfied:
            return

        records = self._source.query(step_criteria)
        state.examine(records)
        added = state.accept(self._scorer.score_all(records, scoring_criteria, tier=name))
        state.relaxation_steps.append(name)

        logger.info(
            "Relaxation %s: %d returned, %d new (accepted: %d)",
            name, len(records), added, state.accepted_count,
        )
