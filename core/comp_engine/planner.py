"""
Tiered Search Planner for the Comp Engine

Searches the catalog at increasing geographic radius, from the same street
out to a broad radius, post-filtering each tier on the subject's matching
address component. Tiers run in strict order and stop as soon as enough
unique candidates have been accepted.
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Optional

from .geography import nearby_developments, same_place
from .models import PropertyRecord, SearchCriteria
from .scoring import SimilarityScorer
from .search import CandidateSource, SearchState


logger = logging.getLogger(__name__)


# =============================================================================
# Tier Definitions
# =============================================================================

@dataclass(frozen=True)
class Tier:
    """One step of the geographic-specificity ladder."""
    name: str
    radius_km: float
    component: Optional[str]  # Address field compared exactly; None = no post-filter


STREET_TIER = Tier("street", 1.0, "street")
DEVELOPMENT_TIER = Tier("development", 2.0, "development")
DISTRICT_TIER = Tier("district", 2.0, "district")
NEARBY_DEVELOPMENT_TIER = Tier("nearby_development", 3.0, "development")
CITY_TIER = Tier("city", 5.0, "city")
BROAD_TIER = Tier("broad", 8.0, None)

TIERS: List[Tier] = [
    STREET_TIER,
    DEVELOPMENT_TIER,
    DISTRICT_TIER,
    NEARBY_DEVELOPMENT_TIER,
    CITY_TIER,
    BROAD_TIER,
]


class TieredSearchPlanner:
    """
    Runs the tier ladder for one subject.

    Tier order:
    1. Same street (1 km)
    2. Same development (2 km)
    3. Same district (2 km)
    4. Neighbouring developments (3 km), one neighbour at a time
    5. Same city (5 km)
    6. Broad radius (8 km), no component filter

    A tier runs only when the subject has its address component and the
    running accepted count is below target. Unique counting spans all tiers.
    """

    def __init__(
        self,
        source: CandidateSource,
        scorer: SimilarityScorer,
        adjacency: Optional[Dict[str, List[str]]] = None,
    ):
        """
        Args:
            source: Catalog query runner
            scorer: Similarity scorer
            adjacency: Development -> neighbouring developments
                       (default: built-in Costa del Sol map)
        """
        self._source = source
        self._scorer = scorer
        self._adjacency = adjacency

    def search(self, criteria: SearchCriteria, state: SearchState) -> SearchState:
        """
        Run every applicable tier, accumulating into state.

        Args:
            criteria: Base criteria derived from the subject
            state: Running search state (may already hold candidates)

        Returns:
            The same state, updated
        """
        for tier in TIERS:
            if state.is_satisfied:
                break
            if not self._tier_applies(tier, criteria):
                continue

            tier_criteria = replace(criteria, max_distance_km=tier.radius_km)
            records = self._source.query(tier_criteria)
            state.examine(records)
            state.tiers_run.append(tier.name)

            if tier is NEARBY_DEVELOPMENT_TIER:
                added = self._search_neighbours(records, criteria, state)
            else:
                kept = self._post_filter(records, tier, criteria)
                added = state.accept(self._scorer.score_all(kept, criteria, tier=tier.name))

            logger.info(
                "Tier %s: %d returned, %d new (accepted: %d, examined: %d)",
                tier.name, len(records), added, state.accepted_count, state.total_found,
            )

        return state

    def _tier_applies(self, tier: Tier, criteria: SearchCriteria) -> bool:
        if tier is BROAD_TIER:
            return True
        if tier is NEARBY_DEVELOPMENT_TIER:
            return bool(criteria.development) and bool(
                nearby_developments(criteria.development, self._adjacency)
            )
        return bool(getattr(criteria, tier.component))

    @staticmethod
    def _post_filter(
        records: List[PropertyRecord],
        tier: Tier,
        criteria: SearchCriteria,
    ) -> List[PropertyRecord]:
        """Keep records whose tier component equals the subject's exactly."""
        if tier.component is None:
            return list(records)
        wanted = getattr(criteria, tier.component)
        return [r for r in records if same_place(getattr(r, tier.component), wanted)]

    def _search_neighbours(
        self,
        records: List[PropertyRecord],
        criteria: SearchCriteria,
        state: SearchState,
    ) -> int:
        """Accept candidates neighbour by neighbour, stopping at target."""
        added = 0
        for neighbour in nearby_developments(criteria.development, self._adjacency):
            if state.is_satisfied:
                break
            kept = [r for r in records if same_place(r.development, neighbour)]
            added += state.accept(
                self._scorer.score_all(kept, criteria, tier=NEARBY_DEVELOPMENT_TIER.name)
            )
        return added
