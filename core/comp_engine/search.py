"""
Shared search plumbing for the tiered planner and the fallback relaxer.

CandidateSource turns criteria into filtered records (index intersection,
then per-record filters). SearchState accumulates scored candidates across
every tier and relaxation step, deduplicated by identity.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set

from .catalog import CatalogIndex
from .filters import CriteriaFilter
from .models import PropertyRecord, ScoredCandidate, SearchCriteria


logger = logging.getLogger(__name__)


class CandidateSource:
    """Runs one catalog query: index intersection followed by criteria filters."""

    def __init__(self, catalog: CatalogIndex, criteria_filter: Optional[CriteriaFilter] = None):
        self._catalog = catalog
        self._filter = criteria_filter or CriteriaFilter()

    def query(self, criteria: SearchCriteria) -> List[PropertyRecord]:
        """
        Fetch records matching criteria.

        Raises:
            CatalogUnavailableError: If the catalog is not loaded
        """
        ids = self._catalog.find_candidates(
            criteria.city, criteria.category, criteria.transaction_type,
        )
        records = self._catalog.records_for(ids)
        passed, _ = self._filter.filter_records(records, criteria)
        return passed


@dataclass
class SearchState:
    """
    Running state of one comparable search.

    Tracks two identity sets: every candidate any query returned (examined,
    reported as total_found) and the candidates actually accepted into the
    result pool.
    """
    target_count: int = 12
    candidates: List[ScoredCandidate] = field(default_factory=list)
    examined: Set[str] = field(default_factory=set)
    accepted: Set[str] = field(default_factory=set)
    tiers_run: List[str] = field(default_factory=list)
    relaxation_steps: List[str] = field(default_factory=list)

    @property
    def accepted_count(self) -> int:
        return len(self.accepted)

    @property
    def total_found(self) -> int:
        return len(self.examined)

    @property
    def is_satisfied(self) -> bool:
        return self.accepted_count >= self.target_count

    def examine(self, records: Iterable[PropertyRecord]) -> None:
        """Record identities of every candidate a query returned."""
        for record in records:
            self.examined.add(record.identity)

    def accept(self, scored: Iterable[ScoredCandidate]) -> int:
        """
        Add scored candidates not already accepted.

        Returns:
            Number of newly accepted candidates
        """
        added = 0
        for candidate in scored:
            if candidate.identity in self.accepted:
                continue
            self.accepted.add(candidate.identity)
            self.candidates.append(candidate)
            added += 1
        return added
