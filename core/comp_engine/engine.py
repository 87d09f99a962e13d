"""
Comparable Engine

Entry point of the comp engine. Wires the tier ladder, fallback relaxation
and result assembly into one call:

    subject -> location resolution -> tiered search -> relaxation -> assembly
"""

import logging
from dataclasses import replace
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Union

from .assembler import ResultAssembler
from .catalog import CatalogIndex
from .criteria import DEFAULT_TARGET_COUNT, build_criteria
from .geography import find_known_development
from .models import ComparableSearchResult, PropertyRecord
from .normalise import infer_category, normalise_record
from .planner import TieredSearchPlanner
from .relaxer import FallbackRelaxer
from .scoring import SimilarityScorer
from .search import CandidateSource, SearchState


logger = logging.getLogger(__name__)


class ComparableEngine:
    """
    Finds and ranks comparable listings for a subject property.

    Stateless between calls; the catalog and the resolver's caches are the
    only shared state.

    Usage:
        engine = ComparableEngine(CatalogIndex.from_file("data/properties.json"))
        result = engine.find_comparables(subject, target_count=12)
    """

    def __init__(
        self,
        catalog: CatalogIndex,
        resolver: Any = None,
        reference_date: date = None,
        adjacency: Optional[Dict[str, List[str]]] = None,
    ):
        """
        Args:
            catalog: Loaded catalog index
            resolver: Optional LocationResolver used to enrich subjects
            reference_date: Date for recency scoring and days on market (default: today)
            adjacency: Development -> neighbouring developments override
        """
        self.catalog = catalog
        self.resolver = resolver
        self.adjacency = adjacency

        self._source = CandidateSource(catalog)
        self._scorer = SimilarityScorer(reference_date)
        self._planner = TieredSearchPlanner(self._source, self._scorer, adjacency)
        self._relaxer = FallbackRelaxer(self._source, self._scorer)
        self._assembler = ResultAssembler(reference_date)

    def find_comparables(
        self,
        subject: Union[PropertyRecord, Mapping[str, Any]],
        target_count: int = DEFAULT_TARGET_COUNT,
    ) -> ComparableSearchResult:
        """
        Find up to target_count comparables for a subject.

        Args:
            subject: PropertyRecord, or a raw listing dict to normalise
            target_count: Number of comparables wanted

        Returns:
            ComparableSearchResult; empty with total_found 0 when the subject
            has no city or category

        Raises:
            CatalogUnavailableError: If the catalog is not loaded
        """
        record = subject if isinstance(subject, PropertyRecord) else normalise_record(subject)
        if not record.category:
            record = replace(record, category=infer_category(record.description))

        if not record.city or not record.category:
            logger.info(
                "Subject %s lacks city or category, returning no comparables",
                record.identity,
            )
            return ComparableSearchResult(comparables=[], total_found=0)

        self.catalog.ensure_available()

        record = self._enrich(record)
        criteria = build_criteria(record, target_count)
        state = SearchState(target_count=target_count)

        self._planner.search(criteria, state)
        self._relaxer.relax(criteria, state)

        comparables = self._assembler.assemble(
            state.candidates, criteria, subject=record, adjacency=self.adjacency,
        )

        logger.info(
            "Found %d comparables for %s", len(comparables), record.identity,
            extra={
                "subject": record.identity,
                "found": len(comparables),
                "examined": state.total_found,
                "tiers": ",".join(state.tiers_run) or "-",
                "relaxation": ",".join(state.relaxation_steps) or "-",
            },
        )

        return ComparableSearchResult(
            comparables=comparables,
            total_found=state.total_found,
            tiers_run=list(state.tiers_run),
            relaxation_steps=list(state.relaxation_steps),
        )

    def _enrich(self, record: PropertyRecord) -> PropertyRecord:
        """Fill coordinates and a missing development from the resolver."""
        if self.resolver is None:
            return record

        location = self.resolver.resolve(record)
        if location.is_fallback:
            return record

        updates = {}
        if record.coordinates is None and location.coordinates:
            updates["latitude"], updates["longitude"] = location.coordinates
        if not record.development and location.has_specific:
            development = find_known_development(location.label)
            if development:
                updates["development"] = development

        if updates:
            logger.debug("Subject %s enriched from %s: %s", record.identity, location.method, sorted(updates))
            return replace(record, **updates)
        return record
