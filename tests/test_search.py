"""
Tests for catalog retrieval, tiered search, relaxation and result assembly

Verifies:
- Transaction partitions are strict at the index level
- Tiers run in order, post-filter on address components and stop at target
- Unique counting spans every tier (no duplicates)
- Relaxation steps run in order and only add new candidates
- Assembly truncates, maps and orders low-information subjects by location
"""

import json
import pytest
from datetime import date, timedelta
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.comp_engine import (
    AreaType,
    CatalogIndex,
    CatalogUnavailableError,
    FallbackRelaxer,
    PropertyRecord,
    ResultAssembler,
    ScoredCandidate,
    SimilarityScorer,
    TieredSearchPlanner,
    TransactionType,
)
from core.comp_engine.assembler import feature_label
from core.comp_engine.criteria import build_criteria
from core.comp_engine.relaxer import related_categories
from core.comp_engine.search import CandidateSource, SearchState


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def reference_date():
    """Fixed reference date for deterministic tests."""
    return date(2024, 6, 1)


@pytest.fixture
def create_record():
    """Factory fixture for creating property records."""
    def _create(record_id: str, **overrides) -> PropertyRecord:
        values = dict(
            id=record_id,
            category="villa",
            city="Marbella",
            bedrooms=4,
            bathrooms=3,
            build_area=200.0,
            price=1_000_000.0,
            reference=f"REF-{record_id}",
        )
        values.update(overrides)
        return PropertyRecord(**values)
    return _create


@pytest.fixture
def make_pipeline(reference_date):
    """Build (planner, relaxer) over a catalog of records."""
    def _make(records):
        catalog = CatalogIndex(records)
        source = CandidateSource(catalog)
        scorer = SimilarityScorer(reference_date)
        return TieredSearchPlanner(source, scorer), FallbackRelaxer(source, scorer)
    return _make


def ids(candidates):
    return [c.record.id for c in candidates]


# =============================================================================
# Test: Catalog Index
# =============================================================================

class TestCatalogIndex:
    """Tests for inverted-list retrieval."""

    def test_city_lookup_ignores_case_and_accents(self, create_record):
        catalog = CatalogIndex([create_record("A", city="Benahavís")])

        assert catalog.find_candidates("BENAHAVIS", "villa", TransactionType.SALE) == {"A"}

    def test_transaction_partition_is_strict(self, create_record):
        catalog = CatalogIndex([
            create_record("S"),
            create_record("L", is_sale=False, is_long_term=True),
            create_record("W", is_sale=False, is_short_term=True),
        ])

        assert catalog.find_candidates("Marbella", "villa", TransactionType.SALE) == {"S"}
        assert catalog.find_candidates("Marbella", "villa", TransactionType.LONG_TERM) == {"L"}
        assert catalog.find_candidates("Marbella", None, TransactionType.SHORT_TERM) == {"W"}

    def test_category_none_matches_every_category(self, create_record):
        catalog = CatalogIndex([
            create_record("V"),
            create_record("A", category="apartment"),
        ])

        assert catalog.find_candidates("Marbella", None, TransactionType.SALE) == {"V", "A"}
        assert catalog.find_candidates("Marbella", "Apartment", TransactionType.SALE) == {"A"}

    def test_records_for_keeps_catalog_order(self, create_record):
        catalog = CatalogIndex([create_record(rid) for rid in ("C", "A", "B")])

        records = catalog.records_for({"A", "B", "C", "missing"})

        assert [r.id for r in records] == ["C", "A", "B"]

    def test_unloaded_catalog_is_unavailable(self):
        catalog = CatalogIndex()

        assert not catalog.is_available
        with pytest.raises(CatalogUnavailableError):
            catalog.find_candidates("Marbella", "villa", TransactionType.SALE)

    def test_empty_catalog_is_available(self):
        catalog = CatalogIndex([])

        assert catalog.is_available
        assert catalog.find_candidates("Marbella", "villa", TransactionType.SALE) == set()

    def test_load_missing_file_raises(self, tmp_path):
        with pytest.raises(CatalogUnavailableError):
            CatalogIndex.from_file(tmp_path / "nope.json")

    def test_load_invalid_json_raises(self, tmp_path):
        path = tmp_path / "properties.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(CatalogUnavailableError):
            CatalogIndex.from_file(path)

    def test_load_wrapped_properties(self, tmp_path):
        path = tmp_path / "properties.json"
        path.write_text(json.dumps({"properties": [
            {"id": "A", "city": "Marbella", "propertyType": "Villa", "price": 900000},
            {"id": "B", "city": "Marbella", "propertyType": "Apartment", "monthlyPrice": 2500},
        ]}), encoding="utf-8")

        catalog = CatalogIndex.from_file(path)

        assert len(catalog) == 2
        assert catalog.get_by_id("B").transaction_type == TransactionType.LONG_TERM

    def test_stats(self, create_record):
        catalog = CatalogIndex([
            create_record("A"),
            create_record("B", category="apartment", city="Estepona"),
            create_record("C", is_sale=False, is_long_term=True),
        ])

        stats = catalog.stats()

        assert stats["total_properties"] == 3
        assert stats["by_city"] == {"estepona": 1, "marbella": 2}
        assert stats["by_transaction"]["sale"] == 2
        assert stats["by_transaction"]["long-term-rental"] == 1


# =============================================================================
# Test: Tiered Search Planner
# =============================================================================

class TestTieredSearchPlanner:
    """Tests for the geographic tier ladder."""

    def test_candidate_in_two_tiers_counted_once(self, make_pipeline, create_record):
        subject = create_record("SUBJ", street="Calle Sol", district="Nueva Andalucía")
        both = create_record("A", street="calle sol", district="Nueva Andalucia")
        district_only = create_record("B", street="Calle Luna", district="Nueva Andalucía")
        city_only = create_record("C", district="Golden Mile")
        planner, _ = make_pipeline([subject, both, district_only, city_only])

        state = planner.search(build_criteria(subject), SearchState(target_count=12))

        assert ids(state.candidates) == ["A", "B", "C"]
        assert [c.tier for c in state.candidates] == ["street", "district", "city"]
        assert state.tiers_run == ["street", "district", "city", "broad"]
        assert state.total_found == 3

    def test_stops_once_target_reached(self, make_pipeline, create_record):
        subject = create_record("SUBJ", street="Calle Sol")
        records = [create_record(f"S{i}", street="Calle Sol") for i in range(3)]
        planner, _ = make_pipeline([subject] + records)

        state = planner.search(build_criteria(subject, target_count=2), SearchState(target_count=2))

        assert state.tiers_run == ["street"]
        assert state.accepted_count == 3

    def test_tiers_skipped_without_component(self, make_pipeline, create_record):
        subject = create_record("SUBJ")
        planner, _ = make_pipeline([subject, create_record("A")])

        state = planner.search(build_criteria(subject), SearchState(target_count=12))

        assert state.tiers_run == ["city", "broad"]

    def test_neighbouring_developments(self, make_pipeline, create_record):
        subject = create_record("SUBJ", development="Nueva Andalucía")
        neighbour = create_record("N", development="Benahavís")
        unrelated = create_record("U", development="Elviria")
        planner, _ = make_pipeline([subject, neighbour, unrelated])

        state = planner.search(build_criteria(subject), SearchState(target_count=12))

        assert state.tiers_run[:2] == ["development", "nearby_development"]
        assert state.candidates[0].record.id == "N"
        assert state.candidates[0].tier == "nearby_development"
        assert state.candidates[1].record.id == "U"
        assert state.candidates[1].tier == "city"

    def test_custom_adjacency(self, reference_date, create_record):
        subject = create_record("SUBJ", development="Alpha")
        beta = create_record("B", development="Beta")
        catalog = CatalogIndex([subject, beta])
        planner = TieredSearchPlanner(
            CandidateSource(catalog),
            SimilarityScorer(reference_date),
            adjacency={"alpha": ["beta"]},
        )

        state = planner.search(build_criteria(subject), SearchState(target_count=12))

        assert state.candidates[0].tier == "nearby_development"

    def test_subject_never_returned(self, make_pipeline, create_record):
        subject = create_record("SUBJ", street="Calle Sol")
        planner, _ = make_pipeline([subject, create_record("A", street="Calle Sol")])

        state = planner.search(build_criteria(subject), SearchState(target_count=12))

        assert "SUBJ" not in ids(state.candidates)


# =============================================================================
# Test: Fallback Relaxer
# =============================================================================

class TestFallbackRelaxer:
    """Tests for progressive constraint relaxation."""

    @pytest.fixture
    def sparse_catalog(self, create_record):
        return [
            create_record("V1"),
            create_record("V2", bedrooms=1),
            create_record("H1", category="house"),
            create_record("V3", price=5_000_000),
            create_record("A1", category="apartment", bedrooms=1, build_area=60, price=300_000),
            create_record("R1", is_sale=False, is_long_term=True, monthly_price=3000, price=0),
        ]

    def test_relaxation_order(self, make_pipeline, create_record, sparse_catalog):
        subject = create_record("SUBJ")
        planner, relaxer = make_pipeline(sparse_catalog)
        criteria = build_criteria(subject)
        state = SearchState(target_count=12)

        planner.search(criteria, state)
        relaxer.relax(criteria, state)

        assert state.relaxation_steps == [
            "distance_10km",
            "drop_rooms",
            "related_category:house",
            "related_category:bungalow",
            "drop_price",
            "city_only",
        ]
        assert [(c.record.id, c.tier) for c in state.candidates] == [
            ("V1", "city"),
            ("V2", "drop_rooms"),
            ("H1", "related_category:house"),
            ("V3", "drop_price"),
            ("A1", "city_only"),
        ]
        assert state.total_found == 5

    def test_rentals_never_added(self, make_pipeline, create_record, sparse_catalog):
        subject = create_record("SUBJ")
        planner, relaxer = make_pipeline(sparse_catalog)
        criteria = build_criteria(subject)
        state = SearchState(target_count=12)

        planner.search(criteria, state)
        relaxer.relax(criteria, state)

        assert "R1" not in ids(state.candidates)

    def test_stops_when_target_met(self, make_pipeline, create_record, sparse_catalog):
        subject = create_record("SUBJ")
        planner, relaxer = make_pipeline(sparse_catalog)
        criteria = build_criteria(subject, target_count=2)
        state = SearchState(target_count=2)

        planner.search(criteria, state)
        relaxer.relax(criteria, state)

        assert state.relaxation_steps == ["distance_10km", "drop_rooms"]
        assert ids(state.candidates) == ["V1", "V2"]

    def test_satisfied_state_untouched(self, make_pipeline, create_record, sparse_catalog):
        _, relaxer = make_pipeline(sparse_catalog)
        state = SearchState(target_count=0)

        relaxer.relax(build_criteria(create_record("SUBJ")), state)

        assert state.relaxation_steps == []

    def test_related_categories(self):
        assert related_categories("Villa") == ["house", "bungalow"]
        assert related_categories("castle") == []
        assert related_categories(None) == []


# =============================================================================
# Test: Result Assembler
# =============================================================================

class TestResultAssembler:
    """Tests for dedupe, ordering, truncation and output mapping."""

    @pytest.fixture
    def assembler(self, reference_date):
        return ResultAssembler(reference_date=reference_date)

    def test_maps_record_to_comparable(self, assembler, create_record, reference_date):
        record = create_record(
            "A",
            address="Calle Sol 1, Marbella",
            build_area=250,
            price=1_000_000,
            listed_date=reference_date - timedelta(days=45),
            features=["air_conditioning", "private-dock"],
            images=["a.jpg"],
        )

        comparable = assembler.to_comparable(ScoredCandidate(record=record, score=4.2))

        assert comparable.area == 250
        assert comparable.area_type == AreaType.BUILD
        assert comparable.price_per_m2 == 4000
        assert comparable.days_on_market == 45
        assert comparable.features == ["Air Conditioning", "private-dock"]
        assert comparable.reference == "REF-A"

        data = comparable.to_dict()
        assert data["m2"] == 250
        assert data["area_type"] == "build"
        assert data["property_type"] == "villa"
        assert data["transaction_type"] == "sale"
        assert data["ref_number"] == "REF-A"

    def test_zero_area_has_no_price_per_m2(self, assembler, create_record):
        record = create_record("A", build_area=0)

        assert assembler.to_comparable(ScoredCandidate(record=record)).price_per_m2 is None

    def test_truncates_to_target(self, assembler, create_record):
        subject = create_record("SUBJ")
        candidates = [ScoredCandidate(record=create_record(str(i)), score=float(i)) for i in range(20)]

        result = assembler.assemble(candidates, build_criteria(subject, target_count=12), subject=subject)

        assert len(result) == 12
        assert result[0].score == 19.0

    def test_deduplicates_by_identity(self, create_record):
        first = ScoredCandidate(record=create_record("A", reference="SAME"), tier="street")
        again = ScoredCandidate(record=create_record("B", reference="SAME"), tier="district")

        unique = ResultAssembler.deduplicate([first, again])

        assert unique == [first]

    def test_low_information_subject_detection(self, create_record):
        assert ResultAssembler.is_low_information(
            create_record("S", bedrooms=0, bathrooms=0, build_area=0, price=500_000)
        )
        assert not ResultAssembler.is_low_information(
            create_record("S", bedrooms=2, bathrooms=0, build_area=0, price=500_000)
        )

    def test_low_information_orders_by_location(self, assembler, create_record):
        subject = create_record(
            "SUBJ", development="Nueva Andalucía",
            bedrooms=0, bathrooms=0, build_area=0, price=0,
        )
        city = ScoredCandidate(record=create_record("C"), score=9.0)
        same_dev = ScoredCandidate(record=create_record("D", development="Nueva Andalucia"), score=1.0)
        neighbour = ScoredCandidate(record=create_record("N", development="Benahavís"), score=5.0)

        result = assembler.assemble([city, same_dev, neighbour], build_criteria(subject), subject=subject)

        assert [c.reference for c in result] == ["REF-D", "REF-N", "REF-C"]
        assert [c.location_score for c in result] == [3.0, 2.5, 1.5]

    def test_low_information_ties_broken_by_price_per_m2(self, assembler, create_record):
        subject = create_record(
            "SUBJ", bedrooms=0, bathrooms=0, build_area=0, price=1_000_000,
        )
        far = ScoredCandidate(record=create_record("F", build_area=100, price=2_000_000), score=9.0)
        close = ScoredCandidate(record=create_record("N", build_area=100, price=1_100_000), score=1.0)

        result = assembler.assemble([far, close], build_criteria(subject), subject=subject)

        assert [c.reference for c in result] == ["REF-N", "REF-F"]

    def test_feature_label_passthrough(self):
        assert feature_label("air_conditioning") == "Air Conditioning"
        assert feature_label("unknown-code") == "unknown-code"
