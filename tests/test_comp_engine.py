"""
Tests for Comp Engine v1.0 building blocks

Verifies:
- Display area resolution is the same everywhere area is used
- Dynamic area tolerance for small villas
- Criteria filters (transaction, rooms, price, area, radius, self-exclusion)
- Similarity score bands and monotonicity
- Criteria derivation from a subject
"""

import pytest
from datetime import date, timedelta
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.comp_engine import (
    AreaType,
    Condition,
    CriteriaFilter,
    PropertyRecord,
    ScoredCandidate,
    SearchCriteria,
    SimilarityScorer,
    TransactionType,
)
from core.comp_engine.areas import (
    area_tolerance,
    display_area,
    is_within_area_band,
    requested_area_band,
    resolve_display_area,
)
from core.comp_engine.criteria import build_criteria, price_band


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
    def _create(record_id: str = "P1", **overrides) -> PropertyRecord:
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
def scorer(reference_date):
    """Similarity scorer with fixed reference date."""
    return SimilarityScorer(reference_date=reference_date)


@pytest.fixture
def criteria_filter():
    return CriteriaFilter()


def sale_criteria(**overrides) -> SearchCriteria:
    values = dict(transaction_type=TransactionType.SALE, city="Marbella")
    values.update(overrides)
    return SearchCriteria(**values)


# =============================================================================
# Test: Display Area Resolution
# =============================================================================

class TestDisplayArea:
    """Tests for the three-way area fallback."""

    def test_small_villa_on_large_plot_uses_plot(self):
        """40 m2 build on a 500 m2 plot is described by the plot."""
        area, area_type = resolve_display_area("villa", 40, 500, 0)

        assert area == 500
        assert area_type == AreaType.PLOT

    def test_villa_with_substantial_build_uses_build(self):
        area, area_type = resolve_display_area("villa", 200, 500, 0)

        assert area == 200
        assert area_type == AreaType.BUILD

    def test_villa_without_build_uses_plot(self):
        area, area_type = resolve_display_area("villa", 0, 800, 50)

        assert area == 800
        assert area_type == AreaType.PLOT

    def test_non_villa_ignores_plot_ratio(self):
        """The 30% rule is villa-only."""
        area, area_type = resolve_display_area("apartment", 80, 500, 0)

        assert area == 80
        assert area_type == AreaType.BUILD

    def test_terrace_is_last_resort(self):
        area, area_type = resolve_display_area("apartment", 0, 0, 30)

        assert area == 30
        assert area_type == AreaType.TERRACE

    def test_no_area_at_all(self):
        area, area_type = resolve_display_area("penthouse", 0, 0, 0)

        assert area == 0
        assert area_type == AreaType.TERRACE

    def test_record_helper_matches_resolver(self, create_record):
        record = create_record(build_area=40, plot_area=500)

        assert display_area(record) == 500


# =============================================================================
# Test: Area Tolerance
# =============================================================================

class TestAreaTolerance:
    """Tests for dynamic tolerance bounds."""

    def test_small_villa_gets_full_tolerance(self):
        assert area_tolerance("villa", 80) == 1.0

    def test_medium_villa_gets_75_percent(self):
        assert area_tolerance("villa", 140) == 0.75

    def test_large_villa_gets_30_percent(self):
        assert area_tolerance("villa", 200) == 0.3

    def test_apartment_always_30_percent(self):
        assert area_tolerance("apartment", 50) == 0.3
        assert area_tolerance("apartment", 500) == 0.3

    def test_small_villa_band_is_exact_request(self, create_record):
        """100% tolerance: accept within [min x 1.0, max x 1.0]."""
        record = create_record(build_area=80)

        assert is_within_area_band(record, 60, 120)
        assert is_within_area_band(record, 80, 80)
        assert not is_within_area_band(record, 81, 120)
        assert not is_within_area_band(record, 60, 79)

    def test_medium_villa_upper_bound(self, create_record):
        """75% tolerance: upper bound is max x 1.25."""
        record = create_record(build_area=140)

        assert is_within_area_band(record, 100, 112)
        assert not is_within_area_band(record, 100, 100)

    def test_apartment_band_is_wide(self, create_record):
        """30% tolerance: lower bound min x 0.3, upper bound max x 1.7."""
        record = create_record(category="apartment", build_area=100)

        assert is_within_area_band(record, 300, 400)
        assert is_within_area_band(record, 40, 60)
        assert not is_within_area_band(record, 400, 500)
        assert not is_within_area_band(record, 40, 55)

    def test_unbounded_band_accepts_everything(self, create_record):
        assert is_within_area_band(create_record(build_area=5000), None, None)

    def test_requested_band_has_floor(self):
        assert requested_area_band(50) == (40.0, 75.0)
        assert requested_area_band(200) == (140.0, 300.0)
        assert requested_area_band(0) == (None, None)


# =============================================================================
# Test: Criteria Filters
# =============================================================================

class TestCriteriaFilter:
    """Tests for per-record filtering."""

    def test_rental_never_matches_sale_criteria(self, criteria_filter, create_record):
        sale = create_record("S")
        rental = create_record("R", is_sale=False, is_long_term=True)

        passed, stats = criteria_filter.filter_records([sale, rental], sale_criteria())

        assert passed == [sale]
        assert stats.transaction == 1

    def test_subject_excluded_by_id_and_reference(self, criteria_filter, create_record):
        by_id = create_record("SUBJ", reference="OTHER")
        by_ref = create_record("X", reference="REF-SUBJ")
        other = create_record("Y")

        passed, stats = criteria_filter.filter_records(
            [by_id, by_ref, other],
            sale_criteria(exclude_id="SUBJ", exclude_reference="REF-SUBJ"),
        )

        assert passed == [other]
        assert stats.excluded_self == 2

    def test_bedroom_window_is_plus_minus_one(self, criteria_filter, create_record):
        records = [create_record(str(n), bedrooms=n) for n in range(1, 7)]

        passed, _ = criteria_filter.filter_records(records, sale_criteria(bedrooms=4))

        assert [r.bedrooms for r in passed] == [3, 4, 5]

    def test_room_window_lower_bound_never_below_one(self, criteria_filter, create_record):
        studio = create_record("ST", bedrooms=0)
        one_bed = create_record("OB", bedrooms=1)

        passed, _ = criteria_filter.filter_records([studio, one_bed], sale_criteria(bedrooms=1))

        assert passed == [one_bed]

    def test_price_band(self, criteria_filter, create_record):
        cheap = create_record("C", price=500_000)
        mid = create_record("M", price=1_000_000)
        dear = create_record("D", price=2_000_000)

        passed, stats = criteria_filter.filter_records(
            [cheap, mid, dear], sale_criteria(min_price=700_000, max_price=1_300_000),
        )

        assert passed == [mid]
        assert stats.price == 2

    def test_radius_applies_only_with_both_coordinates(self, criteria_filter, create_record):
        near = create_record("N", latitude=36.51, longitude=-4.88)
        far = create_record("F", latitude=36.72, longitude=-4.42)  # Malaga
        unknown = create_record("U")

        passed, _ = criteria_filter.filter_records(
            [near, far, unknown],
            sale_criteria(max_distance_km=5, latitude=36.51, longitude=-4.89),
        )

        assert passed == [near, unknown]

    def test_radius_ignored_without_subject_coordinates(self, criteria_filter, create_record):
        far = create_record("F", latitude=36.72, longitude=-4.42)

        passed, _ = criteria_filter.filter_records([far], sale_criteria(max_distance_km=1))

        assert passed == [far]

    def test_haversine_known_distance(self):
        # Marbella to Malaga centre is roughly 45 km
        distance = CriteriaFilter.haversine_km(36.5101, -4.8825, 36.7213, -4.4214)

        assert 40 < distance < 50


# =============================================================================
# Test: Similarity Scoring
# =============================================================================

class TestSimilarityScorer:
    """Tests for additive score bands."""

    def test_identical_candidate_scores_every_bonus(self, scorer, create_record, reference_date):
        subject = create_record(
            "SUBJ", condition=Condition.GOOD, features=["pool", "garden"],
        )
        twin = create_record(
            "TWIN",
            condition=Condition.GOOD,
            features=["pool", "garden"],
            listed_date=reference_date - timedelta(days=10),
        )

        score = scorer.score(twin, build_criteria(subject))

        # 1 + 2 + 1.5 + 2 + 1.5 + 1.5 + 1.0 + 1.0 + 0.3
        assert score == pytest.approx(11.8)

    def test_score_monotonicity(self, scorer, create_record):
        """Identical candidate must beat one matching nothing."""
        subject = create_record("SUBJ", condition=Condition.GOOD)
        criteria = build_criteria(subject)
        twin = create_record("TWIN", condition=Condition.GOOD)
        stranger = create_record(
            "ODD",
            category="apartment",
            bedrooms=1,
            bathrooms=1,
            build_area=1000,
            price=5_000_000,
            condition=Condition.NEEDS_RENOVATION,
        )

        assert scorer.score(twin, criteria) > scorer.score(stranger, criteria)

    def test_base_score_only(self, scorer, create_record):
        record = create_record(bedrooms=9, bathrooms=9, build_area=0, price=0)
        criteria = sale_criteria(bedrooms=2, bathrooms=1)

        assert scorer.score(record, criteria) == pytest.approx(1.0)

    @pytest.mark.parametrize("requested,candidate,expected", [
        (Condition.GOOD, Condition.GOOD, 2.0),
        (Condition.GOOD, Condition.FAIR, 1.5),
        (Condition.GOOD, Condition.EXCELLENT, 1.5),
        (Condition.GOOD, Condition.NEEDS_RENOVATION, 1.0),
        (Condition.GOOD, Condition.NEW_BUILD, 0.5),
        (Condition.EXCELLENT, Condition.NEW_BUILD, 0.1),
    ])
    def test_condition_ladder(self, requested, candidate, expected):
        assert SimilarityScorer.condition_similarity([requested], candidate) == expected

    def test_condition_missing_scores_zero(self):
        assert SimilarityScorer.condition_similarity([], Condition.GOOD) == 0.0
        assert SimilarityScorer.condition_similarity([Condition.GOOD], None) == 0.0

    @pytest.mark.parametrize("actual,expected", [
        (104, 1.5),
        (110, 1.0),
        (125, 0.5),
        (140, 0.2),
        (160, 0.0),
        (60, 0.2),
    ])
    def test_relative_bands(self, actual, expected):
        assert SimilarityScorer.relative_similarity(100, actual) == expected

    @pytest.mark.parametrize("actual,expected", [
        (["a", "b", "c", "d"], 1.0),
        (["a", "b", "c"], 0.7),
        (["a", "b"], 0.4),
        (["A"], 0.2),
        (["z"], 0.0),
    ])
    def test_feature_overlap_bands(self, actual, expected):
        requested = ["a", "b", "c", "d", "e"]

        assert SimilarityScorer.feature_similarity(requested, actual) == expected

    def test_recency_bands(self, scorer, reference_date):
        assert scorer.recency_score(reference_date - timedelta(days=22)) == 0.3
        assert scorer.recency_score(reference_date - timedelta(days=61)) == 0.1
        assert scorer.recency_score(reference_date - timedelta(days=400)) == 0.0
        assert scorer.recency_score(None) == 0.0

    def test_rank_is_stable_for_ties(self, create_record):
        first = ScoredCandidate(record=create_record("A"), score=3.0, tier="street")
        second = ScoredCandidate(record=create_record("B"), score=3.0, tier="city")
        best = ScoredCandidate(record=create_record("C"), score=5.0, tier="broad")

        ranked = SimilarityScorer.rank([first, second, best])

        assert [c.record.id for c in ranked] == ["C", "A", "B"]


# =============================================================================
# Test: Criteria Derivation
# =============================================================================

class TestCriteriaDerivation:
    """Tests for subject -> search criteria."""

    def test_high_end_price_band(self):
        assert price_band(1_000_000, "Marbella") == (700_000, 1_300_000)

    def test_standard_price_band(self):
        assert price_band(1_000_000, "Torrox") == (500_000, 1_500_000)

    def test_no_price_no_band(self):
        assert price_band(0, "Marbella") == (None, None)

    def test_build_criteria(self, create_record):
        subject = create_record(
            "SUBJ",
            district="Nueva Andalucía",
            features=["a", "b", "c", "d", "e", "f", "g"],
            latitude=36.5,
            longitude=-4.9,
        )

        criteria = build_criteria(subject, target_count=8)

        assert criteria.transaction_type == TransactionType.SALE
        assert criteria.category == "villa"
        assert criteria.bedrooms == 4
        assert criteria.min_area == 140.0
        assert criteria.max_area == 300.0
        assert criteria.features == ["a", "b", "c", "d", "e"]
        assert criteria.exclude_id == "SUBJ"
        assert criteria.exclude_reference == "REF-SUBJ"
        assert criteria.coordinates == (36.5, -4.9)
        assert criteria.max_distance_km is None
        assert criteria.target_count == 8

    def test_zero_rooms_disable_room_filter(self, create_record):
        criteria = build_criteria(create_record(bedrooms=0, bathrooms=0))

        assert criteria.bedrooms is None
        assert criteria.bathrooms is None
