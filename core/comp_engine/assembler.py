"""
Result Assembler for the Comp Engine

Deduplicates the accumulated candidates, orders them, truncates to the
target count and maps raw records into the Comparable output shape.
"""

import logging
from datetime import date
from typing import Dict, Final, List, Optional

from .areas import display_area, display_area_with_type
from .geography import nearby_developments, same_place
from .models import Comparable, PropertyRecord, ScoredCandidate, SearchCriteria
from .scoring import SimilarityScorer


logger = logging.getLogger(__name__)


# =============================================================================
# Feature Labels
# =============================================================================

FEATURE_LABELS: Final[Dict[str, str]] = {
    "alarm-system": "Alarm System",
    "all-electric-home": "All Electric Home",
    "air_conditioning": "Air Conditioning",
    "bank-repossession": "Bank Repossession",
    "barbeque-area": "BBQ Area",
    "basement": "Basement",
    "beach-front": "Beachfront",
    "central-heating": "Central Heating",
    "close-to-beach": "Close to Beach",
    "close-to-golf": "Close to Golf",
    "close-to-marina": "Close to Marina",
    "close-to-restaurants": "Close to Restaurants",
    "close-to-schools": "Close to Schools",
    "close-to-shops": "Close to Shops",
    "close-to-ski-resort": "Close to Ski Resort",
    "close-to-town-centre": "Close to Town Centre",
    "cold-hot-ac-units": "Hot & Cold AC",
    "commercial-district": "Commercial District",
    "countryside": "Countryside",
    "covered-terrace": "Covered Terrace",
    "disabled-access": "Disabled Access",
    "distressed-property": "Distressed Property",
    "double-glazing": "Double Glazing",
    "drinkable-water": "Drinkable Water",
    "ducted-central-ac": "Central AC",
    "east": "East-facing",
    "electric-blinds": "Electric Blinds",
    "ensuite-bathroom": "Ensuite Bathroom",
    "entry-phone-system": "Entry Phone System",
    "excellent-condition": "Excellent Condition",
    "fair-condition": "Fair Condition",
    "fibre-internet": "Fibre Internet",
    "fireplace": "Fireplace",
    "fitted-wardrobes": "Fitted Wardrobes",
    "fully-equipped-kitchen": "Fully Equipped Kitchen",
    "fully-furnished": "Fully Furnished",
    "games-room": "Games Room",
    "garage": "Garage",
    "garden-communal": "Communal Garden",
    "garden-landscaped": "Landscaped Garden",
    "garden-private": "Private Garden",
    "gas": "Gas",
    "gated-complex": "Gated Complex",
    "golf-front": "Golf-front",
    "good-condition": "Good Condition",
    "guest-apartment": "Guest Apartment",
    "guest-house": "Guest House",
    "gym": "Gym",
    "heated-bathroom-floors": "Heated Bathroom Floors",
    "historic-property": "Historic Property",
    "home-automation": "Home Automation",
    "investment-opportunity": "Investment Opportunity",
    "jacuzzi": "Jacuzzi",
    "kitchen-not-equipped": "Kitchen Not Equipped",
    "lift": "Lift",
    "luxury-property": "Luxury Property",
    "marble-flooring": "Marble Flooring",
    "modern": "Modern",
    "mountain": "Mountain Views",
    "near-public-transport": "Near Public Transport",
    "new-development": "New Development",
    "newly-built": "Newly Built",
    "north": "North-facing",
    "north-east": "North-east-facing",
    "north-west": "North-west-facing",
    "off-plan-project": "Off-plan Project",
    "on-site-restaurant": "On-site Restaurant",
    "open-plan-kitchen-lounge": "Open-plan Kitchen/Lounge",
    "paddle-court": "Paddle Court",
    "parking-communal": "Communal Parking",
    "parking-covered": "Covered Parking",
    "parking-multiple": "Multiple Parking Spaces",
    "parking-private-space": "Private Parking Space",
    "parking-underground": "Underground Parking",
    "partially-equipped-kitchen": "Partially Equipped Kitchen",
    "partially-furnished": "Partially Furnished",
    "pool-childrens": "Children",
    "pool-communal": "Communal Pool",
    "pool-heated": "Heated Pool",
    "pool-indoor": "Indoor Pool",
    "pool-private": "Private Pool",
    "pool-room-for": "Pool Room",
    "port-marina": "Port/Marina",
    "pre-installed-ac": "Pre-installed A/C",
    "private-terrace": "Private Terrace",
    "private-well": "Private Water Well",
    "recently-refurbished": "Recently Refurbished",
    "recently-renovated": "Recently Renovated",
    "reception-24-hour": "24-hour Reception",
    "requires-renovation": "Requires Renovation",
    "satellite-tv": "Satellite TV",
    "sauna": "Sauna",
    "security-24-hour": "24-hour Security",
    "smart-home": "Smart Home",
    "solar-power": "Solar Power",
    "solar-water-heating": "Solar Water Heating",
    "solarium": "Solarium",
    "south": "South-facing",
    "south-east": "South-east-facing",
    "south-west": "South-west-facing",
    "stables": "Stables",
    "staff-accommodation": "Staff Accommodation",
    "storage-room": "Storage Room",
    "style-andalucian": "Andalusian Style",
    "style-rustic": "Rustic Style",
    "suburban-area": "Suburban Area",
    "surrounded-by-nature": "Surrounded by Nature",
    "tennis-court": "Tennis Court",
    "town-centre": "Town Centre",
    "underfloor-heating": "Underfloor Heating",
    "unfurnished": "Unfurnished",
    "urban-living": "Urban Living",
    "utility-room": "Utility Room",
    "views-beach": "Beach Views",
    "views-city": "City Views",
    "views-countryside": "Countryside Views",
    "views-forest": "Forest Views",
    "views-garden": "Garden Views",
    "views-golf": "Golf Views",
    "views-lake": "Lake Views",
    "views-marina": "Marina Views",
    "views-mountain": "Mountain Views",
    "views-panoramic": "Panoramic Views",
    "views-pool": "Pool Views",
    "views-sea": "Sea Views",
    "views-ski-resort": "Ski Resort Views",
    "village": "Village",
    "walking-amenities": "Walking Distance to Amenities",
    "walking-beach": "Walking Distance to Beach",
    "west": "West-facing",
    "wifi": "WiFi",
    "with-planning-permission": "With Planning Permission",
    "wooden-flooring": "Wooden Flooring",
}


# =============================================================================
# Location Relevance (low-information subjects)
# =============================================================================

LOCATION_BASE = 1.0
SAME_DEVELOPMENT_BONUS = 2.0
SAME_DISTRICT_BONUS = 1.5
NEIGHBOUR_DEVELOPMENT_BONUS = 1.0
SAME_CITY_BONUS = 0.5

# Location scores equal at this precision are ordered by price gap
LOCATION_SCORE_DECIMALS = 1

# Price-per-m2 denominator when the subject has no usable area
DEFAULT_AREA_M2 = 100.0


def feature_label(code: str) -> str:
    """Human-readable label for a feature code; unknown codes pass through."""
    return FEATURE_LABELS.get(code, code)


class ResultAssembler:
    """
    Final stage of a comparable search.

    Standard ordering is by similarity score (stable, so tier order breaks
    ties). Low-information subjects, which give the scorer little to work
    with, are ordered by a location-relevance tag and then by closeness of
    price per m2 instead.
    """

    def __init__(self, reference_date: date = None):
        """
        Args:
            reference_date: Date to calculate days on market from (default: today)
        """
        self._reference_date = reference_date or date.today()

    def assemble(
        self,
        candidates: List[ScoredCandidate],
        criteria: SearchCriteria,
        subject: Optional[PropertyRecord] = None,
        adjacency: Optional[Dict[str, List[str]]] = None,
    ) -> List[Comparable]:
        """
        Dedupe, order, truncate and map candidates.

        Args:
            candidates: Accumulated candidates in insertion (tier) order
            criteria: Base criteria for the search
            subject: Subject record, used to detect low-information subjects
            adjacency: Development adjacency for location relevance

        Returns:
            At most criteria.target_count comparables
        """
        unique = self.deduplicate(candidates)

        if subject is not None and self.is_low_information(subject):
            ordered = self.order_by_location(unique, criteria, adjacency)
            logger.debug("Low-information subject: ordered %d by location relevance", len(ordered))
        else:
            ordered = SimilarityScorer.rank(unique)

        selected = ordered[: criteria.target_count]
        return [self.to_comparable(c) for c in selected]

    @staticmethod
    def deduplicate(candidates: List[ScoredCandidate]) -> List[ScoredCandidate]:
        """Keep the first occurrence of each identity."""
        seen = set()
        result = []
        for candidate in candidates:
            if candidate.identity in seen:
                continue
            seen.add(candidate.identity)
            result.append(candidate)
        return result

    @staticmethod
    def is_low_information(subject: PropertyRecord) -> bool:
        """Fewer than two of bedrooms, bathrooms, area and price are known."""
        known = sum(
            1 for value in (
                subject.bedrooms,
                subject.bathrooms,
                display_area(subject),
                subject.asking_price,
            ) if value
        )
        return known < 2

    def order_by_location(
        self,
        candidates: List[ScoredCandidate],
        criteria: SearchCriteria,
        adjacency: Optional[Dict[str, List[str]]] = None,
    ) -> List[ScoredCandidate]:
        """
        Tag candidates with location relevance and order by it.

        Primary key is the location score (compared at one decimal place),
        secondary is |price per m2 - subject price per m2|.
        """
        for candidate in candidates:
            candidate.location_score = self.location_score(candidate.record, criteria, adjacency)

        target_ppm = self._price_per_m2(criteria.target_price, criteria.target_area)

        def price_gap(candidate: ScoredCandidate) -> float:
            if target_ppm is None:
                return 0.0
            ppm = self._price_per_m2(candidate.record.asking_price, display_area(candidate.record))
            return abs((ppm or 0.0) - target_ppm)

        def key(candidate: ScoredCandidate):
            return (-round(candidate.location_score, LOCATION_SCORE_DECIMALS), price_gap(candidate))

        return sorted(candidates, key=key)

    @staticmethod
    def location_score(
        record: PropertyRecord,
        criteria: SearchCriteria,
        adjacency: Optional[Dict[str, List[str]]] = None,
    ) -> float:
        score = LOCATION_BASE
        if criteria.development and same_place(record.development, criteria.development):
            return score + SAME_DEVELOPMENT_BONUS
        if criteria.district and same_place(record.district, criteria.district):
            return score + SAME_DISTRICT_BONUS

        neighbours = nearby_developments(criteria.development, adjacency) if criteria.development else []
        if any(same_place(record.development, n) for n in neighbours):
            score += NEIGHBOUR_DEVELOPMENT_BONUS
        if same_place(record.city, criteria.city):
            score += SAME_CITY_BONUS
        return score

    @staticmethod
    def _price_per_m2(price: float, area: float) -> Optional[float]:
        if not price:
            return None
        return price / (area or DEFAULT_AREA_M2)

    def days_on_market(self, listed_date: Optional[date]) -> Optional[int]:
        """Whole days between listing and the reference date."""
        if listed_date is None:
            return None
        return (self._reference_date - listed_date).days

    def to_comparable(self, candidate: ScoredCandidate) -> Comparable:
        record = candidate.record
        area, area_type = display_area_with_type(record)
        price = record.asking_price

        return Comparable(
            address=record.address,
            price=price,
            area=int(round(area)),
            area_type=area_type,
            bedrooms=record.bedrooms,
            bathrooms=record.bathrooms,
            category=record.category,
            transaction_type=record.transaction_type,
            listed_date=record.listed_date,
            days_on_market=self.days_on_market(record.listed_date),
            price_per_m2=int(round(price / area)) if area > 0 and price else None,
            condition=record.condition,
            features=[feature_label(code) for code in record.features],
            reference=record.reference,
            images=list(record.images),
            score=candidate.score,
            location_score=candidate.location_score,
        )
