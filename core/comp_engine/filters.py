"""
Criteria Filters for the Comp Engine

Implements the per-record filters applied after index intersection:
- Self-exclusion (subject id / reference)
- Transaction type (strict)
- Bedrooms and bathrooms (+-1 window)
- Price band
- Area band (dynamic tolerance)
- Geographic radius (when both sides have coordinates)
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .areas import is_within_area_band
from .models import PropertyRecord, SearchCriteria


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Constants
# =============================================================================

# Bedroom/bathroom tolerance window
ROOM_WINDOW = 1
MIN_ROOM_BOUND = 1

# Earth radius in km
EARTH_RADIUS_KM = 6371.0


@dataclass
class FilterStats:
    """Rejection counts from one filter pass, for logging."""
    excluded_self: int = 0
    transaction: int = 0
    bedrooms: int = 0
    bathrooms: int = 0
    price: int = 0
    area: int = 0
    distance: int = 0

    @property
    def total(self) -> int:
        return (
            self.excluded_self + self.transaction + self.bedrooms
            + self.bathrooms + self.price + self.area + self.distance
        )


class CriteriaFilter:
    """
    Applies search criteria to candidate records.

    A record must pass ALL filters that the criteria enable. Criteria fields
    left as None disable the corresponding filter.
    """

    def filter_records(
        self,
        candidates: List[PropertyRecord],
        criteria: SearchCriteria,
    ) -> Tuple[List[PropertyRecord], FilterStats]:
        """
        Filter candidates against criteria, preserving order.

        Args:
            candidates: Records returned by the catalog index
            criteria: Search criteria for this tier or relaxation step

        Returns:
            Tuple of:
            - Records passing every filter
            - Rejection counts per filter
        """
        stats = FilterStats()
        result = []

        for record in candidates:
            # Never compare the subject with itself
            if self._is_subject(record, criteria):
                stats.excluded_self += 1
                continue

            if record.transaction_type != criteria.transaction_type:
                stats.transaction += 1
                continue

            if not self._is_within_room_window(record.bedrooms, criteria.bedrooms):
                stats.bedrooms += 1
                continue

            if not self._is_within_room_window(record.bathrooms, criteria.bathrooms):
                stats.bathrooms += 1
                continue

            if not self._is_within_price_band(record, criteria):
                stats.price += 1
                continue

            if not is_within_area_band(record, criteria.min_area, criteria.max_area):
                stats.area += 1
                continue

            if not self._is_within_radius(record, criteria):
                stats.distance += 1
                continue

            result.append(record)

        if stats.total:
            logger.debug("Filtered %d of %d candidates: %s", stats.total, len(candidates), stats)

        return result, stats

    @staticmethod
    def _is_subject(record: PropertyRecord, criteria: SearchCriteria) -> bool:
        if criteria.exclude_id and record.id == criteria.exclude_id:
            return True
        if criteria.exclude_reference and record.reference == criteria.exclude_reference:
            return True
        return False

    @staticmethod
    def _is_within_room_window(value: int, target: Optional[int]) -> bool:
        """Check a room count against target +-1 (lower bound never below 1)."""
        if not target:
            return True
        low = max(MIN_ROOM_BOUND, target - ROOM_WINDOW)
        high = target + ROOM_WINDOW
        return low <= value <= high

    @staticmethod
    def _is_within_price_band(record: PropertyRecord, criteria: SearchCriteria) -> bool:
        price = record.asking_price
        if criteria.min_price and price < criteria.min_price:
            return False
        if criteria.max_price and price > criteria.max_price:
            return False
        return True

    def _is_within_radius(self, record: PropertyRecord, criteria: SearchCriteria) -> bool:
        """Check radius; records or subjects without coordinates pass."""
        if not criteria.max_distance_km:
            return True
        if record.coordinates is None or criteria.coordinates is None:
            return True
        distance = self.haversine_km(
            criteria.latitude, criteria.longitude,
            record.latitude, record.longitude,
        )
        return distance <= criteria.max_distance_km

    @staticmethod
    def haversine_km(
        lat1: float, lon1: float,
        lat2: float, lon2: float,
    ) -> float:
        """
        Calculate distance between two points in km using Haversine formula.

        Args:
            lat1, lon1: First point coordinates (degrees)
            lat2, lon2: Second point coordinates (degrees)

        Returns:
            Distance in km
        """
        lat1_rad = math.radians(lat1)
        lat2_rad = math.radians(lat2)
        dlat = math.radians(lat2 - lat1)
        dlon = math.radians(lon2 - lon1)

        a = (
            math.sin(dlat / 2) ** 2
            + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
        )
        c = 2 * math.asin(math.sqrt(a))

        return EARTH_RADIUS_KM * c
