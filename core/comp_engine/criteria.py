"""
Search criteria derivation.

Turns a subject record into the base SearchCriteria used by every tier and
relaxation step.
"""

from typing import Optional

from .areas import display_area, requested_area_band
from .geography import is_high_end_area
from .models import PropertyRecord, SearchCriteria


# =============================================================================
# Configuration Constants
# =============================================================================

# Price band half-width as a fraction of the subject price
HIGH_END_PRICE_BAND = 0.3
STANDARD_PRICE_BAND = 0.5

# Only the first few subject features are used for overlap scoring
MAX_SCORED_FEATURES = 5

DEFAULT_TARGET_COUNT = 12


def price_band(price: float, city: str) -> tuple[Optional[float], Optional[float]]:
    """
    Requested price band for a subject.

    High-end areas cluster tightly, so they get +-30%; everywhere else +-50%.
    """
    if not price or price <= 0:
        return None, None
    width = HIGH_END_PRICE_BAND if is_high_end_area(city) else STANDARD_PRICE_BAND
    return round(price * (1 - width)), round(price * (1 + width))


def build_criteria(
    subject: PropertyRecord,
    target_count: int = DEFAULT_TARGET_COUNT,
) -> SearchCriteria:
    """
    Derive base search criteria from a subject property.

    Args:
        subject: Normalised subject record
        target_count: Number of comparables wanted

    Returns:
        SearchCriteria with no distance limit (tiers set their own)
    """
    area = display_area(subject)
    min_area, max_area = requested_area_band(area)
    min_price, max_price = price_band(subject.asking_price, subject.city)

    return SearchCriteria(
        transaction_type=subject.transaction_type,
        city=subject.city,
        category=subject.category or None,
        street=subject.street,
        development=subject.development,
        district=subject.district,
        bedrooms=subject.bedrooms or None,
        bathrooms=subject.bathrooms or None,
        min_price=min_price,
        max_price=max_price,
        min_area=min_area,
        max_area=max_area,
        target_area=area,
        target_price=subject.asking_price,
        features=list(subject.features[:MAX_SCORED_FEATURES]),
        conditions=[subject.condition] if subject.condition else [],
        latitude=subject.latitude,
        longitude=subject.longitude,
        exclude_id=subject.id,
        exclude_reference=subject.reference,
        target_count=target_count,
    )
