"""
Record Normaliser - Ingestion Boundary for Catalog and Subject Records

Feed records arrive as loosely-typed dicts with mixed naming conventions
(camelCase and snake_case, "urbanization" and "urbanisation", province codes,
accented city names). Everything is mapped here, once, into PropertyRecord so
the matching engine only ever sees the canonical shape.
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import re
from datetime import date, datetime
from typing import Any, Final, Mapping, Optional, Tuple

from core.comp_engine.geography import find_known_development, fold, province_name
from core.comp_engine.models import Condition, PropertyRecord, TransactionType


logger = logging.getLogger(__name__)


# =============================================================================
# Category Mapping
# =============================================================================

CATEGORY_MAP: Final[dict[str, str]] = {
    # Apartment variants
    "apartment": "apartment",
    "apartamento": "apartment",
    "ground floor apartment": "apartment",
    "middle floor apartment": "apartment",
    "top floor apartment": "apartment",
    "flat": "flat",
    "studio": "studio",
    "estudio": "studio",
    "penthouse": "penthouse",
    "atico": "penthouse",
    "duplex": "duplex",
    "duplex penthouse": "penthouse",
    # Houses
    "villa": "villa",
    "detached villa": "villa",
    "chalet": "villa",
    "house": "house",
    "casa": "house",
    "finca": "house",
    "country house": "house",
    "townhouse": "townhouse",
    "town house": "townhouse",
    "semi-detached house": "townhouse",
    "casa adosada": "townhouse",
    "bungalow": "bungalow",
}

# Description keywords used when a subject arrives without a category
CATEGORY_KEYWORDS: Final[list[tuple[tuple[str, ...], str]]] = [
    (("apartment", "apartamento"), "apartment"),
    (("villa", "casa"), "villa"),
    (("penthouse", "atico"), "penthouse"),
    (("townhouse", "casa adosada"), "townhouse"),
]


# =============================================================================
# Transaction and Condition Keywords
# =============================================================================

SHORT_TERM_KEYWORDS: Final[tuple[str, ...]] = (
    "weekly", "holiday", "vacation", "temporary", "short-term", "semanal",
)
LONG_TERM_KEYWORDS: Final[tuple[str, ...]] = (
    "monthly", "long-term", "alquiler", "rental", "mensual",
)

# Checked in order; first family present in the feature codes wins
CONDITION_FEATURE_KEYWORDS: Final[list[tuple[tuple[str, ...], Condition]]] = [
    (("excellent-condition", "luxury", "new-build"), Condition.EXCELLENT),
    (("good-condition", "well-maintained"), Condition.GOOD),
    (("fair-condition", "needs-renovation"), Condition.FAIR),
    (("needs-work", "renovation-project", "requires-renovation"), Condition.NEEDS_RENOVATION),
]


# =============================================================================
# Address Extraction
# =============================================================================

STREET_PATTERN: Final = re.compile(
    r"\b(?:calle|avenida|avda\.?|plaza|paseo|camino)\s+([a-záéíóúñü\s]+)",
    re.IGNORECASE,
)
CITY_SUFFIX_PATTERN: Final = re.compile(r"([A-ZÁÉÍÓÚÑ][a-záéíóúñü\s]+),\s*[A-Z]{1,2}$")


def extract_address_components(address: str) -> dict[str, str]:
    """
    Pull street, development and city out of a free-text address.

    Only used for records that do not carry decomposed fields.

    Args:
        address: Free-text address, e.g. "Calle Sevilla, Nueva Andalucía, Marbella, MA"

    Returns:
        Dict with "street", "development" and "city" (empty when not found)
    """
    components = {"street": "", "development": "", "city": ""}
    if not address:
        return components

    street_match = STREET_PATTERN.search(address)
    if street_match:
        components["street"] = street_match.group(1).strip()

    components["development"] = find_known_development(address)

    city_match = CITY_SUFFIX_PATTERN.search(address.strip())
    if city_match:
        components["city"] = city_match.group(1).strip()

    return components


# =============================================================================
# Field Helpers
# =============================================================================


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    """Return the first present, non-empty value among keys."""
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return None


def _as_float(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _as_int(value: Any) -> int:
    return int(_as_float(value))


def _as_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
        return None
    return bool(value)


def _as_optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_list(value: Any) -> list:
    """A list field that may arrive as a scalar, a sequence or nothing."""
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple, set)):
        return [v for v in value if v]
    return [value]


def _coordinates(raw: Mapping[str, Any]) -> Tuple[Optional[float], Optional[float]]:
    """
    Latitude and longitude from a coordinates field or flat lat/lng keys.

    The coordinates field may be a mapping ({"lat", "lng"|"lon"}) or a
    [lat, lng] pair; any other shape is ignored.
    """
    coordinates = raw.get("coordinates")
    if isinstance(coordinates, Mapping) and coordinates:
        return (
            _as_optional_float(coordinates.get("lat", coordinates.get("latitude"))),
            _as_optional_float(coordinates.get("lng", coordinates.get("lon"))),
        )
    if isinstance(coordinates, (list, tuple)) and len(coordinates) == 2:
        return _as_optional_float(coordinates[0]), _as_optional_float(coordinates[1])
    return (
        _as_optional_float(_first(raw, "latitude", "lat")),
        _as_optional_float(_first(raw, "longitude", "lng", "lon")),
    )


def parse_date(value: Any) -> Optional[date]:
    """Parse an ISO date or datetime string into a date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        logger.debug("Unparseable date %r", value)
        return None


def normalise_category(value: Optional[str]) -> str:
    """Map a raw property type to a canonical lower-cased category."""
    if not value:
        return ""
    folded = fold(str(value)).replace("_", " ")
    if folded in ("undefined", "none", "null"):
        return ""
    return CATEGORY_MAP.get(folded, folded)


def infer_category(description: str) -> str:
    """Infer a category from description text, or "" when nothing matches."""
    folded = fold(description)
    if not folded:
        return ""
    for keywords, category in CATEGORY_KEYWORDS:
        if any(keyword in folded for keyword in keywords):
            return category
    return ""


def derive_condition(features: list[str]) -> Optional[Condition]:
    """Derive a condition rating from feature codes."""
    joined = " ".join(features).lower()
    for keywords, condition in CONDITION_FEATURE_KEYWORDS:
        if any(keyword in joined for keyword in keywords):
            return condition
    return None


def _description_text(raw: Mapping[str, Any]) -> str:
    description = _first(raw, "description", "desc")
    if isinstance(description, str):
        return description
    descriptions = raw.get("descriptions")
    if isinstance(descriptions, Mapping):
        text = descriptions.get("en") or descriptions.get("english") or ""
        return str(text)
    return ""


def detect_transaction_type(raw: Mapping[str, Any]) -> TransactionType:
    """
    Decide the transaction partition of a raw record.

    Explicit rental flags win. When both rental flags are set, weekly price
    fields mean short-let and a monthly price means long-let, defaulting to
    long-let. With no rental flags, rental price fields decide, then an
    explicit sale flag, then description keywords. Default is sale.
    """
    is_short = bool(_as_bool(_first(raw, "isShortTerm", "is_short_term")))
    is_long = bool(_as_bool(_first(raw, "isLongTerm", "is_long_term")))
    has_weekly = bool(_first(raw, "weeklyPriceFrom", "weekly_price_from", "weeklyPriceTo", "weekly_price_to"))
    has_monthly = bool(_first(raw, "monthlyPrice", "monthly_price"))

    if is_short and not is_long:
        return TransactionType.SHORT_TERM
    if is_long and not is_short:
        return TransactionType.LONG_TERM
    if is_short and is_long:
        if has_weekly:
            return TransactionType.SHORT_TERM
        return TransactionType.LONG_TERM

    explicit_sale = _as_bool(_first(raw, "isSale", "is_sale"))
    if explicit_sale is True:
        return TransactionType.SALE

    if has_monthly:
        return TransactionType.LONG_TERM
    if has_weekly:
        return TransactionType.SHORT_TERM

    description = _description_text(raw).lower()
    if description:
        short_hit = any(k in description for k in SHORT_TERM_KEYWORDS)
        long_hit = any(k in description for k in LONG_TERM_KEYWORDS)
        if short_hit and not long_hit:
            return TransactionType.SHORT_TERM
        if long_hit and not short_hit:
            return TransactionType.LONG_TERM

    if explicit_sale is False:
        # Rental with no rental flag and no price hint
        return TransactionType.LONG_TERM
    return TransactionType.SALE


def generate_record_id(raw: Mapping[str, Any]) -> str:
    """
    Stable id for a record that does not carry one.

    Format: {reference}-{hash} when a reference exists, else {hash}.
    """
    reference = _first(raw, "refNumber", "ref_number", "reference") or ""
    key_data = {
        "refNumber": reference,
        "address": raw.get("address"),
        "city": raw.get("city"),
        "province": raw.get("province"),
        "propertyType": _first(raw, "propertyType", "property_type"),
        "bedrooms": raw.get("bedrooms"),
        "bathrooms": raw.get("bathrooms"),
        "buildArea": _first(raw, "buildArea", "build_area") or 0,
        "price": raw.get("price") or 0,
    }
    digest = hashlib.sha256(json.dumps(key_data, sort_keys=True, default=str).encode()).digest()
    token = re.sub(r"[/+=]", "", base64.b64encode(digest).decode("ascii"))[:12]
    return f"{reference}-{token}" if reference else token


# =============================================================================
# Record Normalisation
# =============================================================================


def normalise_record(raw: Mapping[str, Any]) -> PropertyRecord:
    """
    Map a raw listing dict into a PropertyRecord.

    Args:
        raw: Feed or API record in any of the supported naming conventions

    Returns:
        Canonical PropertyRecord
    """
    description = _description_text(raw)
    address = str(_first(raw, "address", "fullAddress", "full_address") or "")
    extracted = extract_address_components(address)

    category = normalise_category(_first(raw, "propertyType", "property_type", "category", "type"))
    if not category:
        category = infer_category(description)

    transaction = detect_transaction_type(raw)

    features = [str(f) for f in _as_list(raw.get("features"))]

    condition = None
    raw_condition = _first(raw, "condition", "conditionRating", "condition_rating")
    if isinstance(raw_condition, (list, tuple)):
        raw_condition = raw_condition[0] if raw_condition else None
    if isinstance(raw_condition, str):
        condition = Condition.from_string(raw_condition)
    if condition is None:
        condition = derive_condition(features)

    images = _as_list(raw.get("images")) or _as_list(raw.get("image"))
    latitude, longitude = _coordinates(raw)

    return PropertyRecord(
        id=str(_first(raw, "id") or generate_record_id(raw)),
        category=category,
        is_sale=transaction is TransactionType.SALE,
        is_short_term=transaction is TransactionType.SHORT_TERM,
        is_long_term=transaction is TransactionType.LONG_TERM,
        address=address,
        street=str(_first(raw, "street") or extracted["street"]),
        development=str(_first(raw, "urbanisation", "urbanization", "development") or extracted["development"]),
        district=str(_first(raw, "suburb", "neighbourhood", "neighborhood", "district") or ""),
        city=str(_first(raw, "city", "town") or extracted["city"]),
        province=province_name(str(raw.get("province") or "")),
        latitude=latitude,
        longitude=longitude,
        bedrooms=_as_int(raw.get("bedrooms")),
        bathrooms=_as_int(raw.get("bathrooms")),
        build_area=_as_float(_first(raw, "buildArea", "build_area", "build", "totalAreaM2")),
        plot_area=_as_float(_first(raw, "plotArea", "plot_area", "plot")),
        terrace_area=_as_float(_first(raw, "terraceArea", "terrace_area_m2", "terrace_area", "terrace")),
        price=_as_float(raw.get("price")),
        monthly_price=_as_float(_first(raw, "monthlyPrice", "monthly_price")),
        weekly_price_from=_as_float(_first(raw, "weeklyPriceFrom", "weekly_price_from")),
        weekly_price_to=_as_float(_first(raw, "weeklyPriceTo", "weekly_price_to")),
        condition=condition,
        features=features,
        listed_date=parse_date(_first(raw, "dateListed", "date_listed", "listingDate", "listed_date")),
        last_updated=parse_date(_first(raw, "lastUpdated", "last_updated")),
        year_built=_as_int(_first(raw, "yearBuilt", "year_built")) or None,
        reference=str(_first(raw, "refNumber", "ref_number", "reference") or ""),
        description=description,
        images=[str(i) for i in images],
    )
