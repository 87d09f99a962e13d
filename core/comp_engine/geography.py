"""
Geographic reference data for the Costa del Sol market.

Place-name normalisation, known developments, development adjacency,
high-end areas and province codes.
"""

import unicodedata
from typing import Dict, Final, List, Optional


# =============================================================================
# Known Developments (Urbanisations)
# =============================================================================

# Ordered longest-first where one name contains another, so address scans
# pick the most specific match.
KNOWN_DEVELOPMENTS: Final[List[str]] = [
    "marina puerto banus",
    "puerto banus",
    "nueva andalucia",
    "golden mile",
    "sierra blanca",
    "la campana",
    "elviria",
    "las chapas",
    "calahonda",
    "marbella club",
    "puerto deportivo",
    "san pedro alcantara",
    "benahavis",
    "costabella",
    "artola",
    "cabopino",
    "nagueles",
    "rio real",
    "marina banus",
]

# Neighbouring developments searched by the nearby-development tier
NEARBY_DEVELOPMENTS: Final[Dict[str, List[str]]] = {
    "benahavis": ["nueva andalucia", "artola", "cabopino"],
    "nueva andalucia": ["benahavis", "artola", "cabopino", "costabella"],
    "artola": ["benahavis", "nueva andalucia", "cabopino"],
    "cabopino": ["benahavis", "nueva andalucia", "artola"],
    "costabella": ["nueva andalucia", "artola", "cabopino"],
    "nagueles": ["sierra blanca", "la campana", "golden mile"],
    "sierra blanca": ["nagueles", "la campana", "golden mile"],
    "la campana": ["nagueles", "sierra blanca", "golden mile"],
    "golden mile": ["nagueles", "sierra blanca", "la campana"],
    "elviria": ["las chapas", "calahonda", "marbella club"],
    "las chapas": ["elviria", "calahonda", "marbella club"],
    "calahonda": ["elviria", "las chapas", "marbella club"],
    "marbella club": ["elviria", "las chapas", "calahonda"],
    "puerto banus": ["marina puerto banus", "puerto deportivo"],
    "marina puerto banus": ["puerto banus", "puerto deportivo"],
    "puerto deportivo": ["puerto banus", "marina puerto banus"],
}

# Areas where prices cluster tightly enough for a narrower price band
HIGH_END_AREAS: Final[List[str]] = [
    "banus",
    "puerto banus",
    "nueva andalucia",
    "marbella",
    "benahavis",
    "estepona",
    "mijas costa",
    "fuengirola",
    "benalmadena",
    "torremolinos",
]

PROVINCE_NAMES: Final[Dict[str, str]] = {
    "MA": "Málaga",
    "CA": "Cádiz",
    "GR": "Granada",
    "A": "Alicante",
    "T": "Tarragona",
    "PM": "Palma",
    "GI": "Girona",
    "CO": "Córdoba",
    "AL": "Almería",
    "M": "Madrid",
    "SE": "Sevilla",
    "B": "Barcelona",
    "J": "Jaén",
    "CS": "Castellón",
}


def fold(value: Optional[str]) -> str:
    """
    Normalise a place name for comparison.

    Lower-cases, strips accents and collapses whitespace, so
    "Nueva  Andalucía" and "nueva andalucia" compare equal.
    """
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFKD", value)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return " ".join(stripped.lower().split())


def same_place(a: Optional[str], b: Optional[str]) -> bool:
    """Exact, case- and accent-insensitive place comparison."""
    folded = fold(a)
    return bool(folded) and folded == fold(b)


def nearby_developments(
    development: str,
    adjacency: Optional[Dict[str, List[str]]] = None,
) -> List[str]:
    """Neighbouring developments of a development, in search order."""
    table = NEARBY_DEVELOPMENTS if adjacency is None else adjacency
    return list(table.get(fold(development), []))


def find_known_development(text: str) -> str:
    """Return the first known development mentioned in text, or ""."""
    folded = fold(text)
    for name in KNOWN_DEVELOPMENTS:
        if name in folded:
            return name
    return ""


def is_high_end_area(city: str) -> bool:
    folded = fold(city)
    return any(area in folded for area in HIGH_END_AREAS)


def province_name(code_or_name: str) -> str:
    """Map a province code (e.g. "MA") to its full name."""
    value = (code_or_name or "").strip()
    return PROVINCE_NAMES.get(value.upper(), value)
