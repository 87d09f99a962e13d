"""
Location label validation.

The completion service is asked for genuine place names only, but listing
descriptions are full of marketing copy that sometimes leaks through. A label
is rejected when it looks like marketing text, unless it also names a known
place.
"""

from __future__ import annotations

import re
from typing import Final, Optional

from core.comp_engine.geography import fold


# =============================================================================
# Validation Rules
# =============================================================================

MAX_LABEL_LENGTH: Final[int] = 80
MAX_MARKETING_WORDS: Final[int] = 2
MAX_LABEL_WORDS: Final[int] = 10

KNOWN_PLACES: Final[list[str]] = [
    "puerto banus",
    "nueva andalucia",
    "marbella",
    "estepona",
    "mijas",
    "fuengirola",
    "benalmadena",
    "las chapas",
    "hacienda las chapas",
    "golden mile",
    "marbella east",
    "guadalmina",
    "san pedro",
    "benahavis",
    "la quinta",
    "los monteros",
    "elviria",
    "cabopino",
    "calahonda",
]

MARKETING_WORDS: Final[list[str]] = [
    "beautiful",
    "stunning",
    "magnificent",
    "luxury",
    "unforgettable",
    "definitely",
    "experience",
    "lifestyle",
]

MARKETING_PATTERNS: Final[list[re.Pattern]] = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"beautiful surroundings.*unforgettable.*experience",
        r"luxury.*lifestyle.*comfort",
        r"stunning.*views.*magnificent",
        r"golf courses.*living.*such.*beautiful",
        r"will definitely become.*unforgettable",
        r"comfort.*relaxation.*magnificent.*nature",
    )
]


def contains_known_place(label: str) -> bool:
    folded = fold(label)
    return any(place in folded for place in KNOWN_PLACES)


def count_marketing_words(label: str) -> int:
    """Number of words containing a marketing adjective."""
    words = label.lower().split()
    return sum(1 for word in words if any(mw in word for mw in MARKETING_WORDS))


def is_valid_location_label(label: Optional[str]) -> bool:
    """
    Decide whether a completion-service label is a genuine place name.

    Rules, in order:
    - Empty -> reject
    - Longer than 80 characters -> reject
    - Mentions a known place -> accept
    - Matches a marketing phrase pattern -> reject
    - More than two marketing words -> reject
    - Up to ten words -> accept
    """
    if not label or not label.strip():
        return False
    if len(label) > MAX_LABEL_LENGTH:
        return False
    if contains_known_place(label):
        return True
    if any(pattern.search(label) for pattern in MARKETING_PATTERNS):
        return False
    if count_marketing_words(label) > MAX_MARKETING_WORDS:
        return False
    return len(label.split()) <= MAX_LABEL_WORDS
