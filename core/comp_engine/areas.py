"""
Area resolution for the Comp Engine

A listing can carry build, plot and terrace areas. Exactly one of them is
used wherever area matters: filtering, scoring and output all go through
resolve_display_area so they can never disagree.
"""

from typing import Optional, Tuple

from .models import AreaType, PropertyRecord


# =============================================================================
# Configuration Constants
# =============================================================================

# Villa build area below this share of the plot is described by the plot
SMALL_BUILD_PLOT_RATIO = 0.3

# Dynamic tolerance by villa build area (m2)
SMALL_VILLA_BUILD_M2 = 100
MEDIUM_VILLA_BUILD_M2 = 150
SMALL_VILLA_TOLERANCE = 1.0
MEDIUM_VILLA_TOLERANCE = 0.75
STANDARD_TOLERANCE = 0.3

# Requested area band around the subject
AREA_BAND_LOWER = 0.7
AREA_BAND_UPPER = 1.5
AREA_BAND_FLOOR_M2 = 40.0

VILLA = "villa"


def resolve_display_area(
    category: str,
    build_area: float,
    plot_area: float,
    terrace_area: float,
) -> Tuple[float, AreaType]:
    """
    Pick the authoritative area for a listing.

    Villas prefer build area, unless a positive build area is under 30% of a
    positive plot area, in which case the plot describes the property better.
    Everything else prefers build area, then plot area. Terrace area is the
    last resort for all categories.

    Args:
        category: Lower-cased property category
        build_area: Built area in m2 (0 when absent)
        plot_area: Plot area in m2 (0 when absent)
        terrace_area: Terrace area in m2 (0 when absent)

    Returns:
        Tuple of (area, area type)
    """
    build = build_area or 0.0
    plot = plot_area or 0.0

    if (category or "").lower() == VILLA:
        if build > 0:
            if plot > 0 and build < plot * SMALL_BUILD_PLOT_RATIO:
                return plot, AreaType.PLOT
            return build, AreaType.BUILD
        if plot > 0:
            return plot, AreaType.PLOT
    else:
        if build > 0:
            return build, AreaType.BUILD
        if plot > 0:
            return plot, AreaType.PLOT

    return max(terrace_area or 0.0, 0.0), AreaType.TERRACE


def display_area(record: PropertyRecord) -> float:
    """Display area of a record."""
    area, _ = resolve_display_area(
        record.category, record.build_area, record.plot_area, record.terrace_area,
    )
    return area


def display_area_with_type(record: PropertyRecord) -> Tuple[float, AreaType]:
    return resolve_display_area(
        record.category, record.build_area, record.plot_area, record.terrace_area,
    )


def area_tolerance(category: str, build_area: float) -> float:
    """
    Dynamic area tolerance for a candidate.

    Small-build villas are undervalued by area alone, so they get a much
    wider window than everything else.
    """
    if (category or "").lower() == VILLA:
        build = build_area or 0.0
        if build < SMALL_VILLA_BUILD_M2:
            return SMALL_VILLA_TOLERANCE
        if build < MEDIUM_VILLA_BUILD_M2:
            return MEDIUM_VILLA_TOLERANCE
    return STANDARD_TOLERANCE


def is_within_area_band(
    record: PropertyRecord,
    min_area: Optional[float],
    max_area: Optional[float],
) -> bool:
    """
    Check a candidate against the requested area band.

    Lower bound: area >= min * tolerance
    Upper bound: area <= max * (2 - tolerance)
    """
    area = display_area(record)
    tolerance = area_tolerance(record.category, record.build_area)

    if min_area and area < min_area * tolerance:
        return False
    if max_area and area > max_area * (2 - tolerance):
        return False
    return True


def requested_area_band(area: float) -> Tuple[Optional[float], Optional[float]]:
    """
    Area band requested for a subject of the given display area.

    Returns (None, None) when the subject has no usable area.
    """
    if not area or area <= 0:
        return None, None
    return max(area * AREA_BAND_LOWER, AREA_BAND_FLOOR_M2), area * AREA_BAND_UPPER
