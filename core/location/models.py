"""
Data models for the Location Resolver.

LocationResult is what resolve() returns. LocationCacheEntry is what the two
cache tiers and the permanent store hold. CompletionAnalysis is the
structured-output schema the completion service must satisfy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, Field


# =============================================================================
# Resolution Methods
# =============================================================================

# How a label was produced
METHOD_COMPLETION = "completion"
METHOD_FALLBACK = "fallback"

# Which strategy served a result
SOURCE_PERMANENT = "permanent_cache"
SOURCE_DESCRIPTION_CACHE = "description_cache"
SOURCE_DEVELOPMENT_CACHE = "development_cache"
SOURCE_COMPLETION = "completion"
SOURCE_FALLBACK = "fallback"


# =============================================================================
# Completion Service Schema
# =============================================================================


class ConditionAnalysis(BaseModel):
    """Condition assessment extracted alongside the location."""
    rating: Optional[str] = None
    details: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    confidence: Optional[int] = Field(default=None, ge=1, le=10)


class CompletionAnalysis(BaseModel):
    """Structured output required from the completion service."""
    hasSpecific: bool
    location: Optional[str] = None
    landmarks: List[str] = Field(default_factory=list)
    proximity: List[str] = Field(default_factory=list)
    condition: Optional[ConditionAnalysis] = None
    confidence: int = Field(ge=1, le=10)
    reason: str


# JSON schema sent with every completion request
COMPLETION_SCHEMA: dict = {
    "type": "object",
    "properties": {
        "hasSpecific": {
            "type": "boolean",
            "description": "True if specific location names are found",
        },
        "location": {
            "type": ["string", "null"],
            "description": "Exact place name only (urbanisation, street, area) or null if none found",
        },
        "landmarks": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Actual landmark names only",
        },
        "proximity": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Distance phrases with specific places",
        },
        "condition": {
            "type": "object",
            "properties": {
                "rating": {
                    "type": "string",
                    "enum": ["excellent", "very-good", "good", "fair", "needs-renovation"],
                },
                "details": {"type": "string"},
                "keywords": {"type": "array", "items": {"type": "string"}},
                "confidence": {"type": "integer", "minimum": 1, "maximum": 10},
            },
        },
        "confidence": {
            "type": "integer",
            "minimum": 1,
            "maximum": 10,
            "description": "Overall confidence in location extraction",
        },
        "reason": {"type": "string", "description": "Brief explanation of extraction"},
    },
    "required": ["hasSpecific", "confidence", "reason"],
}


# =============================================================================
# Resolver Results
# =============================================================================


@dataclass
class LocationResult:
    """
    Best-effort geographic classification of a listing.

    method is how the label was originally produced and is preserved by
    every cache tier; source is the strategy that served this call.
    """
    label: str
    confidence: float  # 0-1
    method: str
    source: str = ""
    coordinates: Optional[Tuple[float, float]] = None
    landmarks: List[str] = field(default_factory=list)
    proximity: List[str] = field(default_factory=list)
    has_specific: bool = False
    condition_rating: Optional[str] = None
    reason: str = ""

    @property
    def is_fallback(self) -> bool:
        return self.method == METHOD_FALLBACK

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "location": self.label,
            "confidence": self.confidence,
            "method": self.method,
            "source": self.source,
            "coordinates": (
                {"lat": self.coordinates[0], "lng": self.coordinates[1]}
                if self.coordinates else None
            ),
            "landmarks": list(self.landmarks),
            "proximity": list(self.proximity),
            "has_specific": self.has_specific,
            "condition_rating": self.condition_rating,
            "reason": self.reason,
        }


@dataclass
class LocationCacheEntry:
    """
    A cached AI resolution.

    Keyed by description hash or by (development, district). Read-only once
    written; the only promotion is to the permanent store.
    """
    key: str
    label: str
    confidence: float
    method: str
    landmarks: List[str] = field(default_factory=list)
    proximity: List[str] = field(default_factory=list)
    has_specific: bool = False
    condition_rating: Optional[str] = None
    coordinates: Optional[Tuple[float, float]] = None
    reason: str = ""
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def has_useful_signal(self) -> bool:
        """A landmark or proximity clue was found."""
        return bool(self.landmarks or self.proximity)

    @classmethod
    def from_result(cls, key: str, result: LocationResult) -> "LocationCacheEntry":
        return cls(
            key=key,
            label=result.label,
            confidence=result.confidence,
            method=result.method,
            landmarks=list(result.landmarks),
            proximity=list(result.proximity),
            has_specific=result.has_specific,
            condition_rating=result.condition_rating,
            coordinates=result.coordinates,
            reason=result.reason,
        )

    def to_result(self, source: str) -> LocationResult:
        """Rehydrate as a result tagged with the cache tier that served it."""
        return LocationResult(
            label=self.label,
            confidence=self.confidence,
            method=self.method,
            source=source,
            coordinates=self.coordinates,
            landmarks=list(self.landmarks),
            proximity=list(self.proximity),
            has_specific=self.has_specific,
            condition_rating=self.condition_rating,
            reason=self.reason,
        )

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "location": self.label,
            "confidence": self.confidence,
            "method": self.method,
            "landmarks": list(self.landmarks),
            "proximity": list(self.proximity),
            "has_specific": self.has_specific,
            "condition_rating": self.condition_rating,
            "coordinates": list(self.coordinates) if self.coordinates else None,
            "reason": self.reason,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LocationCacheEntry":
        """
        Raises:
            KeyError, TypeError, ValueError: On malformed payloads
        """
        coordinates = data.get("coordinates")
        return cls(
            key=str(data["key"]),
            label=str(data["location"]),
            confidence=float(data["confidence"]),
            method=str(data.get("method", METHOD_COMPLETION)),
            landmarks=[str(x) for x in data.get("landmarks") or []],
            proximity=[str(x) for x in data.get("proximity") or []],
            has_specific=bool(data.get("has_specific", False)),
            condition_rating=data.get("condition_rating"),
            coordinates=(float(coordinates[0]), float(coordinates[1])) if coordinates else None,
            reason=str(data.get("reason", "")),
            created_at=str(data.get("created_at", "")),
        )
