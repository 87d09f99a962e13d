"""
Geocoding client for resolved location labels.

Nominatim-style search: free text plus an optional area hint in, best
candidate coordinates out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from core.comp_engine.errors import UpstreamServiceError, classify_request_error, classify_status


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Constants
# =============================================================================

NOMINATIM_SEARCH_URL = "https://nominatim.openstreetmap.org/search"
DEFAULT_USER_AGENT = "comp-match-engine/1.0"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_COUNTRY_CODES = "es"
DEFAULT_CONFIDENCE = 0.5


@dataclass
class GeocodeResult:
    latitude: float
    longitude: float
    confidence: float
    display_name: str = ""

    @property
    def coordinates(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


class NominatimGeocoder:
    """Thin Nominatim search client."""

    def __init__(
        self,
        base_url: str = NOMINATIM_SEARCH_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        country_codes: str = DEFAULT_COUNTRY_CODES,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.country_codes = country_codes
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent.strip() or DEFAULT_USER_AGENT})

    def geocode(self, query: str, hint: str = "") -> Optional[GeocodeResult]:
        """
        Look up coordinates for a place name.

        Args:
            query: Place name to search for
            hint: Area context appended to the query (city or district)

        Returns:
            Best candidate, or None when nothing matched

        Raises:
            UpstreamServiceError: On transport failure, non-200 status or
                an unexpected payload
        """
        text = ", ".join(part for part in (query, hint) if part)
        if not text:
            return None

        params = {"q": text, "format": "jsonv2", "limit": 1}
        if self.country_codes:
            params["countrycodes"] = self.country_codes

        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise classify_request_error(e, "Geocoder") from e

        if response.status_code != 200:
            raise classify_status(response.status_code, f"Geocoder returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamServiceError(f"Invalid JSON from geocoder: {e}") from e

        if not isinstance(payload, list):
            raise UpstreamServiceError("Unexpected geocoder response format")
        if not payload:
            logger.debug("No geocoder match for %r", text)
            return None

        best = payload[0]
        try:
            return GeocodeResult(
                latitude=float(best["lat"]),
                longitude=float(best["lon"]),
                confidence=float(best.get("importance", DEFAULT_CONFIDENCE)),
                display_name=str(best.get("display_name", "")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamServiceError(f"Unexpected geocoder result: {e}") from e
