"""
Completion Service Client

Calls an OpenAI-compatible chat/completions endpoint to extract a specific
place name from a listing description. The response must conform to
CompletionAnalysis; anything else is an InvalidCompletionError.

Calls are bounded by a semaphore, carry a timeout, and are retried with
exponential backoff on 429, 5xx and connection errors. Other 4xx responses
fail immediately.
"""

from __future__ import annotations

import json
import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import requests
from pydantic import ValidationError

from core.comp_engine.errors import (
    InvalidCompletionError,
    UpstreamServiceError,
    classify_request_error,
    classify_status,
)

from .models import COMPLETION_SCHEMA, CompletionAnalysis


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Constants
# =============================================================================

DEFAULT_API_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_SECONDS = 1.0
DEFAULT_MAX_CONCURRENCY = 5

FUNCTION_NAME = "extract_location"

SYSTEM_PROMPT = (
    "Extract specific place names from Spanish property descriptions. "
    "Ignore marketing language."
)

PROXIMITY_KEYWORDS = [
    "near", "next to", "close to", "walking distance", "minutes from",
    "between", "opposite", "facing", "overlooking", "behind",
    "meters from", "km from", "minutes walk", "short drive",
]

SPANISH_LOCATION_WORDS = [
    "urbanización", "urbanizacion", "calle", "avenida", "carretera",
    "plaza", "paseo", "puerto banús", "nueva andalucia", "marbella",
    "golf", "club", "hotel", "playa", "centro",
]


# =============================================================================
# Model Routing
# =============================================================================

@dataclass(frozen=True)
class ModelRoute:
    """Model parameters chosen for one description."""
    model: str
    max_tokens: int
    temperature: float


SMALL_ROUTE = ModelRoute("gpt-4o-mini", 150, 0.0)
STANDARD_ROUTE = ModelRoute("gpt-3.5-turbo", 250, 0.0)
REASONING_ROUTE = ModelRoute("gpt-4o-mini", 300, 0.1)


def count_keywords(text: str, keywords: list[str]) -> int:
    lowered = text.lower()
    return sum(1 for kw in keywords if kw in lowered)


def select_route(description: str) -> ModelRoute:
    """
    Pick model parameters by description length and keyword density.

    Short, clue-free text goes to the small model; text with several
    proximity clues, or long text with several Spanish location words, goes
    to the reasoning tier.
    """
    length = len(description)
    proximity = count_keywords(description, PROXIMITY_KEYWORDS)
    spanish = count_keywords(description, SPANISH_LOCATION_WORDS)

    if length < 100 and proximity == 0:
        return SMALL_ROUTE
    if length < 200 and proximity <= 1 and spanish >= 1:
        return STANDARD_ROUTE
    if proximity >= 2 or (length > 300 and spanish >= 2):
        return REASONING_ROUTE
    return STANDARD_ROUTE


def build_prompt(description: str, city: str = "", district: str = "") -> str:
    context = ", ".join(part for part in (district, city) if part)
    hint = f"Listing area: {context}\n" if context else ""
    return (
        f"{hint}Description:\n{description}\n\n"
        "Return the most specific real place name (urbanisation, street or "
        "named area), any landmark names and proximity phrases. Do not "
        "return marketing phrases as a location."
    )


# =============================================================================
# Response Parsing
# =============================================================================

def parse_json_payload(text: Any) -> dict:
    """
    Tolerant JSON object extractor.

    Strips Markdown code fences and, when prose surrounds the payload,
    extracts the first top-level JSON object.

    Raises:
        InvalidCompletionError: If no JSON object can be recovered
    """
    if isinstance(text, dict):
        return text
    if not isinstance(text, str) or not text.strip():
        raise InvalidCompletionError("Completion returned no content")

    s = text.strip()
    if s.startswith("```"):
        s = re.sub(r"^```(?:json)?\s*", "", s, count=1, flags=re.IGNORECASE)
        s = re.sub(r"\s*```$", "", s, count=1)

    try:
        loaded = json.loads(s)
    except ValueError:
        match = re.search(r"\{.*\}", s, flags=re.DOTALL)
        if not match:
            raise InvalidCompletionError("Completion content is not JSON")
        try:
            loaded = json.loads(match.group(0))
        except ValueError as e:
            raise InvalidCompletionError(f"Completion content is not JSON: {e}") from e

    if not isinstance(loaded, dict):
        raise InvalidCompletionError("Completion JSON is not an object")
    return loaded


def extract_arguments(body: dict) -> dict:
    """
    Pull the structured payload out of a chat/completions response.

    Tool calls are preferred; plain message content is accepted as a
    fallback for endpoints that ignore tool_choice.
    """
    try:
        message = body["choices"][0]["message"]
    except (KeyError, IndexError, TypeError) as e:
        raise InvalidCompletionError(f"Malformed completion response: {e}") from e

    tool_calls = message.get("tool_calls") or []
    if tool_calls:
        arguments = (tool_calls[0].get("function") or {}).get("arguments")
        return parse_json_payload(arguments)

    function_call = message.get("function_call")
    if function_call:
        return parse_json_payload(function_call.get("arguments"))

    return parse_json_payload(message.get("content"))


# =============================================================================
# Client
# =============================================================================

class CompletionClient:
    """
    Structured-output client for the completion service.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            api_key: Bearer token for the endpoint
            api_url: chat/completions URL
            timeout: Per-request timeout in seconds
            max_retries: Retries after the first attempt
            backoff_seconds: Base delay, doubled per retry
            max_concurrency: Maximum in-flight requests across threads
            session: HTTP session (injectable for tests)
            sleep: Sleep function (injectable for tests)
        """
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self._semaphore = threading.BoundedSemaphore(max_concurrency)
        self._sleep = sleep
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if api_key:
            self.session.headers.update({"Authorization": f"Bearer {api_key}"})

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def analyze(self, description: str, city: str = "", district: str = "") -> CompletionAnalysis:
        """
        Extract location details from a description.

        Raises:
            UpstreamServiceError: After retries are exhausted, on a
                non-retryable status, or on a non-conforming response
        """
        route = select_route(description)
        payload = self._build_payload(route, build_prompt(description, city, district))
        logger.debug("Completion request routed to %s (%d chars)", route.model, len(description))

        body = self._post_with_retry(payload)
        arguments = extract_arguments(body)
        try:
            return CompletionAnalysis.model_validate(arguments)
        except ValidationError as e:
            raise InvalidCompletionError(f"Completion does not match schema: {e}") from e

    def _build_payload(self, route: ModelRoute, prompt: str) -> dict:
        return {
            "model": route.model,
            "max_tokens": route.max_tokens,
            "temperature": route.temperature,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "tools": [
                {
                    "type": "function",
                    "function": {
                        "name": FUNCTION_NAME,
                        "description": "Extract specific location names and property condition",
                        "parameters": COMPLETION_SCHEMA,
                    },
                }
            ],
            "tool_choice": {"type": "function", "function": {"name": FUNCTION_NAME}},
        }

    def _post_with_retry(self, payload: dict) -> dict:
        attempt = 0
        while True:
            try:
                return self._post(payload)
            except UpstreamServiceError as e:
                if not e.retryable or attempt >= self.max_retries:
                    raise
                delay = self.backoff_seconds * (2 ** attempt)
                logger.warning(
                    "Completion attempt %d failed (%s), retrying in %.1fs",
                    attempt + 1, e, delay,
                )
                self._sleep(delay)
                attempt += 1

    def _post(self, payload: dict) -> dict:
        with self._semaphore:
            try:
                response = self.session.post(self.api_url, json=payload, timeout=self.timeout)
            except requests.RequestException as e:
                raise classify_request_error(e, "Completion") from e

        if response.status_code != 200:
            raise classify_status(
                response.status_code,
                f"Completion service returned HTTP {response.status_code}",
            )

        try:
            return response.json()
        except ValueError as e:
            raise InvalidCompletionError(f"Completion response is not JSON: {e}") from e
