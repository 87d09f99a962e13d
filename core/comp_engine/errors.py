"""
Exception types for the Comp Engine and Location Resolver.

Only CatalogUnavailableError reaches callers of find_comparables. Upstream
service errors are caught inside the resolver and downgraded to a fallback
resolution.
"""

import requests


class CompEngineError(Exception):
    """Base class for comp engine failures."""


class CatalogUnavailableError(CompEngineError):
    """The catalog is not loaded or cannot be read; no comparables can be produced."""


class UpstreamServiceError(CompEngineError):
    """Failure calling an external service (completion or geocoding)."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return False


class RateLimitedError(UpstreamServiceError):
    """HTTP 429 from an upstream service."""

    @property
    def retryable(self) -> bool:
        return True


class ServerError(UpstreamServiceError):
    """HTTP 5xx or transport failure from an upstream service."""

    @property
    def retryable(self) -> bool:
        return True


class ClientError(UpstreamServiceError):
    """HTTP 4xx (other than 429) from an upstream service. Never retried."""


class InvalidCompletionError(UpstreamServiceError):
    """Completion response did not conform to the structured-output schema."""


def classify_status(status_code: int, message: str) -> UpstreamServiceError:
    """Map an HTTP status code to the matching upstream error."""
    if status_code == 429:
        return RateLimitedError(message, status_code)
    if status_code >= 500:
        return ServerError(message, status_code)
    return ClientError(message, status_code)


# Requests exceptions raised before anything is sent: bad configuration, never retried
MALFORMED_REQUEST_ERRORS = (
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidSchema,
    requests.exceptions.InvalidURL,
    requests.exceptions.InvalidHeader,
    requests.exceptions.URLRequired,
)


def classify_request_error(exc: requests.RequestException, service: str) -> UpstreamServiceError:
    """
    Map a requests exception to the matching upstream error.

    Malformed requests (bad URL or header) become ClientError; every other
    transport failure (connection, timeout, broken stream) becomes
    ServerError and is retried.
    """
    if isinstance(exc, MALFORMED_REQUEST_ERRORS):
        return ClientError(f"{service} request is malformed: {exc}")
    return ServerError(f"{service} request failed: {exc}")
