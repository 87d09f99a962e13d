"""
Logging setup.

Every line carries the request's correlation id (held in a ContextVar by the
HTTP middleware). Search and request summaries attach structured fields via
`extra=`, e.g.

    logger.info("Found comparables", extra={"subject": ref, "found": 12})

JSON output is the default; the CLI can ask for plain text on stderr.
"""
import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

# Structured fields passed through `extra=` at call sites
CONTEXT_FIELDS = (
    # comparable search
    "subject",
    "found",
    "examined",
    "tiers",
    "relaxation",
    # location resolution
    "source",
    "confidence",
    # HTTP requests
    "http_method",
    "path",
    "status_code",
    "duration_ms",
)

TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s [%(correlation_id)s] %(message)s"


def set_correlation_id(request_id: Optional[str] = None) -> str:
    """Set correlation ID for the current context. Returns the ID."""
    cid = request_id or uuid.uuid4().hex
    correlation_id_var.set(cid)
    return cid


def context_fields(record: logging.LogRecord) -> dict:
    """The CONTEXT_FIELDS present on a record."""
    return {key: getattr(record, key) for key in CONTEXT_FIELDS if hasattr(record, key)}


class CorrelationIdFilter(logging.Filter):
    """Stamp the current correlation id onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get("") or "-"
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "src": f"{record.module}:{record.lineno}",
        }

        cid = getattr(record, "correlation_id", "-")
        if cid != "-":
            entry["correlation_id"] = cid

        entry.update(context_fields(record))

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable lines with context fields appended as key=value."""

    def __init__(self):
        super().__init__(TEXT_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = context_fields(record)
        if fields:
            line += " " + " ".join(f"{key}={value}" for key, value in fields.items())
        return line


def setup_logging(level: str = "INFO", stream=None, fmt: str = "json") -> None:
    """
    Configure the root logger.

    Args:
        level: Level name (unknown names fall back to INFO)
        stream: Output stream (default: stdout)
        fmt: "json" or "text"
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(TextFormatter() if fmt == "text" else JSONFormatter())
    root_logger.addHandler(handler)

    for noisy in ("urllib3", "httpx", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
