"""
Tests for logging setup

Verifies:
- JSON lines carry correlation id and structured context fields
- Text format appends context fields as key=value
- Search summaries and HTTP requests log their context fields
"""

import io
import json
import logging
import pytest
from pathlib import Path
import sys

from fastapi.testclient import TestClient

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.comp_engine import CatalogIndex, ComparableEngine, PropertyRecord
from utils.config import Config
from utils.log import JSONFormatter, TextFormatter, set_correlation_id, setup_logging
from web.app import create_app


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def root_logger():
    """Restore root handlers and level after a test reconfigures logging."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def create_log_record():
    def _create(msg="Found %d comparables", args=(12,), **extra) -> logging.LogRecord:
        record = logging.makeLogRecord({
            "name": "core.comp_engine.engine",
            "levelname": "INFO",
            "levelno": logging.INFO,
            "msg": msg,
            "args": args,
            "module": "engine",
            "lineno": 42,
        })
        record.__dict__.update(extra)
        return record
    return _create


def create_villa(record_id: str) -> PropertyRecord:
    return PropertyRecord(
        id=record_id,
        category="villa",
        city="Marbella",
        district="Nueva Andalucía",
        build_area=200.0,
        price=1_500_000.0,
        reference=f"REF-{record_id}",
    )


# =============================================================================
# Test: Formatters
# =============================================================================

class TestFormatters:
    """Tests for JSONFormatter and TextFormatter."""

    def test_json_line(self, create_log_record):
        record = create_log_record(correlation_id="req-1", subject="REF-1", found=12, tiers="street,district")

        entry = json.loads(JSONFormatter().format(record))

        assert entry["msg"] == "Found 12 comparables"
        assert entry["level"] == "INFO"
        assert entry["src"] == "engine:42"
        assert entry["correlation_id"] == "req-1"
        assert entry["subject"] == "REF-1"
        assert entry["found"] == 12
        assert entry["tiers"] == "street,district"

    def test_json_omits_missing_context(self, create_log_record):
        entry = json.loads(JSONFormatter().format(create_log_record(correlation_id="-")))

        assert "correlation_id" not in entry
        assert "subject" not in entry

    def test_unknown_extras_are_not_emitted(self, create_log_record):
        entry = json.loads(JSONFormatter().format(create_log_record(password="hunter2")))

        assert "password" not in entry

    def test_text_line(self, create_log_record):
        line = TextFormatter().format(create_log_record(correlation_id="req-1", subject="REF-1", found=12))

        assert "Found 12 comparables" in line
        assert "[req-1]" in line
        assert line.endswith("subject=REF-1 found=12")


# =============================================================================
# Test: Setup
# =============================================================================

class TestSetupLogging:
    """Tests for setup_logging."""

    def test_json_output_with_correlation_id(self, root_logger):
        stream = io.StringIO()
        setup_logging("DEBUG", stream=stream)
        set_correlation_id("req-42")

        logging.getLogger("test").info("hello", extra={"source": "completion"})

        entry = json.loads(stream.getvalue().splitlines()[-1])
        assert entry["msg"] == "hello"
        assert entry["correlation_id"] == "req-42"
        assert entry["source"] == "completion"

    def test_text_output(self, root_logger):
        stream = io.StringIO()
        setup_logging("INFO", stream=stream, fmt="text")

        logging.getLogger("test").info("hello", extra={"confidence": 0.8})

        assert stream.getvalue().rstrip().endswith("hello confidence=0.8")

    def test_unknown_level_defaults_to_info(self, root_logger):
        setup_logging("CHATTY", stream=io.StringIO())

        assert root_logger.level == logging.INFO


# =============================================================================
# Test: Structured Call Sites
# =============================================================================

class TestStructuredFields:
    """Call sites pass their context through extra=."""

    def test_search_summary(self, caplog):
        catalog = CatalogIndex([create_villa(f"V{i}") for i in range(4)])
        engine = ComparableEngine(catalog)

        with caplog.at_level(logging.INFO, logger="core.comp_engine.engine"):
            engine.find_comparables(create_villa("SUBJ"), target_count=3)

        summary = [r for r in caplog.records if hasattr(r, "found")][-1]
        assert summary.subject == "REF-SUBJ"
        assert summary.found == 3
        assert summary.tiers

    def test_request_log(self, caplog):
        client = TestClient(create_app(engine=ComparableEngine(CatalogIndex()), config=Config()))

        with caplog.at_level(logging.INFO, logger="web.app"):
            client.get("/health")

        request_log = [r for r in caplog.records if hasattr(r, "status_code")][-1]
        assert request_log.http_method == "GET"
        assert request_log.path == "/health"
        assert request_log.status_code == 200
        assert request_log.duration_ms >= 0
