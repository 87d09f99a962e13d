"""
Utility modules for the comp match engine.
"""

from .formatting import format_area, format_currency
from .config import Config
from .log import set_correlation_id, setup_logging

__all__ = ["format_area", "format_currency", "Config", "set_correlation_id", "setup_logging"]
