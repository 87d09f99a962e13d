"""
Configuration management.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class Config:
    """
    Application configuration.

    Loads from environment variables with sensible defaults.
    """

    # Server
    host: str = field(default_factory=lambda: os.getenv("HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_format: str = field(default_factory=lambda: os.getenv("LOG_FORMAT", "json"))

    # Data
    data_dir: str = field(default_factory=lambda: os.getenv("DATA_DIR", "./data"))
    catalog_path: str = field(default_factory=lambda: os.getenv("CATALOG_PATH", ""))
    permanent_cache_dir: str = field(default_factory=lambda: os.getenv("PERMANENT_CACHE_DIR", ""))

    # Completion service
    completion_api_url: str = field(
        default_factory=lambda: os.getenv(
            "COMPLETION_API_URL", "https://api.openai.com/v1/chat/completions"
        )
    )
    completion_api_key: str = field(default_factory=lambda: os.getenv("COMPLETION_API_KEY", ""))
    completion_timeout: float = field(
        default_factory=lambda: float(os.getenv("COMPLETION_TIMEOUT", "30"))
    )
    completion_max_retries: int = field(
        default_factory=lambda: int(os.getenv("COMPLETION_MAX_RETRIES", "3"))
    )
    completion_max_concurrency: int = field(
        default_factory=lambda: int(os.getenv("COMPLETION_MAX_CONCURRENCY", "5"))
    )

    # Geocoder
    geocoder_url: str = field(
        default_factory=lambda: os.getenv(
            "GEOCODER_URL", "https://nominatim.openstreetmap.org/search"
        )
    )
    geocoder_user_agent: str = field(
        default_factory=lambda: os.getenv("GEOCODER_USER_AGENT", "comp-match-engine/1.0")
    )
    geocoder_timeout: float = field(default_factory=lambda: float(os.getenv("GEOCODER_TIMEOUT", "10")))

    # Matching
    target_count: int = field(default_factory=lambda: int(os.getenv("TARGET_COUNT", "12")))

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment."""
        return cls()

    @property
    def resolved_catalog_path(self) -> Path:
        """Catalog file, defaulting to properties.json under the data dir."""
        return Path(self.catalog_path) if self.catalog_path else Path(self.data_dir) / "properties.json"

    @property
    def resolved_permanent_cache_dir(self) -> Path:
        return (
            Path(self.permanent_cache_dir)
            if self.permanent_cache_dir
            else Path(self.data_dir) / "location_cache"
        )

    def to_dict(self) -> dict:
        """Convert config to dictionary. Secrets are masked."""
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "log_level": self.log_level,
            "log_format": self.log_format,
            "data_dir": self.data_dir,
            "catalog_path": str(self.resolved_catalog_path),
            "permanent_cache_dir": str(self.resolved_permanent_cache_dir),
            "completion_api_url": self.completion_api_url,
            "completion_api_key": "***" if self.completion_api_key else "",
            "completion_timeout": self.completion_timeout,
            "completion_max_retries": self.completion_max_retries,
            "completion_max_concurrency": self.completion_max_concurrency,
            "geocoder_url": self.geocoder_url,
            "geocoder_user_agent": self.geocoder_user_agent,
            "geocoder_timeout": self.geocoder_timeout,
            "target_count": self.target_count,
        }
