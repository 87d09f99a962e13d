"""
Service wiring.

Builds the catalog, location resolver and comparable engine from Config.
The web app and CLI share these factories.
"""

import logging
from typing import Optional

from core.comp_engine import CatalogIndex, CatalogUnavailableError, ComparableEngine
from core.location import (
    CompletionClient,
    LocationResolver,
    NominatimGeocoder,
    PermanentLocationStore,
)
from utils.config import Config


logger = logging.getLogger(__name__)


def build_catalog(config: Config) -> CatalogIndex:
    """
    Load the catalog named by config.

    A missing or unreadable file is logged and leaves the catalog
    unavailable; searches then raise CatalogUnavailableError.
    """
    catalog = CatalogIndex()
    try:
        catalog.load(config.resolved_catalog_path)
    except CatalogUnavailableError as e:
        logger.warning("Catalog not loaded: %s", e)
    return catalog


def build_resolver(config: Config) -> LocationResolver:
    """Location resolver; the completion client is only wired when a key is set."""
    completion = None
    if config.completion_api_key:
        completion = CompletionClient(
            api_key=config.completion_api_key,
            api_url=config.completion_api_url,
            timeout=config.completion_timeout,
            max_retries=config.completion_max_retries,
            max_concurrency=config.completion_max_concurrency,
        )
    else:
        logger.info("COMPLETION_API_KEY not set, location resolution uses caches and fallback only")

    geocoder = NominatimGeocoder(
        base_url=config.geocoder_url,
        user_agent=config.geocoder_user_agent,
        timeout=config.geocoder_timeout,
    )
    store = PermanentLocationStore(str(config.resolved_permanent_cache_dir))

    return LocationResolver(completion=completion, geocoder=geocoder, store=store)


def build_engine(config: Config, resolver: Optional[LocationResolver] = None) -> ComparableEngine:
    return ComparableEngine(build_catalog(config), resolver=resolver or build_resolver(config))
