"""
FastAPI application for the comp match engine.

Exposes comparable search, location resolution and catalog stats over HTTP.
Production deployment configuration via environment variables.
"""

import logging
import os
import time
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from core.comp_engine import CatalogUnavailableError, ComparableEngine, normalise_record
from core.location import LocationResolver
from core.services import build_engine
from utils.config import Config
from utils.log import set_correlation_id

logger = logging.getLogger(__name__)

# =============================================================================
# Environment Configuration
# =============================================================================

# Production mode detection
IS_PRODUCTION = os.getenv("RAILWAY_ENVIRONMENT") is not None or os.getenv("PRODUCTION", "").lower() == "true"

# CORS configuration - locked down for production
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "").split(",") if os.getenv("ALLOWED_ORIGINS") else []
if not ALLOWED_ORIGINS and not IS_PRODUCTION:
    # Development fallback only
    ALLOWED_ORIGINS = ["http://localhost:8000", "http://127.0.0.1:8000"]

# Debug mode - never enabled in production
DEBUG_MODE = os.getenv("DEBUG", "false").lower() == "true" and not IS_PRODUCTION

REQUEST_ID_HEADER = "X-Request-ID"


# =============================================================================
# Request Models
# =============================================================================

class ComparablesRequest(BaseModel):
    """Request body for a comparable search."""
    subject: Dict[str, Any]
    target_count: Optional[int] = Field(default=None, ge=1, le=100)


class ResolveRequest(BaseModel):
    """Request body for location resolution."""
    subject: Dict[str, Any]


def create_app(
    engine: Optional[ComparableEngine] = None,
    config: Optional[Config] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        engine: Pre-built engine (tests inject one); built from config otherwise
        config: Configuration (default: Config.load())
    """
    config = config or Config.load()
    if engine is None:
        engine = build_engine(config)
    resolver: Optional[LocationResolver] = engine.resolver

    app = FastAPI(
        title="Comp Match Engine",
        description="Comparable property matching and ranking",
        version="1.0.0",
        # Production settings: disable docs/redoc for private deployment
        docs_url=None if IS_PRODUCTION else "/docs",
        redoc_url=None if IS_PRODUCTION else "/redoc",
        openapi_url=None if IS_PRODUCTION else "/openapi.json",
        debug=DEBUG_MODE,
    )
    app.state.engine = engine
    app.state.config = config

    # ==========================================================================
    # Healthcheck endpoints are registered first. No dependencies, no IO.
    # ==========================================================================
    @app.get("/", include_in_schema=False)
    def root():
        """Root healthcheck. No dependencies, no IO."""
        return {"status": "ok"}

    @app.get("/health", include_in_schema=False)
    def health():
        """Secondary health endpoint. No dependencies, no IO."""
        return {
            "status": "healthy",
            "catalog_loaded": engine.catalog.is_available,
            "environment": "production" if IS_PRODUCTION else "development",
        }

    # CORS middleware - locked down for production
    if ALLOWED_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=ALLOWED_ORIGINS,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def correlation_id(request: Request, call_next):
        """Tag every log line of a request with one correlation id and log the request."""
        cid = set_correlation_id(request.headers.get(REQUEST_ID_HEADER))
        started = time.perf_counter()
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = cid
        logger.info(
            "%s %s -> %d", request.method, request.url.path, response.status_code,
            extra={
                "http_method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 1),
            },
        )
        return response

    @app.exception_handler(CatalogUnavailableError)
    async def catalog_unavailable(request: Request, exc: CatalogUnavailableError):
        logger.error("Catalog unavailable: %s", exc)
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    # ==========================================================================
    # API
    # ==========================================================================

    @app.get("/api/catalog/stats")
    def catalog_stats():
        """Record counts per city, category and transaction type."""
        engine.catalog.ensure_available()
        stats = engine.catalog.stats()
        if resolver is not None:
            stats["resolver"] = resolver.metrics.to_dict()
        return stats

    @app.post("/api/comparables")
    def find_comparables(request_data: ComparablesRequest):
        """
        Find comparables for a subject listing.

        Returns:
            - comparables: ranked list (at most target_count)
            - total_found: distinct candidates examined
            - tiers_run / relaxation_steps: search trace
        """
        target_count = request_data.target_count or config.target_count
        result = engine.find_comparables(request_data.subject, target_count=target_count)
        return {"count": result.count, **result.to_dict()}

    @app.post("/api/location/resolve")
    def resolve_location(request_data: ResolveRequest):
        """Resolve a listing to a place label, coordinates and confidence."""
        record = normalise_record(request_data.subject)
        if resolver is None:
            return LocationResolver.fallback(record, reason="Resolver not configured").to_dict()
        return resolver.resolve(record).to_dict()

    return app


# Create app instance for uvicorn
app = create_app()
