"""
FastAPI Application Factory.

Usage:
    # Development
    uvicorn api.app:create_app --factory --reload

    # Production
    uvicorn api.app:create_app --factory --host 0.0.0.0 --port 8080 --workers 4
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import get_settings
from core.logging import configure_logging, get_logger
from core.middleware import RequestTracingMiddleware
from search.analytics import shutdown_analytics_dispatcher


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Startup: configure logging.
    Shutdown: drain pending analytics writes.
    """
    settings = get_settings()

    configure_logging(
        json_logs=settings.is_production,
        log_level="DEBUG" if settings.debug else "INFO",
    )

    logger.info(
        "Starting catalog search API",
        environment=settings.environment,
        port=settings.port,
    )

    yield

    shutdown_analytics_dispatcher(wait=True)
    logger.info("Shutting down catalog search API")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    app = FastAPI(
        title="Catalog Search API",
        description="""
        Product search for the smoke-shop storefront.

        ## Main Endpoints

        - `/api/search` - Ranked product/brand/category search
        - `/api/search/suggestions` - Autocomplete
        - `/api/search/filter-options` - Filter dropdown options
        - `/api/search/analytics` - Suggestion events and popular searches

        ## Health Checks

        - `/health`, `/health/detailed`, `/ready`, `/live`
        """,
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # =========================================================================
    # Middleware (order matters - first added = outermost)
    # =========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(RequestTracingMiddleware)

    # =========================================================================
    # Routes
    # =========================================================================

    from api.routes.health import router as health_router
    app.include_router(health_router, tags=["Health"])

    from api.routes.search import router as search_router
    app.include_router(search_router)

    return app

