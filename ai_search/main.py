"""
AI Property Search API - FastAPI application entry point.

A search interpretation service that uses Claude to turn natural language
property queries into structured filters and validates the requested
location against the cities we have listings in.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ai_search.api import router
from ai_search.config import get_settings
from ai_search.services.inventory import get_inventory

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Validates required settings, warms the city inventory on startup
    and closes its HTTP client on shutdown.
    """
    settings = get_settings()
    logger.info("Starting %s v%s", settings.app_name, settings.app_version)

    # Validate API keys are present (will raise if missing)
    if not settings.anthropic_api_key:
        raise RuntimeError("ANTHROPIC_API_KEY is required")

    inventory = get_inventory(settings)
    await inventory.refresh()
    cities = inventory.list_serviced_cities()
    if not cities:
        logger.warning("No serviced cities loaded; every location will be rejected")
    else:
        logger.info("Serving %d cities", len(cities))

    logger.info("Configuration validated successfully")
    yield
    await inventory.close()
    logger.info("Shutting down %s", settings.app_name)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "A property search API that uses AI to parse natural language "
            "queries into filters and validates locations against live inventory."
        ),
        lifespan=lifespan,
    )

    # Configure CORS for frontend access
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    return app


# Create the application instance
app = create_app()


@app.get("/health", tags=["health"])
async def health_check() -> dict:
    """
    Health check endpoint.

    Returns basic application status for monitoring and load balancers.
    """
    settings = get_settings()
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": settings.app_version,
    }


@app.get("/", tags=["root"])
async def root() -> dict:
    """Root endpoint with API information."""
    settings = get_settings()
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health",
    }
