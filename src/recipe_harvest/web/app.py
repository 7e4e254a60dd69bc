"""
Recipe Harvest - FastAPI application.

The scrape job service is created at startup and closed at shutdown, which
drains in-flight extractions and releases the headless browser.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from recipe_harvest import __version__
from recipe_harvest.config import get_settings
from recipe_harvest.logging_config import configure_logging
from recipe_harvest.web.jobs import ScrapeJobService
from recipe_harvest.web.scrape_routes import router as scrape_router

logger = logging.getLogger(__name__)


def create_app(service: ScrapeJobService | None = None) -> FastAPI:
    """Build the API app. Pass a service to control its store and transports."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        configure_logging(settings.log_level)
        app.state.scrape_service = service or ScrapeJobService(settings=settings)
        logger.info(
            f"Recipe Harvest starting up (env={settings.env}, "
            f"storage={settings.storage_backend}, browser={settings.browser_enabled})"
        )
        try:
            yield
        finally:
            await app.state.scrape_service.aclose()
            logger.info("Recipe Harvest shut down")

    app = FastAPI(title="Recipe Harvest", version=__version__, lifespan=lifespan)

    # CORS middleware for the frontend dev server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(scrape_router, prefix="/api")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "version": __version__}

    return app


app = create_app()
