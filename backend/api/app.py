"""
FastAPI application factory for the Scoreline API service.

Creates the app with:
- REST routes (seasons, scores, refresh)
- Middleware stack
- Health check endpoint
- Lifespan management (load manifests, start/stop the remote client)
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from shared.config import get_settings
from shared.models.manifest import load_team_directory
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from api.dependencies import init_dependencies
from api.middleware import setup_middleware
from api.routes.scores import router as scores_router
from ingest.providers.reddit import RedditThreadSource
from ingest.service import build_engine

logger = get_logger(__name__)


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for testing without manifests or network."""
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Loads the static manifests, wires the resolution engine and
    owns the remote HTTP client.
    """
    settings = get_settings()
    setup_logging("api")
    start_metrics_server()

    teams = load_team_directory(settings.teams_path)
    source = RedditThreadSource(settings)
    engine = build_engine(settings, source, teams)
    init_dependencies(engine, teams)
    await source.start()

    logger.info(
        "api_service_started",
        host=settings.api_host,
        port=settings.api_port,
        remote=settings.remote_info_url,
        teams=len(teams),
        season=settings.current_season,
        week=settings.current_week,
    )

    yield

    await source.close()
    logger.info("api_service_stopped")


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for testing."""
    app = FastAPI(
        title="Scoreline API",
        description="Live scores scraped from game threads",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    setup_middleware(app)
    app.include_router(scores_router)

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    return app


# For running with uvicorn directly
app = create_app()
