"""
Dependency injection for the API service.
Provides the resolution engine and team metadata to route handlers.
"""
from __future__ import annotations

from ingest.service import ScoreResolutionEngine
from shared.models.manifest import TeamDirectory

# Module-level singletons, initialized at startup
_engine: ScoreResolutionEngine | None = None
_teams: TeamDirectory | None = None


def init_dependencies(engine: ScoreResolutionEngine, teams: TeamDirectory) -> None:
    """Initialize module-level singletons. Called once at startup."""
    global _engine, _teams
    _engine = engine
    _teams = teams


def get_engine() -> ScoreResolutionEngine:
    """FastAPI dependency: returns the shared ScoreResolutionEngine."""
    if _engine is None:
        raise RuntimeError("ScoreResolutionEngine not initialized; call init_dependencies first")
    return _engine


def get_teams() -> TeamDirectory:
    """FastAPI dependency: returns the team metadata."""
    if _teams is None:
        raise RuntimeError("TeamDirectory not initialized; call init_dependencies first")
    return _teams
