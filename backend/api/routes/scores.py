"""
Score REST endpoints.

GET  /v1/seasons                  — Season/week index from the schedule manifest.
GET  /v1/scores/{season}/{week}   — Sorted scores of one week, optional ?conf= filter.
POST /v1/scores/refresh           — Latest scores of the current week for polling clients.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response

from shared.config import Settings, get_settings
from shared.models.domain import GameState
from shared.models.enums import GameResult
from shared.models.manifest import ManifestLookupMiss, TeamDirectory
from shared.utils.logging import get_logger

from api.dependencies import get_engine, get_teams
from api.middleware import SCORE_SOURCE_HEADER
from ingest.service import ScoreResolutionEngine

logger = get_logger(__name__)
router = APIRouter(prefix="/v1", tags=["scores"])


def _result(score: str, other: str) -> GameResult:
    mine, theirs = int(score), int(other)
    if mine > theirs:
        return GameResult.WIN
    if mine < theirs:
        return GameResult.LOSS
    return GameResult.TIE


def present_game(game: GameState, teams: TeamDirectory) -> dict[str, Any]:
    """GameState wire dict with per-team display metadata."""
    data = game.to_wire()
    for i, team in enumerate(data["teams"]):
        other = game.teams[(i + 1) % 2]
        info = teams.get(team["name"])
        team["abbr"] = info.abbr if info else team["name"]
        team["conference"] = info.conference if info else ""
        team["hasPossession"] = not game.is_final and team["name"] == game.status.possession
        team["result"] = _result(team["score"], other.score).value if game.is_final else None
    return data


def _matches_conference(game: GameState, teams: TeamDirectory, conf: str) -> bool:
    return any(teams.in_conference(team.name, conf) for team in game.teams)


@router.get("/seasons")
async def list_seasons(
    engine: ScoreResolutionEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Seasons and their weeks, for the season/week pickers."""
    index = engine.schedule.index()
    return {
        "seasons": [
            {"season": season, "weeks": weeks} for season, weeks in sorted(index.items())
        ]
    }


@router.get("/scores/{season}/{week}")
async def get_scores(
    response: Response,
    season: int = Path(..., ge=1),
    week: int = Path(..., ge=1),
    conf: Optional[str] = Query(None, description="Only games involving this conference."),
    engine: ScoreResolutionEngine = Depends(get_engine),
    teams: TeamDirectory = Depends(get_teams),
) -> dict[str, Any]:
    """
    Scores of one week, live games first by time elapsed and finals last.

    Season and week are 1-indexed as in the schedule manifest.
    """
    if not engine.schedule.has_week(season, week):
        raise HTTPException(status_code=404, detail=f"No games for season {season} week {week}")

    result = await engine.resolve(season, week)
    response.headers[SCORE_SOURCE_HEADER] = result.source.value
    games = [
        present_game(game, teams)
        for game in result.games
        if not conf or _matches_conference(game, teams, conf)
    ]
    return {
        "season": season,
        "week": week,
        "conf": conf,
        "source": result.source.value,
        "message": result.message,
        "games": games,
    }


@router.post("/scores/refresh")
async def refresh_scores(
    response: Response,
    settings: Settings = Depends(get_settings),
    engine: ScoreResolutionEngine = Depends(get_engine),
    teams: TeamDirectory = Depends(get_teams),
) -> dict[str, Any]:
    """
    Latest scores of the configured current week.

    Served from the snapshot while it is fresh. Never fails the poll: an
    unknown current week yields an empty list.
    """
    season, week = settings.current_season, settings.current_week
    try:
        result = await engine.resolve(season, week)
    except ManifestLookupMiss as exc:
        return {"season": season, "week": week, "message": str(exc), "games": []}

    response.headers[SCORE_SOURCE_HEADER] = result.source.value
    logger.info("scores_refresh_served", source=result.source.value, games=len(result.games))
    return {
        "season": season,
        "week": week,
        "source": result.source.value,
        "message": result.message,
        "games": [present_game(game, teams) for game in result.games],
    }
