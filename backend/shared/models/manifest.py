"""
Static, read-only configuration: the schedule manifest, the live manifest
and the team metadata. Seasons and weeks are 1-indexed and used verbatim.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from pydantic import Field

from shared.models.domain import DomainModel, GameState
from shared.utils.logging import get_logger
from shared.utils.metrics import UNKNOWN_TEAMS

logger = get_logger(__name__)


class ManifestLookupMiss(LookupError):
    """Raised when a season/week is not present in the schedule manifest."""

    def __init__(self, season: int, week: int) -> None:
        self.season = season
        self.week = week
        super().__init__(f"Season {season} week {week} is not in the schedule manifest")


# ── Schedule manifest ───────────────────────────────────────────────────
class ScheduleWeek(DomainModel):
    week: int = Field(ge=1)
    games: list[Union[str, GameState]] = Field(default_factory=list)

    @property
    def final_games(self) -> list[GameState]:
        return [g for g in self.games if isinstance(g, GameState)]


class ScheduleSeason(DomainModel):
    season: int = Field(ge=1)
    weeks: list[ScheduleWeek] = Field(default_factory=list)


class ScheduleManifest(DomainModel):
    """season -> week -> ordered GameIDs, with archived finals stored inline."""
    seasons: list[ScheduleSeason] = Field(default_factory=list)

    def get_week(self, season: int, week: int) -> Optional[ScheduleWeek]:
        for s in self.seasons:
            if s.season != season:
                continue
            for w in s.weeks:
                if w.week == week:
                    return w
        return None

    def has_week(self, season: int, week: int) -> bool:
        return self.get_week(season, week) is not None

    def index(self) -> dict[int, list[int]]:
        """Season number -> sorted week numbers, for the season/week pickers."""
        return {s.season: sorted(w.week for w in s.weeks) for s in self.seasons}


# ── Live manifest ───────────────────────────────────────────────────────
class LiveWeek(DomainModel):
    week: int = Field(ge=1)
    games: list[str] = Field(default_factory=list)


class LiveSeason(DomainModel):
    season: int = Field(ge=1)
    weeks: list[LiveWeek] = Field(default_factory=list)


class LiveManifest(DomainModel):
    """season -> week -> GameIDs still polled live."""
    seasons: list[LiveSeason] = Field(default_factory=list)

    def get_week(self, season: int, week: int) -> Optional[list[str]]:
        for s in self.seasons:
            if s.season != season:
                continue
            for w in s.weeks:
                if w.week == week:
                    return list(w.games)
        return None


# ── Team metadata ───────────────────────────────────────────────────────
class TeamInfo(DomainModel):
    name: str
    abbr: str
    conference: str = ""


class TeamList(DomainModel):
    teams: list[TeamInfo] = Field(default_factory=list)


class TeamDirectory:
    """Lookup of team metadata by full name."""

    def __init__(self, teams: list[TeamInfo]) -> None:
        self._by_name = {team.name: team for team in teams}

    def __len__(self) -> int:
        return len(self._by_name)

    def get(self, name: str) -> Optional[TeamInfo]:
        return self._by_name.get(name)

    def abbreviation(self, name: str) -> str:
        """Short code for a team name; unknown names pass through unchanged."""
        team = self._by_name.get(name)
        if team is not None:
            return team.abbr
        UNKNOWN_TEAMS.inc()
        logger.warning("team_abbreviation_missing", team=name)
        return name

    def in_conference(self, name: str, conference: str) -> bool:
        team = self._by_name.get(name)
        return team is not None and team.conference.lower() == conference.lower()


# ── Loaders ─────────────────────────────────────────────────────────────
def load_schedule_manifest(path: Path) -> ScheduleManifest:
    manifest = ScheduleManifest.model_validate_json(Path(path).read_text(encoding="utf-8"))
    logger.info("schedule_manifest_loaded", path=str(path), seasons=len(manifest.seasons))
    return manifest


def load_live_manifest(path: Path) -> LiveManifest:
    manifest = LiveManifest.model_validate_json(Path(path).read_text(encoding="utf-8"))
    logger.info("live_manifest_loaded", path=str(path), seasons=len(manifest.seasons))
    return manifest


def load_team_directory(path: Path) -> TeamDirectory:
    teams = TeamList.model_validate_json(Path(path).read_text(encoding="utf-8")).teams
    logger.info("team_metadata_loaded", path=str(path), teams=len(teams))
    return TeamDirectory(teams)
