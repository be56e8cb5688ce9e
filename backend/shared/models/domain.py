"""
Pydantic v2 domain models shared across the Scoreline services.
Field aliases are the wire/snapshot names used by the front end.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from shared.models.enums import CacheReason, ScoreSource

# A regulation game is 4 quarters of 7 minutes.
QUARTER_SECONDS = 7 * 60
REGULATION_QUARTERS = 4
FINAL_TIME_ELAPSED = REGULATION_QUARTERS * QUARTER_SECONDS


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, frozen=True)

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict using the wire field names."""
        return self.model_dump(mode="json", by_alias=True)


# ── Game state ──────────────────────────────────────────────────────────
class TeamScore(DomainModel):
    name: str = Field(min_length=1)
    # Kept as the digits seen in the document; results compare them as ints.
    score: str = Field(pattern=r"^\d+$")


class GameStatus(DomainModel):
    """Clock and down-and-distance as read from the game thread."""
    time: str
    quarter: str
    down: str = ""
    to_go: str = Field(default="", alias="toGo")
    yardline: str = ""
    whose_yardline: str = Field(default="", alias="whoseYardline")
    possession: str = ""
    final: bool = False


class GameState(DomainModel):
    """One game's parsed state. Immutable; replaced wholesale on the next fetch."""
    game_id: str = Field(alias="gameID", min_length=1)
    teams: list[TeamScore] = Field(min_length=2, max_length=2)
    status: GameStatus
    time_elapsed: int = Field(alias="timeElapsed", ge=0)
    updated_at: datetime = Field(default_factory=_utcnow, alias="updatedAt")

    @model_validator(mode="before")
    @classmethod
    def _default_final_elapsed(cls, data: Any) -> Any:
        # Archived finals in the schedule manifest may omit timeElapsed.
        if isinstance(data, dict) and "timeElapsed" not in data and "time_elapsed" not in data:
            status = data.get("status")
            final = status.get("final") if isinstance(status, dict) else getattr(status, "final", False)
            if final:
                data = {**data, "timeElapsed": FINAL_TIME_ELAPSED}
        return data

    @model_validator(mode="after")
    def _final_elapsed_is_fixed(self) -> "GameState":
        if self.status.final and self.time_elapsed != FINAL_TIME_ELAPSED:
            raise ValueError(
                f"final game {self.game_id} must have timeElapsed={FINAL_TIME_ELAPSED}"
            )
        return self

    @property
    def is_final(self) -> bool:
        return self.status.final

    @property
    def home(self) -> TeamScore:
        return self.teams[0]

    @property
    def away(self) -> TeamScore:
        return self.teams[1]


# ── Snapshot ────────────────────────────────────────────────────────────
class CacheSnapshot(DomainModel):
    """The persisted snapshot; written_at is the file's modification time."""
    written_at: datetime
    games: list[GameState] = Field(default_factory=list)

    @property
    def game_ids(self) -> set[str]:
        return {game.game_id for game in self.games}


class CacheDecision(DomainModel):
    use_cache: bool
    reason: CacheReason
    age_s: int | None = None


class ScoresResult(DomainModel):
    """Outcome of resolving one season/week."""
    season: int
    week: int
    games: list[GameState] = Field(default_factory=list)
    source: ScoreSource
    message: str = ""
