"""
Game-thread text parser.

A game thread body carries two markdown tables: the clock table
(time|quarter|down & distance|ball location|possession|...) and the
team/score table whose last column is the bolded total. One structured
pattern match turns that into a GameState, or a ParseFailure when the text
has drifted from the expected shape.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Union

from pydantic import ValidationError

from shared.models.domain import GameState, GameStatus, TeamScore
from shared.models.manifest import TeamDirectory
from shared.utils.logging import get_logger
from shared.utils.metrics import PARSE_RESULTS

from ingest.normalization.normalizer import calc_time_elapsed, fix_entities

logger = get_logger(__name__)

FINAL_MARKER = "Game complete"

GAME_TEXT_RE = re.compile(
    # Clock table: header, alignment row, then the data row
    r"Clock.*\n.*\n"
    r"(?P<time>\d+:\d+)\|(?P<quarter>\d)\|"
    r"(?P<down>\d)(?:st|nd|rd|th)? (?:&amp;|&) (?P<to_go>\d+)\|"
    r"(?P<yardline>[+-]?\d+)(?: \[(?P<whose_yardline>.+?)\])?.*?"
    r"\|\[(?P<possession>.+?)\]"
    # Team table: header, alignment row, home row, away row
    r"[\s\S]*?Team.*\n.*\n"
    r"\[(?P<home_name>.+?)\].*?\*\*(?P<home_score>\d+)\*\*\n"
    r"\[(?P<away_name>.+?)\].*?\*\*(?P<away_score>\d+)\*\*"
)


@dataclass(frozen=True)
class ParseFailure:
    """A document that could not be parsed; kept for logging, never raised."""
    game_id: str
    reason: str


ParseResult = Union[GameState, ParseFailure]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GameTextParser:
    """Parses game-thread bodies; team metadata is used for yardline codes."""

    def __init__(
        self,
        teams: TeamDirectory,
        final_marker: str = FINAL_MARKER,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._teams = teams
        self._final_marker = final_marker
        self._clock = clock

    def parse(self, raw_text: str, game_id: str) -> ParseResult:
        """Parse one document. Returns a ParseFailure instead of raising."""
        match = GAME_TEXT_RE.search(raw_text or "")
        if match is None:
            return self._fail(game_id, "no structural match")

        groups = match.groupdict()
        final = self._final_marker in raw_text

        try:
            time_elapsed = calc_time_elapsed(groups["time"], groups["quarter"], final)
        except ValueError as exc:
            return self._fail(game_id, str(exc))

        whose_yardline = groups.get("whose_yardline") or ""
        if whose_yardline:
            whose_yardline = self._teams.abbreviation(fix_entities(whose_yardline))

        try:
            game = GameState(
                game_id=game_id,
                teams=[
                    TeamScore(name=fix_entities(groups["home_name"]), score=groups["home_score"]),
                    TeamScore(name=fix_entities(groups["away_name"]), score=groups["away_score"]),
                ],
                status=GameStatus(
                    time=groups["time"],
                    quarter=groups["quarter"],
                    down=groups["down"],
                    to_go=groups["to_go"],
                    yardline=groups["yardline"],
                    whose_yardline=whose_yardline,
                    possession=fix_entities(groups["possession"]),
                    final=final,
                ),
                time_elapsed=time_elapsed,
                updated_at=self._clock(),
            )
        except ValidationError as exc:
            return self._fail(game_id, f"invalid game state: {exc.error_count()} errors")

        PARSE_RESULTS.labels(outcome="ok").inc()
        return game

    def parse_many(self, documents: Iterable[tuple[str, str]]) -> list[GameState]:
        """
        Parse (game_id, raw_text) pairs, dropping failures.

        Failures are logged and counted; they never abort the batch.
        """
        games: list[GameState] = []
        for game_id, raw_text in documents:
            result = self.parse(raw_text, game_id)
            if isinstance(result, ParseFailure):
                continue
            games.append(result)
        return games

    def _fail(self, game_id: str, reason: str) -> ParseFailure:
        PARSE_RESULTS.labels(outcome="failed").inc()
        logger.warning("parse_failed", game_id=game_id, reason=reason)
        return ParseFailure(game_id=game_id, reason=reason)
