"""Shared fixtures: game-thread bodies and team metadata."""
from __future__ import annotations

from typing import Callable

import pytest

from shared.models.manifest import TeamDirectory, TeamInfo


def make_thread_body(
    home: str = "Texas",
    away: str = "Oklahoma",
    home_score: int = 7,
    away_score: int = 3,
    time: str = "4:12",
    quarter: int = 2,
    down: str = "2nd",
    to_go: int = 8,
    ball_location: str = "35 [Texas](#f/texas)",
    possession: str = "Oklahoma",
    final: bool = False,
) -> str:
    """A game-thread body in the upstream markdown convention."""
    body = (
        "# Game Thread\n\n"
        "Clock|Quarter|Down|Ball location|Possession|Playclock|Deadline\n"
        ":-:|:-:|:-:|:-:|:-:|:-:|:-:\n"
        f"{time}|{quarter}|{down} &amp; {to_go}|{ball_location}|[{possession}](#f/p)|9|18:00\n"
        "\n___\n\n"
        "Team|Q1|Q2|Q3|Q4|Total\n"
        ":-:|:-:|:-:|:-:|:-:|:-:\n"
        f"[{home}](#f/h)|0|0|0|0|**{home_score}**\n"
        f"[{away}](#f/a)|0|0|0|0|**{away_score}**\n"
    )
    if final:
        body += "\n#Game complete, Texas wins!\n"
    return body


@pytest.fixture
def thread_body() -> Callable[..., str]:
    return make_thread_body


@pytest.fixture
def teams() -> TeamDirectory:
    return TeamDirectory(
        [
            TeamInfo(name="Texas", abbr="TEX", conference="Big 12"),
            TeamInfo(name="Oklahoma", abbr="OU", conference="Big 12"),
            TeamInfo(name="Texas A&M", abbr="TAMU", conference="SEC"),
            TeamInfo(name="Alabama", abbr="BAMA", conference="SEC"),
        ]
    )
