"""
Normalization helpers for parsed game state.

- HTML entity clean-up for text scraped from the game thread
- Game-clock to elapsed-seconds conversion
- Display ordering of a week's games
"""
from __future__ import annotations

import html
import re
from typing import Iterable, Union

from shared.models.domain import (
    FINAL_TIME_ELAPSED,
    QUARTER_SECONDS,
    REGULATION_QUARTERS,
    GameState,
)

_CLOCK_RE = re.compile(r"^(\d{1,2}):([0-5]\d)$")


def fix_entities(text: str) -> str:
    """
    Decode HTML entities until none are left.

    The source double-escapes some text ("&amp;amp;"), so decoding runs to a
    fixed point rather than a set number of passes. The result is stable
    under further calls.
    """
    previous = None
    current = text
    while current != previous:
        previous = current
        current = html.unescape(current)
    return current


def calc_time_elapsed(time: str, quarter: Union[str, int], final: bool) -> int:
    """
    Seconds of game clock consumed.

    Args:
        time: Time remaining in the quarter, "mm:ss".
        quarter: Current quarter number. Overtime counts as the 4th quarter.
        final: Whether the game is over.

    Returns:
        Elapsed seconds; always FINAL_TIME_ELAPSED for a final game.

    Raises:
        ValueError: If the clock or quarter is malformed.
    """
    if final:
        return FINAL_TIME_ELAPSED

    match = _CLOCK_RE.match(time.strip())
    if not match:
        raise ValueError(f"Invalid game clock {time!r}, expected mm:ss")
    remaining = int(match.group(1)) * 60 + int(match.group(2))

    quarter_no = int(quarter)
    if quarter_no < 1:
        raise ValueError(f"Invalid quarter {quarter!r}")
    quarter_no = min(quarter_no, REGULATION_QUARTERS)

    played_in_quarter = max(0, QUARTER_SECONDS - remaining)
    return (quarter_no - 1) * QUARTER_SECONDS + played_in_quarter


def score_sort_key(game: GameState) -> tuple[bool, bool, int, float]:
    """
    Sort key for display order.

    Most elapsed time first, finished games (final, or at the full-time
    mark) after every game still in progress, newest update first on ties.
    """
    finished = game.is_final or game.time_elapsed == FINAL_TIME_ELAPSED
    return (finished, game.is_final, -game.time_elapsed, -game.updated_at.timestamp())


def compare_scores(a: GameState, b: GameState) -> int:
    """Comparator form of score_sort_key: negative if a sorts first."""
    key_a = score_sort_key(a)
    key_b = score_sort_key(b)
    return (key_a > key_b) - (key_a < key_b)


def sort_scores(games: Iterable[GameState]) -> list[GameState]:
    return sorted(games, key=score_sort_key)
