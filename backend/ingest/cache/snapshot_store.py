"""
Snapshot cache for live game states.

The snapshot is a single JSON file holding an array of GameState, rewritten
wholesale on every refresh. Its age is the file's modification time. Writers
are not coordinated: overlapping refreshes both write and the last one wins.
"""
from __future__ import annotations

import asyncio
import json
import os
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from shared.models.domain import CacheDecision, CacheSnapshot, GameState
from shared.models.enums import CacheReason
from shared.utils.logging import get_logger
from shared.utils.metrics import CACHE_DECISIONS, CACHE_ERRORS

logger = get_logger(__name__)

_GAMES_ADAPTER = TypeAdapter(list[GameState])


class CacheError(Exception):
    def __init__(self, path: Path, message: str) -> None:
        self.path = Path(path)
        super().__init__(f"{message} ({self.path})")


class CacheReadError(CacheError):
    """The snapshot is missing or is not a valid list of game states."""


class CacheWriteError(CacheError):
    """The snapshot could not be written."""


def _check_age_sync(path: Path, expiry_s: int, now: Optional[float]) -> CacheDecision:
    try:
        mtime = os.stat(path).st_mtime
    except FileNotFoundError:
        return CacheDecision(use_cache=False, reason=CacheReason.MISSING)
    except OSError as exc:
        raise CacheReadError(path, f"Cannot stat snapshot: {exc}") from exc

    age_s = round((now if now is not None else time.time()) - mtime)
    if age_s >= expiry_s:
        return CacheDecision(use_cache=False, reason=CacheReason.EXPIRED, age_s=age_s)
    return CacheDecision(use_cache=True, reason=CacheReason.FRESH, age_s=age_s)


def _read_sync(path: Path) -> CacheSnapshot:
    try:
        raw = path.read_bytes()
        mtime = os.stat(path).st_mtime
    except OSError as exc:
        raise CacheReadError(path, f"Cannot read snapshot: {exc}") from exc
    try:
        games = _GAMES_ADAPTER.validate_json(raw)
    except ValidationError as exc:
        raise CacheReadError(path, f"Snapshot is not a valid game list: {exc.error_count()} errors") from exc
    return CacheSnapshot(
        written_at=datetime.fromtimestamp(mtime, tz=timezone.utc),
        games=games,
    )


def _write_sync(path: Path, games: Sequence[GameState]) -> None:
    payload = json.dumps([game.to_wire() for game in games], indent=2)
    tmp_name: Optional[str] = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=path.parent, prefix=f".{path.name}.", delete=False
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(payload)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, path)
    except OSError as exc:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise CacheWriteError(path, f"Cannot write snapshot: {exc}") from exc


async def check_age(path: Path, expiry_s: int, now: Optional[float] = None) -> CacheDecision:
    """
    Decide whether the snapshot at path is fresh enough to serve.

    Age is whole seconds, rounded. A missing file is never used; an age at
    or above expiry_s is stale.
    """
    return await asyncio.to_thread(_check_age_sync, Path(path), expiry_s, now)


async def read_snapshot(path: Path) -> CacheSnapshot:
    """Raises CacheReadError if the file is missing or malformed."""
    return await asyncio.to_thread(_read_sync, Path(path))


async def write_snapshot(path: Path, games: Sequence[GameState]) -> None:
    """
    Replace the snapshot with games, pretty-printed.

    Missing parent directories are created. The new content is written to a
    temporary file and renamed over the old one.

    Raises:
        CacheWriteError: On any I/O failure.
    """
    await asyncio.to_thread(_write_sync, Path(path), list(games))


class SnapshotStore:
    """Owner of the deployment's snapshot file."""

    def __init__(self, path: Path, expiry_s: int = 60) -> None:
        self._path = Path(path)
        self._expiry_s = expiry_s

    @property
    def path(self) -> Path:
        return self._path

    @property
    def expiry_s(self) -> int:
        return self._expiry_s

    async def check_age(self, now: Optional[float] = None) -> CacheDecision:
        decision = await check_age(self._path, self._expiry_s, now=now)
        CACHE_DECISIONS.labels(decision=decision.reason.value).inc()
        logger.info(
            "cache_checked",
            path=str(self._path),
            use_cache=decision.use_cache,
            reason=decision.reason.value,
            age_s=decision.age_s,
        )
        return decision

    async def read(self) -> CacheSnapshot:
        try:
            snapshot = await read_snapshot(self._path)
        except CacheReadError as exc:
            CACHE_ERRORS.labels(operation="read").inc()
            logger.error("cache_read_failed", path=str(self._path), error=str(exc))
            raise
        logger.debug("cache_read", path=str(self._path), games=len(snapshot.games))
        return snapshot

    async def write(self, games: Sequence[GameState]) -> None:
        try:
            await write_snapshot(self._path, games)
        except CacheWriteError as exc:
            CACHE_ERRORS.labels(operation="write").inc()
            logger.error("cache_write_failed", path=str(self._path), error=str(exc))
            raise
        logger.info("cache_written", path=str(self._path), games=len(games))
