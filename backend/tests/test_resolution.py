"""
Tests for week resolution: manifest reconciliation, the cache-or-fetch
decision, partial failures and merge precedence.
"""
from __future__ import annotations

import os
import time
from pathlib import Path
from typing import Callable, Optional

import pytest

from shared.models.domain import FINAL_TIME_ELAPSED, GameState, GameStatus, TeamScore
from shared.models.enums import FetchStatus, ScoreSource
from shared.models.manifest import LiveManifest, ManifestLookupMiss, ScheduleManifest, TeamDirectory
from shared.utils.http_client import RemoteHTTPClient

from ingest.cache.snapshot_store import SnapshotStore, read_snapshot, write_snapshot
from ingest.parsing.parser import GameTextParser
from ingest.providers.base import BaseDocumentSource, FetchFailure
from ingest.service import ScoreResolutionEngine, merge_games


class FakeSource(BaseDocumentSource):
    """Serves canned documents; IDs without one fail with a 404."""

    def __init__(self, documents: Optional[dict[str, str]] = None) -> None:
        super().__init__("fake", RemoteHTTPClient(base_url="https://unused.test"))
        self.documents = documents or {}
        self.calls: list[str] = []

    async def _fetch_document(self, game_id: str) -> str:
        self.calls.append(game_id)
        if game_id not in self.documents:
            raise FetchFailure(game_id, FetchStatus.HTTP_ERROR, "not found", status_code=404)
        return self.documents[game_id]


def _final(game_id: str, home: str = "Texas A&M", away: str = "Alabama") -> dict:
    return {
        "gameID": game_id,
        "teams": [{"name": home, "score": "28"}, {"name": away, "score": "24"}],
        "status": {"time": "0:00", "quarter": "4", "final": True},
        "updatedAt": "2019-02-02T17:00:00Z",
    }


def _schedule(weeks: dict[int, list]) -> ScheduleManifest:
    return ScheduleManifest.model_validate(
        {"seasons": [{"season": 2, "weeks": [{"week": w, "games": g} for w, g in weeks.items()]}]}
    )


def _live(weeks: dict[int, list[str]]) -> LiveManifest:
    return LiveManifest.model_validate(
        {"seasons": [{"season": 2, "weeks": [{"week": w, "games": g} for w, g in weeks.items()]}]}
    )


@pytest.fixture
def cache(tmp_path: Path) -> SnapshotStore:
    return SnapshotStore(tmp_path / "scores.json", expiry_s=60)


@pytest.fixture
def make_engine(
    teams: TeamDirectory, cache: SnapshotStore
) -> Callable[..., ScoreResolutionEngine]:
    def _make(
        schedule: ScheduleManifest,
        live: LiveManifest,
        source: BaseDocumentSource,
        store: Optional[SnapshotStore] = None,
    ) -> ScoreResolutionEngine:
        return ScoreResolutionEngine(
            schedule=schedule,
            live=live,
            source=source,
            parser=GameTextParser(teams),
            cache=store or cache,
        )
    return _make


def _live_game(game_id: str, elapsed: int) -> GameState:
    return GameState(
        game_id=game_id,
        teams=[TeamScore(name="Texas", score="7"), TeamScore(name="Oklahoma", score="3")],
        status=GameStatus(time="1:00", quarter="2"),
        time_elapsed=elapsed,
    )


# ── Manifest-only weeks ─────────────────────────────────────────────────

class TestManifestWeeks:

    @pytest.mark.asyncio
    async def test_week_not_live(self, make_engine: Callable[..., ScoreResolutionEngine]) -> None:
        source = FakeSource()
        engine = make_engine(_schedule({1: ["a", _final("f1")]}), _live({}), source)

        result = await engine.resolve(2, 1)

        assert result.source == ScoreSource.MANIFEST
        assert [g.game_id for g in result.games] == ["f1"]
        assert result.games[0].time_elapsed == FINAL_TIME_ELAPSED
        assert source.calls == []

    @pytest.mark.asyncio
    async def test_all_live_ids_archived(
        self, make_engine: Callable[..., ScoreResolutionEngine], cache: SnapshotStore
    ) -> None:
        source = FakeSource()
        engine = make_engine(
            _schedule({1: [_final("f1"), _final("f2")]}), _live({1: ["f1", "f2"]}), source
        )

        result = await engine.resolve(2, 1)

        assert result.source == ScoreSource.MANIFEST
        assert {g.game_id for g in result.games} == {"f1", "f2"}
        assert source.calls == []
        assert not cache.path.exists()

    @pytest.mark.asyncio
    async def test_unknown_week(self, make_engine: Callable[..., ScoreResolutionEngine]) -> None:
        engine = make_engine(_schedule({1: []}), _live({}), FakeSource())
        with pytest.raises(ManifestLookupMiss) as exc_info:
            await engine.resolve(2, 9)
        assert (exc_info.value.season, exc_info.value.week) == (2, 9)

    @pytest.mark.asyncio
    async def test_unknown_season(self, make_engine: Callable[..., ScoreResolutionEngine]) -> None:
        engine = make_engine(_schedule({1: []}), _live({}), FakeSource())
        with pytest.raises(ManifestLookupMiss):
            await engine.resolve(7, 1)


# ── Cache or fetch ──────────────────────────────────────────────────────

class TestLiveWeeks:

    @pytest.mark.asyncio
    async def test_missing_cache_fetches_and_writes(
        self,
        make_engine: Callable[..., ScoreResolutionEngine],
        cache: SnapshotStore,
        thread_body: Callable[..., str],
    ) -> None:
        source = FakeSource({"a": thread_body(time="6:00"), "b": thread_body(time="2:00")})
        engine = make_engine(_schedule({1: ["a", "b", _final("f1")]}), _live({1: ["a", "b", "f1"]}), source)

        result = await engine.resolve(2, 1)

        assert result.source == ScoreSource.REMOTE
        assert [g.game_id for g in result.games] == ["b", "a", "f1"]
        assert sorted(source.calls) == ["a", "b"]
        snapshot = await read_snapshot(cache.path)
        assert snapshot.game_ids == {"a", "b"}

    @pytest.mark.asyncio
    async def test_fresh_cache_is_served(
        self, make_engine: Callable[..., ScoreResolutionEngine], cache: SnapshotStore
    ) -> None:
        await write_snapshot(cache.path, [_live_game("a", 300), _live_game("b", 900)])
        source = FakeSource()
        engine = make_engine(_schedule({1: ["a", "b"]}), _live({1: ["a", "b"]}), source)

        result = await engine.resolve(2, 1)

        assert result.source == ScoreSource.CACHE
        assert [g.game_id for g in result.games] == ["b", "a"]
        assert source.calls == []

    @pytest.mark.asyncio
    async def test_stale_cache_refetches(
        self,
        make_engine: Callable[..., ScoreResolutionEngine],
        cache: SnapshotStore,
        thread_body: Callable[..., str],
    ) -> None:
        await write_snapshot(cache.path, [_live_game("a", 300)])
        old = time.time() - 600
        os.utime(cache.path, (old, old))
        source = FakeSource({"a": thread_body(time="1:00", quarter=4)})
        engine = make_engine(_schedule({1: ["a"]}), _live({1: ["a"]}), source)

        result = await engine.resolve(2, 1)

        assert result.source == ScoreSource.REMOTE
        assert source.calls == ["a"]
        assert result.games[0].time_elapsed == 3 * 420 + 360
        assert os.stat(cache.path).st_mtime > old

    @pytest.mark.asyncio
    async def test_fresh_cache_for_other_week_refetches(
        self,
        make_engine: Callable[..., ScoreResolutionEngine],
        cache: SnapshotStore,
        thread_body: Callable[..., str],
    ) -> None:
        await write_snapshot(cache.path, [_live_game("other", 300)])
        source = FakeSource({"a": thread_body()})
        engine = make_engine(_schedule({1: ["a"]}), _live({1: ["a"]}), source)

        result = await engine.resolve(2, 1)

        assert result.source == ScoreSource.REMOTE
        assert source.calls == ["a"]

    @pytest.mark.asyncio
    async def test_corrupt_cache_refetches(
        self,
        make_engine: Callable[..., ScoreResolutionEngine],
        cache: SnapshotStore,
        thread_body: Callable[..., str],
    ) -> None:
        cache.path.write_text("{ not json")
        source = FakeSource({"a": thread_body()})
        engine = make_engine(_schedule({1: ["a"]}), _live({1: ["a"]}), source)

        result = await engine.resolve(2, 1)

        assert result.source == ScoreSource.REMOTE
        assert [g.game_id for g in result.games] == ["a"]
        snapshot = await read_snapshot(cache.path)
        assert snapshot.game_ids == {"a"}

    @pytest.mark.asyncio
    async def test_force_refresh_ignores_fresh_cache(
        self,
        make_engine: Callable[..., ScoreResolutionEngine],
        cache: SnapshotStore,
        thread_body: Callable[..., str],
    ) -> None:
        await write_snapshot(cache.path, [_live_game("a", 300)])
        source = FakeSource({"a": thread_body()})
        engine = make_engine(_schedule({1: ["a"]}), _live({1: ["a"]}), source)

        result = await engine.refresh_week(2, 1)

        assert result.source == ScoreSource.REMOTE
        assert source.calls == ["a"]

    @pytest.mark.asyncio
    async def test_duplicate_live_ids_fetched_once(
        self, make_engine: Callable[..., ScoreResolutionEngine], thread_body: Callable[..., str]
    ) -> None:
        source = FakeSource({"a": thread_body()})
        engine = make_engine(_schedule({1: ["a"]}), _live({1: ["a", "a"]}), source)

        result = await engine.resolve(2, 1)

        assert source.calls == ["a"]
        assert len(result.games) == 1


# ── Partial failures ────────────────────────────────────────────────────

class TestPartialFailures:

    @pytest.mark.asyncio
    async def test_unparseable_document_dropped(
        self,
        make_engine: Callable[..., ScoreResolutionEngine],
        cache: SnapshotStore,
        thread_body: Callable[..., str],
    ) -> None:
        documents = {f"g{i}": thread_body(time=f"{i}:00") for i in range(1, 5)}
        documents["bad"] = "Pregame thread, tables coming soon."
        ids = list(documents)
        source = FakeSource(documents)
        engine = make_engine(_schedule({1: ids}), _live({1: ids}), source)

        result = await engine.resolve(2, 1)

        assert len(result.games) == 4
        assert "bad" not in {g.game_id for g in result.games}
        snapshot = await read_snapshot(cache.path)
        assert len(snapshot.games) == 4

    @pytest.mark.asyncio
    async def test_fetch_failure_dropped(
        self, make_engine: Callable[..., ScoreResolutionEngine], thread_body: Callable[..., str]
    ) -> None:
        source = FakeSource({"a": thread_body(), "b": thread_body()})
        engine = make_engine(_schedule({1: ["a", "b", "gone"]}), _live({1: ["a", "b", "gone"]}), source)

        result = await engine.resolve(2, 1)

        assert sorted(source.calls) == ["a", "b", "gone"]
        assert {g.game_id for g in result.games} == {"a", "b"}

    @pytest.mark.asyncio
    async def test_every_fetch_fails(
        self, make_engine: Callable[..., ScoreResolutionEngine], cache: SnapshotStore
    ) -> None:
        engine = make_engine(
            _schedule({1: ["a", _final("f1")]}), _live({1: ["a", "f1"]}), FakeSource()
        )

        result = await engine.resolve(2, 1)

        assert result.source == ScoreSource.REMOTE
        assert [g.game_id for g in result.games] == ["f1"]
        snapshot = await read_snapshot(cache.path)
        assert snapshot.games == []

    @pytest.mark.asyncio
    async def test_cache_write_failure_still_returns_games(
        self,
        make_engine: Callable[..., ScoreResolutionEngine],
        tmp_path: Path,
        thread_body: Callable[..., str],
    ) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = SnapshotStore(blocker / "scores.json")
        source = FakeSource({"a": thread_body()})
        engine = make_engine(_schedule({1: ["a"]}), _live({1: ["a"]}), source, store)

        result = await engine.resolve(2, 1)

        assert result.source == ScoreSource.REMOTE
        assert [g.game_id for g in result.games] == ["a"]
        assert "cache write failed" in result.message


# ── Merge ───────────────────────────────────────────────────────────────

class TestMergeGames:

    def test_archived_final_wins(self) -> None:
        archived = ScheduleManifest.model_validate(
            {"seasons": [{"season": 2, "weeks": [{"week": 1, "games": [_final("x")]}]}]}
        ).get_week(2, 1).final_games
        live = [_live_game("x", 900), _live_game("y", 100)]

        merged = merge_games(archived, live)

        assert [g.game_id for g in merged] == ["y", "x"]
        assert merged[1].is_final

    def test_disjoint_union_sorted(self) -> None:
        merged = merge_games([], [_live_game("slow", 10), _live_game("fast", 1000)])
        assert [g.game_id for g in merged] == ["fast", "slow"]
