"""
Score resolution for one season/week.

Reconciles the schedule manifest (archived finals) with the live manifest
(IDs still polled), serves live games from the snapshot cache while it is
fresh and otherwise fetches, parses and re-caches them.

Also runnable as a one-shot CLI to warm the cache:
    python -m ingest.service --season 2 --week 1 [--force]
"""
from __future__ import annotations

import argparse
import asyncio
import time
from typing import Iterable, Sequence

from shared.config import Settings, get_settings
from shared.models.domain import GameState, ScoresResult
from shared.models.enums import ScoreSource
from shared.models.manifest import (
    LiveManifest,
    ManifestLookupMiss,
    ScheduleManifest,
    TeamDirectory,
    load_live_manifest,
    load_schedule_manifest,
    load_team_directory,
)
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import GAMES_SERVED, RESOLUTION_LATENCY

from ingest.cache.snapshot_store import CacheReadError, CacheWriteError, SnapshotStore
from ingest.normalization.normalizer import sort_scores
from ingest.parsing.parser import GameTextParser
from ingest.providers.base import BaseDocumentSource
from ingest.providers.reddit import RedditThreadSource

logger = get_logger(__name__)


def merge_games(archived: Iterable[GameState], live: Iterable[GameState]) -> list[GameState]:
    """Union by game ID, archived finals taking precedence, in display order."""
    by_id: dict[str, GameState] = {}
    for game in live:
        by_id[game.game_id] = game
    for game in archived:
        by_id[game.game_id] = game
    return sort_scores(by_id.values())


class ScoreResolutionEngine:
    """
    Resolves the scores of a season/week.

    All lookup data is passed in; the engine holds no global state. The
    cache file is shared with concurrent refreshes and is not locked.
    """

    def __init__(
        self,
        schedule: ScheduleManifest,
        live: LiveManifest,
        source: BaseDocumentSource,
        parser: GameTextParser,
        cache: SnapshotStore,
    ) -> None:
        self._schedule = schedule
        self._live = live
        self._source = source
        self._parser = parser
        self._cache = cache

    @property
    def schedule(self) -> ScheduleManifest:
        return self._schedule

    async def resolve(self, season: int, week: int, *, force_refresh: bool = False) -> ScoresResult:
        """
        Resolve one week.

        Raises:
            ManifestLookupMiss: If the week is not in the schedule manifest.
                Callers are expected to validate season/week first.
        """
        start = time.perf_counter()
        schedule_week = self._schedule.get_week(season, week)
        if schedule_week is None:
            logger.warning("manifest_lookup_miss_unexpected", season=season, week=week)
            raise ManifestLookupMiss(season, week)

        archived_final = schedule_week.final_games
        live_ids = self._live.get_week(season, week)

        if live_ids is None:
            return self._finish(
                season, week, archived_final, ScoreSource.MANIFEST,
                f"Week {week} is archived; {len(archived_final)} final games.", start,
            )

        archived_ids = {game.game_id for game in archived_final}
        still_live = [gid for gid in dict.fromkeys(live_ids) if gid not in archived_ids]

        if not still_live:
            return self._finish(
                season, week, archived_final, ScoreSource.MANIFEST,
                f"All {len(archived_final)} games of week {week} are archived.", start,
            )

        live_games, source, message = await self._live_games(still_live, force_refresh)
        return self._finish(
            season, week, merge_games(archived_final, live_games), source, message, start,
        )

    async def refresh_week(self, season: int, week: int) -> ScoresResult:
        """Resolve a week, bypassing the cache freshness check."""
        return await self.resolve(season, week, force_refresh=True)

    async def _live_games(
        self, still_live: Sequence[str], force_refresh: bool
    ) -> tuple[list[GameState], ScoreSource, str]:
        if not force_refresh:
            cached = await self._cached_games(still_live)
            if cached is not None:
                return cached, ScoreSource.CACHE, f"Got {len(cached)} games from cache."

        games = await self._fetch_and_parse(still_live)
        try:
            await self._cache.write(games)
        except CacheWriteError:
            return games, ScoreSource.REMOTE, f"Fetched {len(games)} games; cache write failed."
        return games, ScoreSource.REMOTE, f"Wrote {len(games)} scores to {self._cache.path}."

    async def _cached_games(self, still_live: Sequence[str]) -> list[GameState] | None:
        """Cached games for the requested IDs, or None when a refetch is needed."""
        try:
            decision = await self._cache.check_age()
            if not decision.use_cache:
                logger.info("cache_not_used", reason=decision.reason.value, age_s=decision.age_s)
                return None
            snapshot = await self._cache.read()
        except CacheReadError as exc:
            logger.warning("cache_unavailable_refetching", error=str(exc))
            return None

        wanted = set(still_live)
        games = [game for game in snapshot.games if game.game_id in wanted]
        if not games:
            # Fresh, but written for a different week.
            logger.info("cache_not_covering_request", cached=len(snapshot.games), wanted=len(wanted))
            return None
        logger.info("cache_used", games=len(games), age_s=decision.age_s)
        return games

    async def _fetch_and_parse(self, game_ids: Sequence[str]) -> list[GameState]:
        outcomes = await self._source.fetch_many(game_ids)
        documents = [(o.game_id, o.document) for o in outcomes if o.success]
        games = self._parser.parse_many(documents)
        logger.info(
            "live_games_fetched",
            requested=len(game_ids),
            fetched=len(documents),
            parsed=len(games),
        )
        return games

    def _finish(
        self,
        season: int,
        week: int,
        games: Iterable[GameState],
        source: ScoreSource,
        message: str,
        start: float,
    ) -> ScoresResult:
        ordered = sort_scores(games)
        RESOLUTION_LATENCY.labels(source=source.value).observe(time.perf_counter() - start)
        GAMES_SERVED.set(len(ordered))
        logger.info(
            "scores_resolved",
            season=season,
            week=week,
            source=source.value,
            games=len(ordered),
        )
        return ScoresResult(season=season, week=week, games=ordered, source=source, message=message)


def build_engine(
    settings: Settings,
    source: BaseDocumentSource | None = None,
    teams: TeamDirectory | None = None,
) -> ScoreResolutionEngine:
    """Load the manifests and team metadata named in settings and wire an engine."""
    teams = teams if teams is not None else load_team_directory(settings.teams_path)
    return ScoreResolutionEngine(
        schedule=load_schedule_manifest(settings.schedule_manifest_path),
        live=load_live_manifest(settings.live_manifest_path),
        source=source or RedditThreadSource(settings),
        parser=GameTextParser(teams),
        cache=SnapshotStore(settings.cache_path, settings.cache_expiry_s),
    )


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Resolve one week's scores and write the snapshot.")
    parser.add_argument("--season", type=int, default=settings.current_season)
    parser.add_argument("--week", type=int, default=settings.current_week)
    parser.add_argument(
        "--force",
        action="store_true",
        help="Refetch live games even if the snapshot is fresh.",
    )
    return parser.parse_args(argv)


async def main(argv: Sequence[str] | None = None) -> int:
    """Ingest CLI entrypoint."""
    args = _parse_args(argv)
    settings = get_settings()
    setup_logging("ingest")

    source = RedditThreadSource(settings)
    engine = build_engine(settings, source)
    await source.start()
    try:
        if args.force:
            result = await engine.refresh_week(args.season, args.week)
        else:
            result = await engine.resolve(args.season, args.week)
    except ManifestLookupMiss as exc:
        logger.error("unknown_week", season=exc.season, week=exc.week)
        return 1
    finally:
        await source.close()

    print(result.message)
    for game in result.games:
        home, away = game.teams
        state = "FINAL" if game.is_final else f"Q{game.status.quarter} {game.status.time}"
        print(f"{game.game_id:>10}  {home.name} {home.score} - {away.score} {away.name}  ({state})")
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
