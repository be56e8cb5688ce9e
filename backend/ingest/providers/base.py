"""
Abstract base class for remote game-document sources.
Defines the fetch contract and the per-ID failure isolation of fan-out fetches.
"""
from __future__ import annotations

import abc
import asyncio
import time
from typing import Optional, Sequence

import httpx

from shared.models.enums import FetchStatus
from shared.utils.http_client import RemoteHTTPClient
from shared.utils.logging import get_logger
from shared.utils.metrics import REMOTE_FETCHES

logger = get_logger(__name__)


class FetchFailure(Exception):
    """A single game's document could not be retrieved."""

    def __init__(
        self,
        game_id: str,
        status: FetchStatus,
        error: str,
        status_code: Optional[int] = None,
    ) -> None:
        self.game_id = game_id
        self.status = status
        self.error = error
        self.status_code = status_code
        super().__init__(f"Failed to fetch game {game_id}: {error}")


class FetchOutcome:
    """Container for one ID's fetch result."""

    def __init__(
        self,
        game_id: str,
        document: Optional[str] = None,
        failure: Optional[FetchFailure] = None,
        latency_ms: float = 0.0,
    ) -> None:
        self.game_id = game_id
        self.document = document
        self.failure = failure
        self.latency_ms = latency_ms

    @property
    def success(self) -> bool:
        return self.failure is None and self.document is not None

    def __repr__(self) -> str:
        state = "ok" if self.success else f"failed:{self.failure.status.value if self.failure else '?'}"
        return f"FetchOutcome({self.game_id!r}, {state})"


class BaseDocumentSource(abc.ABC):
    """
    Base class for sources of raw game-status documents.

    Subclasses implement _fetch_document; the base class maps transport
    errors to FetchFailure and runs concurrent fan-out fetches.
    """

    def __init__(self, name: str, http_client: RemoteHTTPClient) -> None:
        self._name = name
        self._http = http_client

    @property
    def name(self) -> str:
        return self._name

    async def start(self) -> None:
        """Initialize the source HTTP client."""
        await self._http.start()

    async def close(self) -> None:
        """Shutdown the source HTTP client."""
        await self._http.close()

    async def fetch_one(self, game_id: str) -> str:
        """
        Fetch the raw document for one game.

        Raises:
            FetchFailure: On a non-2xx response, a connection error or a
                payload without a document.
        """
        try:
            document = await self._fetch_document(game_id)
        except FetchFailure as exc:
            REMOTE_FETCHES.labels(outcome=exc.status.value).inc()
            raise
        except httpx.HTTPStatusError as exc:
            REMOTE_FETCHES.labels(outcome=FetchStatus.HTTP_ERROR.value).inc()
            raise FetchFailure(
                game_id,
                FetchStatus.HTTP_ERROR,
                str(exc),
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            REMOTE_FETCHES.labels(outcome=FetchStatus.CONNECTION_ERROR.value).inc()
            raise FetchFailure(
                game_id, FetchStatus.CONNECTION_ERROR, str(exc) or type(exc).__name__
            ) from exc
        REMOTE_FETCHES.labels(outcome=FetchStatus.OK.value).inc()
        return document

    async def fetch_many(self, game_ids: Sequence[str]) -> list[FetchOutcome]:
        """
        Fetch all IDs concurrently and wait for every one of them.

        A failing ID never aborts its siblings. Callers that need a stable
        order must sort the outcomes themselves.
        """
        results = await asyncio.gather(
            *(self._fetch_outcome(game_id) for game_id in game_ids),
            return_exceptions=True,
        )

        outcomes: list[FetchOutcome] = []
        for game_id, result in zip(game_ids, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.error(
                    "fetch_unexpected_error",
                    source=self._name,
                    game_id=game_id,
                    error=str(result),
                )
                result = FetchOutcome(
                    game_id,
                    failure=FetchFailure(game_id, FetchStatus.CONNECTION_ERROR, str(result)),
                )
            outcomes.append(result)

        failed = sum(1 for o in outcomes if not o.success)
        logger.info(
            "fetch_batch_complete",
            source=self._name,
            requested=len(game_ids),
            failed=failed,
        )
        return outcomes

    async def _fetch_outcome(self, game_id: str) -> FetchOutcome:
        start = time.perf_counter()
        try:
            document = await self.fetch_one(game_id)
        except FetchFailure as exc:
            latency_ms = (time.perf_counter() - start) * 1000
            logger.warning(
                "fetch_failed",
                source=self._name,
                game_id=game_id,
                status=exc.status.value,
                status_code=exc.status_code,
                error=exc.error,
            )
            return FetchOutcome(game_id, failure=exc, latency_ms=latency_ms)
        return FetchOutcome(
            game_id, document=document, latency_ms=(time.perf_counter() - start) * 1000
        )

    # ── Abstract methods ────────────────────────────────────────────────
    @abc.abstractmethod
    async def _fetch_document(self, game_id: str) -> str:
        """Source-specific request and document extraction."""
        ...
