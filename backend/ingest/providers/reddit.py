"""
Reddit game-thread source.
Each live game is a self post whose body carries the game state as
markdown tables; the post is looked up through the info endpoint.
"""
from __future__ import annotations

from typing import Any

from shared.config import Settings, get_settings
from shared.models.enums import FetchStatus
from shared.utils.http_client import RemoteHTTPClient
from shared.utils.logging import get_logger

from ingest.providers.base import BaseDocumentSource, FetchFailure

logger = get_logger(__name__)


def extract_selftext(payload: Any) -> str | None:
    """Pull the post body out of an info.json listing; None if absent."""
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if not isinstance(data, dict):
        return None
    children = data.get("children")
    if not isinstance(children, list) or not children:
        return None
    first = children[0]
    if not isinstance(first, dict):
        return None
    post = first.get("data")
    if not isinstance(post, dict):
        return None
    text = post.get("selftext")
    return text if isinstance(text, str) else None


class RedditThreadSource(BaseDocumentSource):
    """Fetches game-thread bodies by post ID."""

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: RemoteHTTPClient | None = None,
    ) -> None:
        settings = settings or get_settings()
        http = http_client or RemoteHTTPClient(
            base_url=settings.remote_base_url,
            headers={
                "User-Agent": settings.remote_user_agent,
                "Accept": "application/json",
            },
            timeout_s=settings.remote_timeout_s,
        )
        super().__init__("reddit", http)
        self._info_path = settings.remote_info_path
        self._id_prefix = settings.remote_id_prefix

    async def _fetch_document(self, game_id: str) -> str:
        resp = await self._http.get(self._info_path, params={"id": f"{self._id_prefix}{game_id}"})
        try:
            payload = resp.json()
        except ValueError as exc:
            raise FetchFailure(
                game_id, FetchStatus.BAD_PAYLOAD, f"invalid JSON: {exc}", status_code=resp.status_code
            ) from exc

        text = extract_selftext(payload)
        if text is None:
            raise FetchFailure(
                game_id,
                FetchStatus.BAD_PAYLOAD,
                "response has no post body",
                status_code=resp.status_code,
            )
        return text
