"""Domain enumerations for the Scoreline platform."""
from __future__ import annotations

from enum import Enum


class ScoreSource(str, Enum):
    """Where the live part of a resolved week came from."""
    MANIFEST = "manifest"
    CACHE = "cache"
    REMOTE = "remote"


class CacheReason(str, Enum):
    MISSING = "missing"
    FRESH = "fresh"
    EXPIRED = "expired"


class FetchStatus(str, Enum):
    OK = "ok"
    HTTP_ERROR = "http_error"
    CONNECTION_ERROR = "connection_error"
    BAD_PAYLOAD = "bad_payload"


class GameResult(str, Enum):
    WIN = "win"
    LOSS = "loss"
    TIE = "tie"
