"""
API middleware stack.

- Per-request context: X-Request-ID in and out, bound into every log entry
- One structured log line per request, with the score source when known
- JSON error bodies for unknown weeks, bad paths and unhandled failures
- CORS for the browser front end (GET/POST only)
"""
from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from shared.config import get_settings
from shared.models.manifest import ManifestLookupMiss
from shared.utils.logging import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
SCORE_SOURCE_HEADER = "X-Score-Source"

_UNLOGGED_PATHS = frozenset({"/health", "/metrics"})


def _error(status_code: int, error: str, message: str, **extra: object) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message, **extra})


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns the request id, binds it for logging and logs the outcome."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:16]
        request.state.request_id = request_id
        path = request.url.path

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            if path in _UNLOGGED_PATHS:
                response = await call_next(request)
            else:
                response = await self._logged(request, call_next, path)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    async def _logged(self, request: Request, call_next: RequestResponseEndpoint, path: str) -> Response:
        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "http_request_error",
                method=request.method,
                path=path,
                duration_ms=round((time.monotonic() - start) * 1000, 2),
                error=str(exc),
                exc_info=True,
            )
            raise

        logger.info(
            "http_request",
            method=request.method,
            path=path,
            status=response.status_code,
            source=response.headers.get(SCORE_SOURCE_HEADER),
            duration_ms=round((time.monotonic() - start) * 1000, 2),
        )
        return response


def setup_exception_handlers(app: FastAPI) -> None:
    """Register JSON error handlers."""

    @app.exception_handler(ManifestLookupMiss)
    async def manifest_miss_handler(request: Request, exc: ManifestLookupMiss) -> JSONResponse:
        return _error(404, "not_found", str(exc), season=exc.season, week=exc.week)

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc: Exception) -> JSONResponse:
        detail = exc.detail if isinstance(exc, StarletteHTTPException) else None
        return _error(404, "not_found", detail or "Resource not found")

    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = [".".join(str(part) for part in err["loc"]) for err in exc.errors()]
        return _error(422, "invalid_request", "Season and week must be positive integers", fields=fields)

    @app.exception_handler(Exception)
    async def unhandled_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = getattr(request.state, "request_id", "unknown")
        logger.error("unhandled_exception", path=request.url.path, error=str(exc), exc_info=True)
        return _error(500, "internal_server_error", "An unexpected error occurred", request_id=request_id)


def setup_middleware(app: FastAPI) -> None:
    """CORS outermost so preflight requests never reach the request context."""
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_settings().cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER, SCORE_SOURCE_HEADER],
    )
    setup_exception_handlers(app)
