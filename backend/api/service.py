"""
Runner for the Scoreline API.

    python -m api.service

The platform may assign the port through PORT, which wins over SL_API_PORT.
One worker only: the snapshot file has no cross-process coordination.
"""
from __future__ import annotations

import os
from typing import Any, Mapping, Optional

import uvicorn

from shared.config import Settings, get_settings

APP_IMPORT_PATH = "api.app:app"


def run_options(settings: Settings, environ: Optional[Mapping[str, str]] = None) -> dict[str, Any]:
    """Keyword arguments for uvicorn.run derived from settings and the environment."""
    environ = os.environ if environ is None else environ
    return {
        "host": settings.api_host,
        "port": int(environ.get("PORT") or settings.api_port),
        "workers": 1,
        "log_level": settings.log_level.lower(),
        # Request logging happens in RequestContextMiddleware.
        "access_log": False,
        "timeout_keep_alive": 30,
    }


def main() -> None:
    uvicorn.run(APP_IMPORT_PATH, **run_options(get_settings()))


if __name__ == "__main__":
    main()
