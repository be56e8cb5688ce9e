"""
Lightweight metrics collection for Scoreline.
Wraps prometheus_client with async-safe patterns.
"""
from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
REMOTE_FETCHES = Counter(
    "sl_remote_fetches_total",
    "Total per-game requests to the remote discussion API",
    ["outcome"],
)
PARSE_RESULTS = Counter(
    "sl_parse_results_total",
    "Game-status documents parsed, by outcome",
    ["outcome"],
)
CACHE_DECISIONS = Counter(
    "sl_cache_decisions_total",
    "Snapshot freshness decisions",
    ["decision"],
)
CACHE_ERRORS = Counter(
    "sl_cache_errors_total",
    "Snapshot read/write failures",
    ["operation"],
)
UNKNOWN_TEAMS = Counter(
    "sl_unknown_team_names_total",
    "Team names with no abbreviation in the team metadata",
)

# ── Histograms ──────────────────────────────────────────────────────────
REMOTE_LATENCY = Histogram(
    "sl_remote_latency_seconds",
    "Remote API request latency in seconds",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
RESOLUTION_LATENCY = Histogram(
    "sl_resolution_seconds",
    "Time to resolve the scores of one season/week",
    ["source"],
    buckets=(0.001, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Gauges ──────────────────────────────────────────────────────────────
GAMES_SERVED = Gauge(
    "sl_games_served",
    "Number of games in the last resolved week",
)


@contextmanager
def track_latency(histogram: Histogram, **labels: str) -> Iterator[None]:
    """Context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if labels:
            histogram.labels(**labels).observe(elapsed)
        else:
            histogram.observe(elapsed)


def start_metrics_server(port: int | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)
