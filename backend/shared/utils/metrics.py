"""
Lightweight metrics collection for MatchScout.
Wraps prometheus_client with async-safe patterns.
"""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from prometheus_client import Counter, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
SCRAPE_ATTEMPTS = Counter(
    "ms_scrape_attempts_total",
    "Browser operation attempts by label and outcome",
    ["label", "outcome"],
)
SESSION_RESETS = Counter(
    "ms_browser_session_resets_total",
    "Browser sessions torn down and recreated between attempts",
)
RATE_LIMIT_WAITS = Counter(
    "ms_rate_limit_waits_total",
    "Times a caller was suspended by the host rate limiter",
    ["host"],
)
SUBSTEP_DEGRADED = Counter(
    "ms_extraction_substep_degraded_total",
    "Extraction sub-steps that fell back to empty/default values",
    ["sport", "substep"],
)
CACHE_LOOKUPS = Counter(
    "ms_cache_lookups_total",
    "Match record cache lookups",
    ["sport", "result"],
)
CACHE_WRITE_FAILURES = Counter(
    "ms_cache_write_failures_total",
    "Best-effort cache writes that failed",
    ["sport"],
)
PREDICTION_RESPONSES = Counter(
    "ms_prediction_responses_total",
    "Prediction provider responses by status",
    ["provider", "status"],
)
UPSTREAM_REQUESTS = Counter(
    "ms_upstream_requests_total",
    "Total upstream HTTP requests",
    ["provider", "status"],
)

# ── Histograms ──────────────────────────────────────────────────────────
UPSTREAM_LATENCY = Histogram(
    "ms_upstream_latency_seconds",
    "Upstream HTTP request latency in seconds",
    ["provider"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)
MATCH_BUILD_SECONDS = Histogram(
    "ms_match_build_seconds",
    "Time to build a match record on a cache miss",
    ["sport"],
    buckets=(1, 2.5, 5, 10, 20, 40, 80, 160),
)


@asynccontextmanager
async def atrack_latency(histogram: Histogram, **labels: str) -> AsyncIterator[None]:
    """Async context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        histogram.labels(**labels).observe(elapsed)


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
