"""
Lightweight metrics collection for Linewatch.
Wraps prometheus_client; all collectors are process-wide.
"""
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
UPSTREAM_REQUESTS = Counter(
    "lw_upstream_requests_total",
    "Total upstream HTTP requests",
    ["provider", "status"],
)
THROTTLE_DECISIONS = Counter(
    "lw_throttle_decisions_total",
    "Throttle gate decisions per resource",
    ["resource", "action"],
)
HISTORY_POINTS = Counter(
    "lw_history_points_total",
    "Market-total points appended to intraday history",
)

# ── Histograms ──────────────────────────────────────────────────────────
UPSTREAM_LATENCY = Histogram(
    "lw_upstream_latency_seconds",
    "Upstream request latency in seconds",
    ["provider"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Gauges ──────────────────────────────────────────────────────────────
HISTORY_SERIES = Gauge(
    "lw_history_series",
    "Number of games with an intraday history series",
)
UPSTREAM_QUOTA_REMAINING = Gauge(
    "lw_upstream_quota_remaining",
    "Requests remaining on the upstream plan, as reported by the provider",
    ["provider"],
)

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
