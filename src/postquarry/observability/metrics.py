"""
Defines Prometheus metrics for scraping and media retrieval.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from prometheus_client import REGISTRY as _PROM_REGISTRY
from prometheus_client import Counter as _OrigCounter
from prometheus_client import Histogram as _OrigHistogram

# ---------------------------------------------------------------------------
# Duplicate-safe Prometheus metric wrappers
# ---------------------------------------------------------------------------
# Re-importing this module (e.g. via importlib.reload in tests) must not raise
# duplicate registration errors, so existing collectors are reused.


def _duplicate_safe_factory(metric_cls):
    """Return a factory that reuses an existing collector if already present."""

    def _factory(name: str, documentation: str, *args, **kwargs):  # type: ignore[override]
        existing = _PROM_REGISTRY._names_to_collectors.get(name)
        if existing is not None:
            return existing  # type: ignore[return-value]

        try:
            return metric_cls(name, documentation, *args, **kwargs)  # type: ignore[call-arg]
        except ValueError:
            return _PROM_REGISTRY._names_to_collectors[name]  # type: ignore[return-value]

    return _factory


Counter = _duplicate_safe_factory(_OrigCounter)  # type: ignore[assignment]
Histogram = _duplicate_safe_factory(_OrigHistogram)  # type: ignore[assignment]


def _create_metrics() -> Dict[str, Any]:
    return {
        "scrape_attempts": Counter(
            "postquarry_scrape_attempts_total",
            "Post scrape attempts by outcome (success or error code)",
            ["outcome"],
        ),
        "fetch_latency_seconds": Histogram(
            "postquarry_fetch_latency_seconds",
            "Time taken by a guarded fetch including redirect hops",
            buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 12.0],
        ),
        "blocked_redirects": Counter(
            "postquarry_blocked_redirects_total",
            "Redirects refused because the target host was not allowed or the hop limit was exceeded",
        ),
        "media_downloads": Counter(
            "postquarry_media_downloads_total",
            "Media download results by outcome",
            ["outcome"],
        ),
        "embed_frames": Counter(
            "postquarry_embed_frames_total",
            "Embed frame fetches by outcome",
            ["outcome"],
        ),
    }


METRICS: Dict[str, Any] = _create_metrics()

_enabled = True


def set_metrics_enabled(enabled: bool) -> None:
    global _enabled
    _enabled = enabled


def increment(name: str, labels: Optional[Dict[str, Any]] = None, value: float = 1.0) -> None:
    """Increment a counter metric if it exists and metrics are enabled."""
    if not _enabled or name not in METRICS:
        return
    metric = METRICS[name]
    if labels is not None:
        metric.labels(**labels).inc(value)
    else:
        metric.inc(value)


def observe(name: str, value: float, labels: Optional[Dict[str, Any]] = None) -> None:
    """Observe a histogram metric if it exists and metrics are enabled."""
    if not _enabled or name not in METRICS:
        return
    metric = METRICS[name]
    if labels is not None:
        metric.labels(**labels).observe(value)
    else:
        metric.observe(value)
