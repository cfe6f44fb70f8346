"""Logging and metrics for PostQuarry."""

from __future__ import annotations

from .logging import configure_logging
from .metrics import METRICS, increment, observe, set_metrics_enabled

__all__ = ["configure_logging", "METRICS", "increment", "observe", "set_metrics_enabled"]
