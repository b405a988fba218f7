"""Delivery of end-of-run summaries."""

from mood_bubbles.reporting.handlers import (
    ReportDispatcher,
    ReportHandler,
    create_dispatcher,
)

__all__ = ["ReportDispatcher", "ReportHandler", "create_dispatcher"]
