"""
Observability Module for the Inventory Sync Pipeline

Provides:
- Structured logging with correlation IDs (run, trigger, invoice, workflow)
- Metrics collection (sync runs, reconciliation outcomes, processing times)
"""

from core.observability.metrics import (
    MetricsCollector,
    get_metrics,
    record_sync_started,
    record_sync_completed,
    record_sync_failed,
    record_processing_time,
)

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    with_correlation,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "get_metrics",
    "record_sync_started",
    "record_sync_completed",
    "record_sync_failed",
    "record_processing_time",
    # Logging
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "with_correlation",
]
