"""
Metrics Collection for the Inventory Sync Pipeline

Collects and exposes metrics for:
- Sync run lifecycle (started, completed, failed) by trigger source
- Reconciliation outcomes (partners/products matched, rows written, duplicates)
- Processing times per stage (average, p95)

Metrics are held in memory for the lifetime of the process; the durable
record of every run lives in the sync run log table.
"""

import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List, Optional, Any


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class SyncRunMetrics:
    """Metrics for sync run execution."""
    started: int = 0
    completed: int = 0
    failed: int = 0
    in_progress: int = 0
    last_completed_at: Optional[datetime] = None

    # By trigger source (manual, scheduled, cron, ...)
    by_trigger: Dict[str, Dict[str, int]] = field(
        default_factory=lambda: defaultdict(lambda: {"started": 0, "completed": 0, "failed": 0})
    )


@dataclass
class ReconciliationMetrics:
    """Totals across all runs."""
    invoices_fetched: int = 0
    invoices_rejected: int = 0
    unmatched_partners: int = 0
    unmatched_products: int = 0
    entries_written: int = 0
    duplicates: int = 0
    persistence_failures: int = 0


@dataclass
class TimingMetrics:
    """Processing time samples, bounded to the most recent max_samples."""
    samples: List[float] = field(default_factory=list)
    max_samples: int = 1000
    by_stage: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))

    def add_sample(self, duration_ms: float, stage: str = None):
        self.samples.append(duration_ms)
        del self.samples[:-self.max_samples]

        if stage:
            stage_samples = self.by_stage[stage]
            stage_samples.append(duration_ms)
            del stage_samples[:-self.max_samples]

    def get_average(self, stage: str = None) -> float:
        samples = self.by_stage.get(stage, []) if stage else self.samples
        return statistics.mean(samples) if samples else 0.0

    def get_p95(self, stage: str = None) -> float:
        samples = self.by_stage.get(stage, []) if stage else self.samples
        if not samples:
            return 0.0
        ordered = sorted(samples)
        idx = int(len(ordered) * 0.95)
        return ordered[min(idx, len(ordered) - 1)]


# =============================================================================
# Metrics Collector (Singleton)
# =============================================================================

class MetricsCollector:
    """
    Thread-safe metrics collector for the sync pipeline.

    Usage:
        metrics = MetricsCollector.instance()
        metrics.record_sync_started("scheduled")
        metrics.record_sync_completed("scheduled", duration_ms=1500)
    """

    _instance: Optional["MetricsCollector"] = None
    _lock = Lock()

    def __init__(self):
        self.runs = SyncRunMetrics()
        self.reconciliation = ReconciliationMetrics()
        self.timings = TimingMetrics()
        self._lock = Lock()

    @classmethod
    def instance(cls) -> "MetricsCollector":
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def reset(self) -> None:
        """Clear all counters (used by tests and long-lived workers)."""
        with self._lock:
            self.runs = SyncRunMetrics()
            self.reconciliation = ReconciliationMetrics()
            self.timings = TimingMetrics()

    # =========================================================================
    # Run Metrics
    # =========================================================================

    def record_sync_started(self, trigger_source: str):
        with self._lock:
            self.runs.started += 1
            self.runs.in_progress += 1
            self.runs.by_trigger[trigger_source]["started"] += 1

    def record_sync_completed(self, trigger_source: str, duration_ms: float = None):
        with self._lock:
            self.runs.completed += 1
            self.runs.in_progress = max(0, self.runs.in_progress - 1)
            self.runs.by_trigger[trigger_source]["completed"] += 1
            self.runs.last_completed_at = datetime.now(timezone.utc)

            if duration_ms:
                self.timings.add_sample(duration_ms, "sync.run")

    def record_sync_failed(self, trigger_source: str):
        with self._lock:
            self.runs.failed += 1
            self.runs.in_progress = max(0, self.runs.in_progress - 1)
            self.runs.by_trigger[trigger_source]["failed"] += 1

    # =========================================================================
    # Reconciliation Metrics
    # =========================================================================

    def record_reconciliation(
        self,
        invoices_fetched: int = 0,
        invoices_rejected: int = 0,
        unmatched_partners: int = 0,
        unmatched_products: int = 0,
        entries_written: int = 0,
        duplicates: int = 0,
        persistence_failures: int = 0,
    ):
        """Add one run's reconciliation counts to the running totals."""
        with self._lock:
            r = self.reconciliation
            r.invoices_fetched += invoices_fetched
            r.invoices_rejected += invoices_rejected
            r.unmatched_partners += unmatched_partners
            r.unmatched_products += unmatched_products
            r.entries_written += entries_written
            r.duplicates += duplicates
            r.persistence_failures += persistence_failures

    # =========================================================================
    # Timing Metrics
    # =========================================================================

    def record_processing_time(self, stage: str, duration_ms: float):
        with self._lock:
            self.timings.add_sample(duration_ms, stage)

    def get_timing_stats(self, stage: str = None) -> Dict[str, float]:
        """Get timing statistics for a stage."""
        with self._lock:
            return {
                "average_ms": self.timings.get_average(stage),
                "p95_ms": self.timings.get_p95(stage),
                "sample_count": len(self.timings.by_stage.get(stage, []) if stage else self.timings.samples),
            }

    # =========================================================================
    # Summary
    # =========================================================================

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        with self._lock:
            last = self.runs.last_completed_at
            return {
                "runs": {
                    "started": self.runs.started,
                    "completed": self.runs.completed,
                    "failed": self.runs.failed,
                    "in_progress": self.runs.in_progress,
                    "last_completed_at": last.isoformat() if last else None,
                    "by_trigger": {k: dict(v) for k, v in self.runs.by_trigger.items()},
                },
                "reconciliation": {
                    "invoices_fetched": self.reconciliation.invoices_fetched,
                    "invoices_rejected": self.reconciliation.invoices_rejected,
                    "unmatched_partners": self.reconciliation.unmatched_partners,
                    "unmatched_products": self.reconciliation.unmatched_products,
                    "entries_written": self.reconciliation.entries_written,
                    "duplicates": self.reconciliation.duplicates,
                    "persistence_failures": self.reconciliation.persistence_failures,
                },
                "timings": {
                    "overall": {
                        "average_ms": self.timings.get_average(),
                        "p95_ms": self.timings.get_p95(),
                    },
                    "by_stage": {
                        stage: {
                            "average_ms": self.timings.get_average(stage),
                            "p95_ms": self.timings.get_p95(stage),
                        }
                        for stage in self.timings.by_stage.keys()
                    },
                },
            }


# =============================================================================
# Module-level convenience functions
# =============================================================================

def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    return MetricsCollector.instance()


def record_sync_started(trigger_source: str):
    get_metrics().record_sync_started(trigger_source)


def record_sync_completed(trigger_source: str, duration_ms: float = None):
    get_metrics().record_sync_completed(trigger_source, duration_ms)


def record_sync_failed(trigger_source: str):
    get_metrics().record_sync_failed(trigger_source)


def record_processing_time(stage: str, duration_ms: float):
    get_metrics().record_processing_time(stage, duration_ms)
