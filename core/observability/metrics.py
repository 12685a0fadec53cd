"""
Metrics Collection for the Order Sync Pipeline

Collects and exposes metrics for:
- Sync pass lifecycle (started, completed, failed)
- Scenario distribution and ledger mutations
- Tracking classification (calls, fallbacks, timings)

Metrics live in memory for the life of the process.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Dict, List, Optional, Any
import statistics


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class SyncMetrics:
    """Metrics for sync passes."""
    started: int = 0
    completed: int = 0
    failed: int = 0
    in_progress: int = 0


@dataclass
class OrderMetrics:
    """Per-order outcomes across sync passes."""
    processed: int = 0
    skipped: int = 0
    mutations_applied: int = 0
    by_scenario: Dict[str, int] = field(default_factory=lambda: defaultdict(int))


@dataclass
class ClassifierMetrics:
    """Tracking classifier calls."""
    calls: int = 0
    fallbacks: int = 0
    by_status: Dict[str, int] = field(default_factory=lambda: defaultdict(int))


@dataclass
class TimingMetrics:
    """Processing time metrics."""
    # Raw timing samples (keep last N for percentile calculations)
    samples: List[float] = field(default_factory=list)
    max_samples: int = 1000

    by_stage: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))

    def add_sample(self, duration_ms: float, stage: str = None):
        """Add a timing sample."""
        self.samples.append(duration_ms)
        if len(self.samples) > self.max_samples:
            self.samples = self.samples[-self.max_samples:]

        if stage:
            self.by_stage[stage].append(duration_ms)
            if len(self.by_stage[stage]) > self.max_samples:
                self.by_stage[stage] = self.by_stage[stage][-self.max_samples:]

    def get_average(self, stage: str = None) -> float:
        """Get average processing time."""
        samples = self.by_stage.get(stage, []) if stage else self.samples
        return statistics.mean(samples) if samples else 0.0

    def get_p95(self, stage: str = None) -> float:
        """Get 95th percentile processing time."""
        samples = self.by_stage.get(stage, []) if stage else self.samples
        if not samples:
            return 0.0
        sorted_samples = sorted(samples)
        idx = int(len(sorted_samples) * 0.95)
        return sorted_samples[min(idx, len(sorted_samples) - 1)]


# =============================================================================
# Metrics Collector (Singleton)
# =============================================================================

class MetricsCollector:
    """
    Thread-safe metrics collector for the order sync pipeline.

    Usage:
        metrics = MetricsCollector.instance()
        metrics.record_sync_started("sync-001")
        metrics.record_scenario("TrackParcel")
        metrics.record_classification("Delivered", duration_ms=850)
    """

    _instance: Optional["MetricsCollector"] = None
    _lock = Lock()

    def __init__(self):
        self.syncs = SyncMetrics()
        self.orders = OrderMetrics()
        self.classifier = ClassifierMetrics()
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

    # =========================================================================
    # Sync Metrics
    # =========================================================================

    def record_sync_started(self, sync_run_id: str):
        with self._lock:
            self.syncs.started += 1
            self.syncs.in_progress += 1

    def record_sync_completed(self, sync_run_id: str, duration_ms: float = None):
        with self._lock:
            self.syncs.completed += 1
            self.syncs.in_progress = max(0, self.syncs.in_progress - 1)
            if duration_ms:
                self.timings.add_sample(duration_ms, "sync")

    def record_sync_failed(self, sync_run_id: str, error: str = None):
        with self._lock:
            self.syncs.failed += 1
            self.syncs.in_progress = max(0, self.syncs.in_progress - 1)

    # =========================================================================
    # Order Metrics
    # =========================================================================

    def record_scenario(self, scenario: str):
        """Record one order resolved to a scenario."""
        with self._lock:
            self.orders.processed += 1
            self.orders.by_scenario[scenario] += 1

    def record_order_skipped(self, order_id: int, reason: str = None):
        with self._lock:
            self.orders.skipped += 1

    def record_mutations_applied(self, count: int):
        with self._lock:
            self.orders.mutations_applied += count

    # =========================================================================
    # Classifier Metrics
    # =========================================================================

    def record_classification(self, status: str, duration_ms: float = None, fallback: bool = False):
        """Record one classifier verdict."""
        with self._lock:
            self.classifier.calls += 1
            self.classifier.by_status[status] += 1
            if fallback:
                self.classifier.fallbacks += 1
            if duration_ms:
                self.timings.add_sample(duration_ms, "classifier")

    # =========================================================================
    # Timing Metrics
    # =========================================================================

    def record_processing_time(self, stage: str, duration_ms: float):
        """Record a processing time sample."""
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
            return {
                "syncs": {
                    "started": self.syncs.started,
                    "completed": self.syncs.completed,
                    "failed": self.syncs.failed,
                    "in_progress": self.syncs.in_progress,
                },
                "orders": {
                    "processed": self.orders.processed,
                    "skipped": self.orders.skipped,
                    "mutations_applied": self.orders.mutations_applied,
                    "by_scenario": dict(self.orders.by_scenario),
                },
                "classifier": {
                    "calls": self.classifier.calls,
                    "fallbacks": self.classifier.fallbacks,
                    "by_status": dict(self.classifier.by_status),
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


def record_processing_time(stage: str, duration_ms: float):
    """Record a processing time sample."""
    get_metrics().record_processing_time(stage, duration_ms)
