"""Base sync pass types and utilities."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class SyncStatus(str, Enum):
    """Sync pass status values."""
    STARTED = "STARTED"
    FETCHING_ORDERS = "FETCHING_ORDERS"
    READING_LEDGER = "READING_LEDGER"
    RESOLVING = "RESOLVING"
    ANALYZING_TRACKING = "ANALYZING_TRACKING"
    WRITING_LEDGER = "WRITING_LEDGER"
    COMPLETED = "COMPLETED"
    NO_ORDERS = "NO_ORDERS"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


@dataclass
class SyncResult:
    """Standard sync pass result structure."""
    sync_run_id: str
    status: SyncStatus
    started_at: datetime
    completed_at: Optional[datetime] = None

    range_start: Optional[datetime] = None
    range_end: Optional[datetime] = None

    # Order results
    orders_fetched: int = 0
    existing_rows: int = 0
    scenario_counts: Dict[str, int] = field(default_factory=dict)
    skipped_orders: List[int] = field(default_factory=list)

    # Tracking analysis results
    tracking_analyzed: int = 0
    tracking_fallbacks: int = 0

    # Ledger write results
    mutations_applied: int = 0
    batches_flushed: int = 0

    # Error information
    error_message: Optional[str] = None

    def record_scenario(self, scenario: str) -> None:
        self.scenario_counts[scenario] = self.scenario_counts.get(scenario, 0) + 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "sync_run_id": self.sync_run_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "range": {
                "start": self.range_start.isoformat() if self.range_start else None,
                "end": self.range_end.isoformat() if self.range_end else None,
            },
            "orders": {
                "fetched": self.orders_fetched,
                "existing_rows": self.existing_rows,
                "by_scenario": dict(self.scenario_counts),
                "skipped": list(self.skipped_orders),
            },
            "tracking": {
                "analyzed": self.tracking_analyzed,
                "fallbacks": self.tracking_fallbacks,
            },
            "ledger": {
                "mutations_applied": self.mutations_applied,
                "batches_flushed": self.batches_flushed,
            },
            "error": {
                "message": self.error_message,
            } if self.error_message else None,
        }
