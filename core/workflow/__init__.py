"""Core workflow module - sync pass status and result types.

Temporal workflows live in the main workflows/ folder; the in-process
pass lives in reconciliation/sync.py. Both report through these types.
"""

from core.workflow.base import (
    SyncStatus,
    SyncResult,
)

__all__ = [
    "SyncStatus",
    "SyncResult",
]
