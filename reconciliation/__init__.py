"""Ledger reconciliation and the in-process sync pass."""

from reconciliation.engine import (
    MutationBatcher,
    OrderPlan,
    SheetReconciler,
    chunk_mutations,
    index_rows,
)
from reconciliation.sync import OrderSyncService, default_range

__all__ = [
    "SheetReconciler",
    "OrderPlan",
    "MutationBatcher",
    "chunk_mutations",
    "index_rows",
    "OrderSyncService",
    "default_range",
]
