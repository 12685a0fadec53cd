"""Activity definitions module."""

from activities.sync import (
    fetch_orders,
    read_ledger,
    plan_sync,
    analyze_order_tracking,
    build_ledger_mutations,
    apply_ledger_mutations,
    FetchOrdersInput,
    FetchOrdersOutput,
    ReadLedgerInput,
    ReadLedgerOutput,
    PlanSyncInput,
    PlanSyncOutput,
    PlannedOrder,
    AnalyzeTrackingInput,
    AnalyzeTrackingOutput,
    BuildMutationsInput,
    BuildMutationsOutput,
    ApplyMutationsInput,
    ApplyMutationsOutput,
)

SYNC_ACTIVITIES = [
    fetch_orders,
    read_ledger,
    plan_sync,
    analyze_order_tracking,
    build_ledger_mutations,
    apply_ledger_mutations,
]

__all__ = [
    "fetch_orders",
    "read_ledger",
    "plan_sync",
    "analyze_order_tracking",
    "build_ledger_mutations",
    "apply_ledger_mutations",
    "SYNC_ACTIVITIES",
    "FetchOrdersInput",
    "FetchOrdersOutput",
    "ReadLedgerInput",
    "ReadLedgerOutput",
    "PlanSyncInput",
    "PlanSyncOutput",
    "PlannedOrder",
    "AnalyzeTrackingInput",
    "AnalyzeTrackingOutput",
    "BuildMutationsInput",
    "BuildMutationsOutput",
    "ApplyMutationsInput",
    "ApplyMutationsOutput",
]
