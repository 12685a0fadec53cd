"""Order Sync Workflow.

Durable version of the sync pass:
FETCH_ORDERS → READ_LEDGER → PLAN → ANALYZE_TRACKING (per order) →
BUILD_MUTATIONS → APPLY (one batch at a time)

Tracking analysis is retried per order; an order whose analysis still
fails is skipped for this pass and picked up again by the next one.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, List, Optional

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError

with workflow.unsafe.imports_passed_through():
    from activities.sync import (
        fetch_orders,
        read_ledger,
        plan_sync,
        analyze_order_tracking,
        build_ledger_mutations,
        apply_ledger_mutations,
        FetchOrdersInput,
        ReadLedgerInput,
        PlanSyncInput,
        AnalyzeTrackingInput,
        BuildMutationsInput,
        ApplyMutationsInput,
    )


TASK_QUEUE = "order-sync"
DEFAULT_RANGE_DAYS = 30


@dataclass
class OrderSyncInput:
    """Input for the order sync workflow.

    Attributes:
        start: Range start (ISO-8601); default is ``range_days`` before now
        end: Range end (ISO-8601); default is now
        range_days: Default range length in days
        batch_size: Mutations per ledger write; default is the configured
            sync batch size
    """
    start: Optional[str] = None
    end: Optional[str] = None
    range_days: int = DEFAULT_RANGE_DAYS
    batch_size: Optional[int] = None


def resolve_batch_size(requested: Optional[int], configured: int) -> int:
    """Batch size for ledger writes: an explicit request wins over config."""
    return max(requested or configured, 1)


@workflow.defn
class OrderSyncWorkflow:
    """Workflow running one order sync pass."""

    def __init__(self):
        self.stage = "STARTED"
        self.orders_total = 0
        self.orders_analyzed = 0

    @workflow.query
    def progress(self) -> dict:
        return {
            "stage": self.stage,
            "orders_total": self.orders_total,
            "orders_analyzed": self.orders_analyzed,
        }

    @workflow.run
    async def run(self, input: OrderSyncInput) -> dict:
        sync_run_id = workflow.info().workflow_id
        now = workflow.now()
        end = input.end or now.isoformat()
        start = input.start or (now - timedelta(days=input.range_days)).isoformat()

        workflow.logger.info(f"Starting order sync {sync_run_id}: {start} .. {end}")

        # Store calls: retried, but auth failures will not self-heal
        store_options = {
            "start_to_close_timeout": timedelta(minutes=5),
            "retry_policy": RetryPolicy(
                maximum_attempts=5,
                initial_interval=timedelta(seconds=2),
                maximum_interval=timedelta(minutes=1),
                backoff_coefficient=2.0,
                non_retryable_error_types=[
                    "ShopifyAuthenticationError",
                    "SheetsAuthenticationError",
                    "ConfigurationError",
                ],
            ),
        }
        # Pure computation on payloads
        local_options = {
            "start_to_close_timeout": timedelta(minutes=1),
            "retry_policy": RetryPolicy(maximum_attempts=3),
        }
        tracking_options = {
            "start_to_close_timeout": timedelta(minutes=3),
            "retry_policy": RetryPolicy(
                maximum_attempts=3,
                initial_interval=timedelta(seconds=5),
                backoff_coefficient=2.0,
            ),
        }

        # =================================================================
        # Stage: FETCH_ORDERS
        # =================================================================
        self.stage = "FETCHING_ORDERS"
        fetched = await workflow.execute_activity(
            fetch_orders,
            FetchOrdersInput(sync_run_id=sync_run_id, start=start, end=end),
            **store_options,
        )
        orders = fetched.orders
        self.orders_total = len(orders)

        if not orders:
            workflow.logger.info("No orders in range")
            self.stage = "NO_ORDERS"
            return self._result(sync_run_id, start, end, orders=0)

        # =================================================================
        # Stage: READ_LEDGER
        # =================================================================
        self.stage = "READING_LEDGER"
        ledger = await workflow.execute_activity(
            read_ledger,
            ReadLedgerInput(sync_run_id=sync_run_id),
            **store_options,
        )

        # =================================================================
        # Stage: PLAN
        # =================================================================
        self.stage = "RESOLVING"
        planned = await workflow.execute_activity(
            plan_sync,
            PlanSyncInput(orders=orders, rows=ledger.rows, now=now.isoformat()),
            **local_options,
        )

        scenario_counts: Dict[str, int] = {}
        for plan in planned.plans:
            scenario_counts[plan.scenario] = scenario_counts.get(plan.scenario, 0) + 1

        # =================================================================
        # Stage: ANALYZE_TRACKING (per order, skipped on final failure)
        # =================================================================
        self.stage = "ANALYZING_TRACKING"
        results: Dict[str, dict] = {}
        skipped: List[int] = []
        fallbacks = 0

        for plan in planned.plans:
            if not plan.needs_tracking:
                continue
            try:
                verdict = await workflow.execute_activity(
                    analyze_order_tracking,
                    AnalyzeTrackingInput(order_id=plan.order_id, tracking_url=plan.tracking_url),
                    **tracking_options,
                )
            except ActivityError as e:
                workflow.logger.warning(
                    f"Skipping order {plan.order_name} ({plan.order_id}): {e.cause or e}"
                )
                skipped.append(plan.order_id)
                continue

            self.orders_analyzed += 1
            if verdict.error_message:
                fallbacks += 1
            results[str(plan.order_id)] = {
                "status": verdict.status,
                "color": verdict.color,
                "error_message": verdict.error_message,
            }

        # =================================================================
        # Stage: BUILD_MUTATIONS
        # =================================================================
        built = await workflow.execute_activity(
            build_ledger_mutations,
            BuildMutationsInput(
                orders=orders, rows=ledger.rows, now=now.isoformat(), results=results,
            ),
            **local_options,
        )

        # =================================================================
        # Stage: APPLY (serialized batches)
        # =================================================================
        self.stage = "WRITING_LEDGER"
        mutations = built.mutations
        batch_size = resolve_batch_size(input.batch_size, planned.batch_size)
        applied = 0
        batches = 0
        for offset in range(0, len(mutations), batch_size):
            batches += 1
            output = await workflow.execute_activity(
                apply_ledger_mutations,
                ApplyMutationsInput(
                    sync_run_id=sync_run_id,
                    batch_number=batches,
                    mutations=mutations[offset:offset + batch_size],
                ),
                **store_options,
            )
            applied += output.applied

        self.stage = "COMPLETED"
        workflow.logger.info(
            f"Order sync {sync_run_id} completed: {len(orders)} orders, "
            f"{applied} mutations in {batches} batches, {len(skipped)} skipped"
        )
        return self._result(
            sync_run_id, start, end,
            orders=len(orders),
            existing_rows=len(ledger.rows),
            scenario_counts=scenario_counts,
            skipped=skipped,
            analyzed=self.orders_analyzed,
            fallbacks=fallbacks,
            applied=applied,
            batches=batches,
        )

    def _result(
        self,
        sync_run_id: str,
        start: str,
        end: str,
        orders: int = 0,
        existing_rows: int = 0,
        scenario_counts: Optional[Dict[str, int]] = None,
        skipped: Optional[List[int]] = None,
        analyzed: int = 0,
        fallbacks: int = 0,
        applied: int = 0,
        batches: int = 0,
    ) -> dict:
        return {
            "sync_run_id": sync_run_id,
            "status": self.stage,
            "range": {"start": start, "end": end},
            "orders": {
                "fetched": orders,
                "existing_rows": existing_rows,
                "by_scenario": scenario_counts or {},
                "skipped": skipped or [],
            },
            "tracking": {"analyzed": analyzed, "fallbacks": fallbacks},
            "ledger": {"mutations_applied": applied, "batches_flushed": batches},
        }
