"""Ledger reconciliation engine.

Diffs fetched orders against the existing ledger rows and produces the
row mutations needed to bring the ledger to each order's scenario.

Exposes:
- SheetReconciler.plan(orders, rows, now) -> List[OrderPlan]
- SheetReconciler.reconcile(orders, rows, results, now) -> List[LedgerMutation]
- MutationBatcher: accumulates mutations and flushes every ``batch_size``
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from core.config import SyncSettings, TagVocabulary
from core.models.canonical import (
    LEDGER_FIELDS,
    LedgerMutation,
    LedgerRow,
    MutationKind,
    Order,
    Scenario,
    TrackingAnalysisResult,
)
from core.observability.logging import get_logger
from scenarios.alerts import AlertGenerator
from scenarios.resolver import ScenarioResolver
from scenarios.templates import MutationTemplate, template_for


logger = get_logger(__name__)

ORDER_DATE_FORMAT = "%Y-%m-%d %H:%M"
SYNCED_AT_FORMAT = "%Y-%m-%d %H:%M:%S"


# =============================================================================
# Data Structures
# =============================================================================

@dataclass
class OrderPlan:
    """Scenario resolved for one order against the ledger snapshot."""
    order: Order
    row: Optional[LedgerRow]
    scenario: Scenario

    @property
    def needs_tracking(self) -> bool:
        return self.scenario == Scenario.TRACK_PARCEL and bool(self.order.tracking_url)


def index_rows(rows: Iterable[LedgerRow]) -> Dict[int, LedgerRow]:
    """Rows keyed by order id; the first row wins when an id repeats."""
    indexed: Dict[int, LedgerRow] = {}
    for row in rows:
        if row.order_id in indexed:
            logger.warning(
                "Order %d appears on rows %d and %d; using the first",
                row.order_id, indexed[row.order_id].row_index, row.row_index,
            )
            continue
        indexed[row.order_id] = row
    return indexed


def _pick(new_value: Optional[str], row: Optional[LedgerRow], field_name: str) -> str:
    if new_value is not None:
        return new_value
    if row is not None:
        return getattr(row, field_name)
    return ""


# =============================================================================
# Reconciler
# =============================================================================

class SheetReconciler:
    """Turns (orders, ledger rows, classifier verdicts) into row mutations.

    Usage:
        reconciler = SheetReconciler(config.tag_vocabulary, config.sync)
        plans = reconciler.plan(orders, rows, now)
        mutations = reconciler.reconcile(orders, rows, results, now)
    """

    def __init__(
        self,
        vocabulary: Optional[TagVocabulary] = None,
        settings: Optional[SyncSettings] = None,
    ):
        self.settings = settings or SyncSettings()
        self.resolver = ScenarioResolver(vocabulary, self.settings)
        self.alerts = AlertGenerator(self.settings)

    def plan(
        self,
        orders: Iterable[Order],
        rows: Iterable[LedgerRow],
        now: Optional[datetime] = None,
    ) -> List[OrderPlan]:
        """Resolve each distinct order against the ledger snapshot."""
        now = now or datetime.now(timezone.utc)
        indexed = index_rows(rows)
        plans: List[OrderPlan] = []
        seen = set()

        for order in orders:
            if order.id in seen:
                continue
            seen.add(order.id)
            row = indexed.get(order.id)
            plans.append(OrderPlan(order, row, self.resolver.resolve(order, row, now)))
        return plans

    def build_row_values(
        self,
        order: Order,
        row: Optional[LedgerRow],
        template: MutationTemplate,
        alert: Optional[str],
        delivery_status: Optional[str],
        now: datetime,
    ) -> List[str]:
        """Full ledger row (A..M) for ``order``."""
        values = {
            "order_id": str(order.id),
            "current_stage": _pick(template.stage, row, "current_stage"),
            "whatsapp_status": _pick(template.whatsapp_status, row, "whatsapp_status"),
            "delivery_status": _pick(delivery_status, row, "delivery_status"),
            "ai_alert": _pick(alert, row, "ai_alert"),
            "order_name": order.name,
            "order_date": order.created_at.strftime(ORDER_DATE_FORMAT) if order.created_at else "",
            "customer_name": order.customer_name,
            "phone": order.contact_phone,
            "city": order.city,
            "financial_status": order.financial_status,
            "tracking_url": order.tracking_url or "",
            "last_synced": now.strftime(SYNCED_AT_FORMAT),
        }
        return [values[name] for name in LEDGER_FIELDS]

    def mutation_for(
        self,
        plan: OrderPlan,
        result: Optional[TrackingAnalysisResult] = None,
        now: Optional[datetime] = None,
    ) -> Optional[LedgerMutation]:
        """Mutation for one planned order, or None when nothing should change."""
        now = now or datetime.now(timezone.utc)
        template = template_for(plan.scenario)
        if template is None:
            return None

        if plan.row is None and plan.scenario != Scenario.NEW_ORDER:
            return None

        delivery_status = template.delivery_status
        if plan.scenario == Scenario.TRACK_PARCEL:
            if result is None:
                return None
            delivery_status = result.status

        alert, color = self.alerts.alert(plan.scenario, plan.order, result, now)
        values = self.build_row_values(
            plan.order, plan.row, template, alert, delivery_status, now,
        )

        if plan.row is None:
            return LedgerMutation(
                kind=MutationKind.APPEND,
                order_id=plan.order.id,
                values=values,
                color=color,
                scenario=plan.scenario,
            )
        return LedgerMutation(
            kind=MutationKind.UPDATE,
            order_id=plan.order.id,
            row_index=plan.row.row_index,
            values=values,
            color=color,
            scenario=plan.scenario,
        )

    def reconcile(
        self,
        orders: Iterable[Order],
        rows: Iterable[LedgerRow],
        results: Optional[Dict[int, TrackingAnalysisResult]] = None,
        now: Optional[datetime] = None,
    ) -> List[LedgerMutation]:
        """All mutations for a pass; ``results`` maps order id to verdict."""
        now = now or datetime.now(timezone.utc)
        results = results or {}
        mutations: List[LedgerMutation] = []
        for plan in self.plan(orders, rows, now):
            mutation = self.mutation_for(plan, results.get(plan.order.id), now)
            if mutation is not None:
                mutations.append(mutation)
        return mutations


# =============================================================================
# Batching
# =============================================================================

def chunk_mutations(mutations: List[LedgerMutation], size: int) -> List[List[LedgerMutation]]:
    if size <= 0:
        raise ValueError("batch size must be positive")
    return [mutations[i:i + size] for i in range(0, len(mutations), size)]


class MutationBatcher:
    """Accumulates mutations and hands them to ``flush_fn`` in batches.

    Flushes happen one at a time, in order. Anything still pending when the
    pass is aborted is simply dropped.
    """

    def __init__(
        self,
        flush_fn: Callable[[List[LedgerMutation]], Awaitable[int]],
        batch_size: int = 50,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self._flush_fn = flush_fn
        self.batch_size = batch_size
        self._pending: List[LedgerMutation] = []
        self.applied = 0
        self.batches_flushed = 0

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def add(self, mutation: LedgerMutation) -> None:
        self._pending.append(mutation)
        if len(self._pending) >= self.batch_size:
            await self.flush()

    async def flush(self) -> int:
        """Write pending mutations; returns the number applied."""
        if not self._pending:
            return 0
        batch, self._pending = self._pending, []
        applied = await self._flush_fn(batch)
        self.applied += applied
        self.batches_flushed += 1
        logger.info(
            "Flushed batch %d (%d mutations)", self.batches_flushed, len(batch),
        )
        return applied

    def discard(self) -> int:
        dropped = len(self._pending)
        self._pending = []
        return dropped
