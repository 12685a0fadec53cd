"""Order sync activities.

Temporal activities for one durable sync pass. Payloads cross the
workflow boundary as JSON-ready dicts (``model_dump(mode="json")``) and
are validated back into canonical models inside each activity.
"""

from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache
from typing import Dict, List, Optional

from temporalio import activity

from classifier.analysis import analyze_tracking
from classifier.llm_classifier import LLMClassifier
from connectors.couriers import TrackingFetcher
from connectors.google_sheets import GoogleSheetsLedger
from connectors.shopify import ShopifyClient
from core.config import AppConfiguration, load_config
from core.models.canonical import LedgerMutation, LedgerRow, Order, TrackingAnalysisResult
from extraction.normalizer import ContentNormalizer
from reconciliation.engine import SheetReconciler


@lru_cache(maxsize=1)
def get_config() -> AppConfiguration:
    return load_config()


def _parse_time(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _orders(data: List[dict]) -> List[Order]:
    return [Order.model_validate(o) for o in data]


def _rows(data: List[dict]) -> List[LedgerRow]:
    return [LedgerRow.model_validate(r) for r in data]


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class FetchOrdersInput:
    """Creation-date range as ISO-8601 strings."""
    sync_run_id: str
    start: str
    end: str


@dataclass
class FetchOrdersOutput:
    orders: List[dict]


@dataclass
class ReadLedgerInput:
    sync_run_id: str


@dataclass
class ReadLedgerOutput:
    rows: List[dict]


@dataclass
class PlanSyncInput:
    """Orders and rows as dicts; ``now`` is the workflow time (ISO-8601)."""
    orders: List[dict]
    rows: List[dict]
    now: str


@dataclass
class PlannedOrder:
    order_id: int
    order_name: str
    scenario: str
    row_index: Optional[int] = None
    tracking_url: Optional[str] = None
    needs_tracking: bool = False


@dataclass
class PlanSyncOutput:
    plans: List[PlannedOrder]
    batch_size: int = 50


@dataclass
class AnalyzeTrackingInput:
    order_id: int
    tracking_url: str


@dataclass
class AnalyzeTrackingOutput:
    order_id: int
    status: str
    color: str
    error_message: Optional[str] = None


@dataclass
class BuildMutationsInput:
    """``results`` maps str(order_id) to a serialized TrackingAnalysisResult."""
    orders: List[dict]
    rows: List[dict]
    now: str
    results: Dict[str, dict] = field(default_factory=dict)


@dataclass
class BuildMutationsOutput:
    mutations: List[dict]


@dataclass
class ApplyMutationsInput:
    sync_run_id: str
    batch_number: int
    mutations: List[dict]


@dataclass
class ApplyMutationsOutput:
    applied: int


# =============================================================================
# Activity Definitions
# =============================================================================

@activity.defn
async def fetch_orders(input: FetchOrdersInput) -> FetchOrdersOutput:
    """Fetch all orders created in the range from Shopify."""
    activity.logger.info(f"[{input.sync_run_id}] Fetching orders {input.start} .. {input.end}")

    client = ShopifyClient.from_config(get_config())
    try:
        orders = await client.fetch_orders(_parse_time(input.start), _parse_time(input.end))
    finally:
        await client.close()

    activity.logger.info(f"[{input.sync_run_id}] Fetched {len(orders)} orders")
    return FetchOrdersOutput(orders=[o.model_dump(mode="json") for o in orders])


@activity.defn
async def read_ledger(input: ReadLedgerInput) -> ReadLedgerOutput:
    """Read the ledger snapshot, writing the header row first if missing."""
    ledger = GoogleSheetsLedger.from_config(get_config())
    try:
        await ledger.ensure_header()
        rows = await ledger.read_rows()
    finally:
        await ledger.close()

    activity.logger.info(f"[{input.sync_run_id}] Read {len(rows)} ledger rows")
    return ReadLedgerOutput(rows=[r.model_dump(mode="json") for r in rows])


@activity.defn
async def plan_sync(input: PlanSyncInput) -> PlanSyncOutput:
    """Resolve every order's scenario against the ledger snapshot."""
    config = get_config()
    reconciler = SheetReconciler(config.tag_vocabulary, config.sync)
    plans = reconciler.plan(_orders(input.orders), _rows(input.rows), _parse_time(input.now))

    return PlanSyncOutput(plans=[
        PlannedOrder(
            order_id=p.order.id,
            order_name=p.order.name,
            scenario=p.scenario.value,
            row_index=p.row.row_index if p.row else None,
            tracking_url=p.order.tracking_url,
            needs_tracking=p.needs_tracking,
        )
        for p in plans
    ], batch_size=config.sync.batch_size)


@activity.defn
async def analyze_order_tracking(input: AnalyzeTrackingInput) -> AnalyzeTrackingOutput:
    """Fetch, normalize and classify one order's tracking page.

    Raises TrackingFetchError when the page cannot be fetched so the
    activity is retried; classifier failures resolve to a fallback verdict.
    """
    config = get_config()
    activity.logger.info(f"Analyzing tracking for order {input.order_id}")

    fetcher = TrackingFetcher(config.courier_apis, config.sync.tracking_fetch_timeout_seconds)
    classifier = LLMClassifier(config.classifier)
    try:
        result = await analyze_tracking(
            input.tracking_url,
            fetcher,
            classifier,
            ContentNormalizer(config.sync.output_ceiling),
            timeout=config.classifier.timeout_seconds,
        )
    finally:
        await fetcher.close()
        await classifier.close()

    activity.logger.info(f"Order {input.order_id}: {result.status} ({result.color.value})")
    return AnalyzeTrackingOutput(
        order_id=input.order_id,
        status=result.status,
        color=result.color.value,
        error_message=result.error_message,
    )


@activity.defn
async def build_ledger_mutations(input: BuildMutationsInput) -> BuildMutationsOutput:
    """Build the full-row mutations for the pass."""
    config = get_config()
    reconciler = SheetReconciler(config.tag_vocabulary, config.sync)
    results = {
        int(order_id): TrackingAnalysisResult.model_validate(data)
        for order_id, data in input.results.items()
    }

    mutations = reconciler.reconcile(
        _orders(input.orders), _rows(input.rows), results, _parse_time(input.now),
    )
    activity.logger.info(f"Built {len(mutations)} ledger mutations")
    return BuildMutationsOutput(mutations=[m.model_dump(mode="json") for m in mutations])


@activity.defn
async def apply_ledger_mutations(input: ApplyMutationsInput) -> ApplyMutationsOutput:
    """Apply one batch of mutations in a single ledger write."""
    mutations = [LedgerMutation.model_validate(m) for m in input.mutations]

    ledger = GoogleSheetsLedger.from_config(get_config())
    try:
        applied = await ledger.apply(mutations)
    finally:
        await ledger.close()

    activity.logger.info(
        f"[{input.sync_run_id}] Batch {input.batch_number}: applied {applied} mutations"
    )
    return ApplyMutationsOutput(applied=applied)
