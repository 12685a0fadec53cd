"""In-process order sync pass.

One pass:
1. fetch orders created in the range (fatal on failure)
2. read the ledger snapshot (fatal on failure)
3. resolve every order's scenario against the snapshot
4. analyze tracking for shipped orders (per-order failures are skipped)
5. build mutations and flush them in batches of ``batch_size``
6. report progress after each order and return a SyncResult

The Temporal workflow in workflows/order_sync_workflow.py runs the same
steps as activities.
"""

import asyncio
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from classifier.analysis import analyze_tracking
from classifier.base import Classifier
from connectors.base import LedgerStore, OrderSource
from connectors.couriers import TrackingFetchError, TrackingFetcher
from core.config import AppConfiguration, SyncSettings, TagVocabulary
from core.models.canonical import Scenario, TrackingAnalysisResult
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import get_metrics
from core.workflow.base import SyncResult, SyncStatus
from extraction.normalizer import ContentNormalizer
from reconciliation.engine import MutationBatcher, OrderPlan, SheetReconciler


logger = get_logger(__name__)

ProgressCallback = Callable[[float], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def default_range(days: int, now: Optional[datetime] = None):
    """(start, end) covering the last ``days`` days."""
    end = now or _utcnow()
    return end - timedelta(days=days), end


class OrderSyncService:
    """Runs one sync pass between the order source and the ledger.

    Usage:
        service = OrderSyncService.from_config(config)
        result = await service.sync_orders(start, end)
        await service.close()
    """

    def __init__(
        self,
        order_source: OrderSource,
        ledger: LedgerStore,
        classifier: Classifier,
        fetcher,
        settings: Optional[SyncSettings] = None,
        vocabulary: Optional[TagVocabulary] = None,
        normalizer: Optional[ContentNormalizer] = None,
        classifier_timeout: float = 60.0,
        on_progress: Optional[ProgressCallback] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.order_source = order_source
        self.ledger = ledger
        self.classifier = classifier
        self.fetcher = fetcher
        self.settings = settings or SyncSettings()
        self.reconciler = SheetReconciler(vocabulary, self.settings)
        self.normalizer = normalizer or ContentNormalizer(self.settings.output_ceiling)
        self.classifier_timeout = classifier_timeout
        self.on_progress = on_progress
        self.clock = clock

    @classmethod
    def from_config(
        cls,
        config: AppConfiguration,
        on_progress: Optional[ProgressCallback] = None,
    ) -> "OrderSyncService":
        from classifier.llm_classifier import LLMClassifier
        from connectors.google_sheets import GoogleSheetsLedger
        from connectors.shopify import ShopifyClient

        return cls(
            order_source=ShopifyClient.from_config(config),
            ledger=GoogleSheetsLedger.from_config(config),
            classifier=LLMClassifier(config.classifier),
            fetcher=TrackingFetcher(
                config.courier_apis, config.sync.tracking_fetch_timeout_seconds,
            ),
            settings=config.sync,
            vocabulary=config.tag_vocabulary,
            classifier_timeout=config.classifier.timeout_seconds,
            on_progress=on_progress,
        )

    async def close(self) -> None:
        for resource in (self.order_source, self.ledger, self.fetcher, self.classifier):
            close = getattr(resource, "close", None)
            if close is not None:
                await close()

    def _report_progress(self, done: int, total: int) -> None:
        if self.on_progress is None or total == 0:
            return
        self.on_progress(round(done * 100.0 / total, 1))

    async def _analyze(self, plan: OrderPlan, result: SyncResult) -> Optional[TrackingAnalysisResult]:
        """Classifier verdict for a TrackParcel order, None if it is skipped."""
        metrics = get_metrics()
        tracking_url = plan.order.tracking_url
        if not tracking_url:
            logger.info("Shipped order has no tracking URL; leaving row unchanged")
            return None

        try:
            verdict = await analyze_tracking(
                tracking_url,
                self.fetcher,
                self.classifier,
                self.normalizer,
                timeout=self.classifier_timeout,
            )
        except TrackingFetchError as e:
            logger.warning("Skipping order, tracking fetch failed: %s", e)
            result.skipped_orders.append(plan.order.id)
            metrics.record_order_skipped(plan.order.id, "tracking_fetch")
            return None
        except Exception as e:
            logger.exception("Skipping order, tracking analysis failed: %s", e)
            result.skipped_orders.append(plan.order.id)
            metrics.record_order_skipped(plan.order.id, type(e).__name__)
            return None

        result.tracking_analyzed += 1
        if verdict.is_fallback:
            result.tracking_fallbacks += 1
        logger.info(
            "Tracking verdict: %s (%s)", verdict.status, verdict.color.value,
            extra_fields={"fallback": verdict.is_fallback},
        )
        return verdict

    async def sync_orders(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> SyncResult:
        """Run one pass over orders created in [start, end].

        Raises:
            Any error from the order source or the ledger store; the pass is
            marked FAILED before the error propagates.
        """
        now = self.clock()
        if start is None or end is None:
            default_start, default_end = default_range(self.settings.default_range_days, now)
            start = start or default_start
            end = end or default_end

        sync_run_id = f"sync-{uuid.uuid4().hex[:12]}"
        metrics = get_metrics()
        result = SyncResult(
            sync_run_id=sync_run_id,
            status=SyncStatus.STARTED,
            started_at=now,
            range_start=start,
            range_end=end,
        )
        started = time.perf_counter()
        batcher = MutationBatcher(self.ledger.apply, self.settings.batch_size)

        with with_correlation(sync_run_id=sync_run_id):
            metrics.record_sync_started(sync_run_id)
            logger.info("Sync started for %s .. %s", start.isoformat(), end.isoformat())

            try:
                result.status = SyncStatus.FETCHING_ORDERS
                orders = await self.order_source.fetch_orders(start, end)
                result.orders_fetched = len(orders)

                if not orders:
                    logger.info("No orders in range")
                    result.status = SyncStatus.NO_ORDERS
                    result.completed_at = self.clock()
                    metrics.record_sync_completed(sync_run_id, (time.perf_counter() - started) * 1000)
                    return result

                result.status = SyncStatus.READING_LEDGER
                rows = await self.ledger.read_rows()
                result.existing_rows = len(rows)

                result.status = SyncStatus.RESOLVING
                plans = self.reconciler.plan(orders, rows, now)

                result.status = SyncStatus.ANALYZING_TRACKING
                for done, plan in enumerate(plans, start=1):
                    with with_correlation(
                        order_id=plan.order.id,
                        order_name=plan.order.name,
                        scenario=plan.scenario.value,
                    ):
                        result.record_scenario(plan.scenario.value)
                        metrics.record_scenario(plan.scenario.value)

                        verdict = None
                        if plan.scenario == Scenario.TRACK_PARCEL:
                            verdict = await self._analyze(plan, result)

                        mutation = self.reconciler.mutation_for(plan, verdict, now)
                        if mutation is not None:
                            await batcher.add(mutation)

                    self._report_progress(done, len(plans))

                result.status = SyncStatus.WRITING_LEDGER
                await batcher.flush()

            except asyncio.CancelledError:
                dropped = batcher.discard()
                result.status = SyncStatus.CANCELLED
                result.completed_at = self.clock()
                logger.warning("Sync cancelled; discarded %d unflushed mutations", dropped)
                raise

            except Exception as e:
                batcher.discard()
                result.status = SyncStatus.FAILED
                result.error_message = str(e)
                result.completed_at = self.clock()
                result.mutations_applied = batcher.applied
                result.batches_flushed = batcher.batches_flushed
                metrics.record_sync_failed(sync_run_id, str(e))
                logger.exception("Sync failed: %s", e)
                raise

            result.mutations_applied = batcher.applied
            result.batches_flushed = batcher.batches_flushed
            result.status = SyncStatus.COMPLETED
            result.completed_at = self.clock()

            metrics.record_mutations_applied(batcher.applied)
            metrics.record_sync_completed(sync_run_id, (time.perf_counter() - started) * 1000)
            logger.info(
                "Sync completed: %d orders, %d mutations in %d batches, %d skipped",
                result.orders_fetched, result.mutations_applied,
                result.batches_flushed, len(result.skipped_orders),
                extra_fields={"by_scenario": dict(result.scenario_counts)},
            )
            return result
