"""
Sync Pass Tests

Runs OrderSyncService against in-memory stores to validate:
1. Batching of ledger writes
2. Tracking analysis for shipped orders (including per-order skips)
3. Fatal errors, cancellation and progress reporting
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from connectors.base import LedgerStore, OrderSource
from connectors.couriers import TrackingFetchError
from core.config import SyncSettings
from core.models.canonical import (
    LEDGER_FIELDS,
    LedgerRow,
    MutationKind,
    Order,
    RowColor,
    TrackingAnalysisResult,
)
from core.workflow.base import SyncStatus


NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
TRACKING_JSON = '{"status":"Delivered","city":"Lahore","remarks":"Received by consignee"}'


def make_order(order_id, shipped=False, hours_old=1.0):
    data = {
        "id": order_id,
        "name": f"#{order_id}",
        "created_at": (NOW - timedelta(hours=hours_old)).isoformat(),
    }
    if shipped:
        data["fulfillment_status"] = "fulfilled"
        data["fulfillments"] = [{"id": order_id, "tracking_url": f"https://courier.example/track/CN{order_id}00"}]
    return Order.model_validate(data)


class FakeOrderSource(OrderSource):
    def __init__(self, orders=None, error=None):
        self.orders = orders or []
        self.error = error
        self.calls = []

    async def fetch_orders(self, start, end):
        self.calls.append((start, end))
        if self.error:
            raise self.error
        return list(self.orders)


class FakeLedger(LedgerStore):
    def __init__(self, rows=None, fail_on_apply=None):
        self.rows = rows or []
        self.fail_on_apply = fail_on_apply
        self.batches = []
        self.read_count = 0

    async def read_rows(self):
        self.read_count += 1
        return list(self.rows)

    async def apply(self, mutations):
        if self.fail_on_apply:
            raise self.fail_on_apply
        self.batches.append(list(mutations))
        return len(mutations)


def make_service(source, ledger, fetcher=None, classifier=None, progress=None, batch_size=50):
    from reconciliation.sync import OrderSyncService

    if fetcher is None:
        fetcher = MagicMock()
        fetcher.fetch = AsyncMock(return_value=TRACKING_JSON)
    if classifier is None:
        classifier = MagicMock()
        classifier.classify = AsyncMock(
            return_value=TrackingAnalysisResult(status="Delivered", color=RowColor.GREEN)
        )
    return OrderSyncService(
        order_source=source,
        ledger=ledger,
        classifier=classifier,
        fetcher=fetcher,
        settings=SyncSettings(batch_size=batch_size),
        on_progress=progress,
        clock=lambda: NOW,
    )


class TestSyncPass:
    """Test a full pass end to end."""

    def test_new_orders_flushed_in_batches(self):
        source = FakeOrderSource([make_order(i) for i in range(1, 121)])
        ledger = FakeLedger()
        progress = []

        service = make_service(source, ledger, progress=progress.append)
        result = asyncio.run(service.sync_orders())

        assert result.status == SyncStatus.COMPLETED
        assert [len(b) for b in ledger.batches] == [50, 50, 20]
        assert all(m.kind == MutationKind.APPEND for b in ledger.batches for m in b)
        assert result.mutations_applied == 120
        assert result.batches_flushed == 3
        assert result.scenario_counts == {"NewOrder": 120}
        assert len(progress) == 120
        assert progress[-1] == 100.0
        assert progress == sorted(progress)

    def test_default_range(self):
        source = FakeOrderSource([])
        service = make_service(source, FakeLedger())
        asyncio.run(service.sync_orders())

        start, end = source.calls[0]
        assert end == NOW
        assert end - start == timedelta(days=30)

    def test_no_orders(self):
        ledger = FakeLedger()
        result = asyncio.run(make_service(FakeOrderSource([]), ledger).sync_orders(NOW, NOW))

        assert result.status == SyncStatus.NO_ORDERS
        assert ledger.read_count == 0
        assert ledger.batches == []

    def test_shipped_order_is_classified(self):
        order = make_order(7, shipped=True)
        ledger = FakeLedger([LedgerRow(row_index=2, order_id=7)])
        classifier = MagicMock()
        classifier.classify = AsyncMock(
            return_value=TrackingAnalysisResult(status="Delivered", color=RowColor.GREEN)
        )

        result = asyncio.run(
            make_service(FakeOrderSource([order]), ledger, classifier=classifier).sync_orders()
        )

        mutation = ledger.batches[0][0]
        assert mutation.kind == MutationKind.UPDATE
        assert mutation.row_index == 2
        assert mutation.values[LEDGER_FIELDS.index("delivery_status")] == "Delivered"
        assert result.tracking_analyzed == 1
        assert "[STATUS] status: Delivered" in classifier.classify.await_args.args[0]

    def test_tracking_fetch_error_skips_order(self):
        orders = [make_order(7, shipped=True), make_order(8, shipped=True)]
        ledger = FakeLedger([LedgerRow(row_index=2, order_id=7), LedgerRow(row_index=3, order_id=8)])
        fetcher = MagicMock()
        fetcher.fetch = AsyncMock(side_effect=[TrackingFetchError("404", "x", 404), TRACKING_JSON])

        result = asyncio.run(make_service(FakeOrderSource(orders), ledger, fetcher=fetcher).sync_orders())

        assert result.status == SyncStatus.COMPLETED
        assert result.skipped_orders == [7]
        assert [m.order_id for m in ledger.batches[0]] == [8]

    def test_classifier_failure_writes_fallback(self):
        order = make_order(7, shipped=True)
        ledger = FakeLedger([LedgerRow(row_index=2, order_id=7)])
        classifier = MagicMock()
        classifier.classify = AsyncMock(side_effect=RuntimeError("model unavailable"))

        result = asyncio.run(
            make_service(FakeOrderSource([order]), ledger, classifier=classifier).sync_orders()
        )

        mutation = ledger.batches[0][0]
        assert mutation.values[LEDGER_FIELDS.index("delivery_status")] == "Analysis Failed"
        assert mutation.color == RowColor.RED
        assert result.tracking_fallbacks == 1

    def test_already_delivered_untouched(self):
        order = make_order(7, shipped=True)
        ledger = FakeLedger([LedgerRow(row_index=2, order_id=7, delivery_status="Delivered")])
        fetcher = MagicMock()
        fetcher.fetch = AsyncMock()

        result = asyncio.run(make_service(FakeOrderSource([order]), ledger, fetcher=fetcher).sync_orders())

        assert ledger.batches == []
        assert result.scenario_counts == {"AlreadyDelivered": 1}
        fetcher.fetch.assert_not_awaited()


class TestSyncFailures:
    """Test fatal errors and cancellation."""

    def test_order_source_failure_is_fatal(self):
        from core.observability.metrics import get_metrics

        failed_before = get_metrics().get_summary()["syncs"]["failed"]
        source = FakeOrderSource(error=RuntimeError("shopify down"))

        with pytest.raises(RuntimeError):
            asyncio.run(make_service(source, FakeLedger()).sync_orders())

        assert get_metrics().get_summary()["syncs"]["failed"] == failed_before + 1

    def test_ledger_write_failure_is_fatal(self):
        ledger = FakeLedger(fail_on_apply=RuntimeError("quota exceeded"))
        source = FakeOrderSource([make_order(1)])

        with pytest.raises(RuntimeError, match="quota exceeded"):
            asyncio.run(make_service(source, ledger).sync_orders())

    def test_cancellation_discards_pending(self):
        orders = [make_order(1), make_order(7, shipped=True)]
        ledger = FakeLedger([LedgerRow(row_index=2, order_id=7)])
        fetcher = MagicMock()
        fetcher.fetch = AsyncMock(side_effect=asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            asyncio.run(make_service(FakeOrderSource(orders), ledger, fetcher=fetcher).sync_orders())

        assert ledger.batches == []


if __name__ == "__main__":
    pytest.main([__file__, "-v", "-s"])
