"""
Temporal Activity Tests

Runs the order sync activities inside temporalio's ActivityEnvironment
with configuration and stores patched out. No Temporal server needed.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from temporalio.testing import ActivityEnvironment

from core.config import AppConfiguration, GoogleCredentials
from core.models.canonical import LedgerRow, MutationKind, Order, RowColor, TrackingAnalysisResult


NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def config():
    return AppConfiguration(
        shopify_shop_domain="demo.myshopify.com",
        shopify_access_token="shpat_x",
        google_credentials=GoogleCredentials(private_key="key", client_email="sync@example.com"),
        spreadsheet_id="sheet-123",
    )


def order_dict(order_id, shipped=False):
    data = {
        "id": order_id,
        "name": f"#{order_id}",
        "created_at": (NOW - timedelta(hours=2)).isoformat(),
    }
    if shipped:
        data["fulfillment_status"] = "fulfilled"
        data["fulfillments"] = [{"tracking_url": f"https://courier.example/track/CN{order_id}00"}]
    return Order.model_validate(data).model_dump(mode="json")


def run_activity(fn, arg):
    async def run():
        return await ActivityEnvironment().run(fn, arg)
    return asyncio.run(run())


def test_activity_imports():
    """Verify the worker's activity list is complete."""
    from activities import SYNC_ACTIVITIES
    assert len(SYNC_ACTIVITIES) == 6


class TestPlanAndBuild:
    """Test the pure planning activities."""

    def test_plan_sync(self, config):
        from activities.sync import PlanSyncInput, plan_sync

        rows = [LedgerRow(row_index=4, order_id=7).model_dump(mode="json")]
        with patch("activities.sync.get_config", return_value=config):
            output = run_activity(plan_sync, PlanSyncInput(
                orders=[order_dict(1), order_dict(7, shipped=True)],
                rows=rows,
                now=NOW.isoformat(),
            ))

        first, second = output.plans
        assert (first.order_id, first.scenario, first.row_index) == (1, "NewOrder", None)
        assert (second.scenario, second.row_index) == ("TrackParcel", 4)
        assert second.needs_tracking
        assert second.tracking_url == "https://courier.example/track/CN700"
        assert output.batch_size == 50

    def test_plan_sync_reports_configured_batch_size(self, config):
        from activities.sync import PlanSyncInput, plan_sync
        from core.config import SyncSettings

        configured = config.model_copy(update={"sync": SyncSettings(batch_size=20)})
        with patch("activities.sync.get_config", return_value=configured):
            output = run_activity(plan_sync, PlanSyncInput(orders=[], rows=[], now=NOW.isoformat()))

        assert output.plans == []
        assert output.batch_size == 20

    def test_workflow_batch_size_defaults_to_config(self):
        from workflows.order_sync_workflow import OrderSyncInput, resolve_batch_size

        assert OrderSyncInput().batch_size is None
        assert resolve_batch_size(None, 20) == 20
        assert resolve_batch_size(10, 20) == 10
        assert resolve_batch_size(None, 0) == 1

    def test_build_ledger_mutations(self, config):
        from activities.sync import BuildMutationsInput, build_ledger_mutations

        verdict = TrackingAnalysisResult(status="Stuck", color=RowColor.ORANGE)
        with patch("activities.sync.get_config", return_value=config):
            output = run_activity(build_ledger_mutations, BuildMutationsInput(
                orders=[order_dict(1), order_dict(7, shipped=True)],
                rows=[LedgerRow(row_index=4, order_id=7).model_dump(mode="json")],
                now=NOW.isoformat(),
                results={"7": verdict.model_dump(mode="json")},
            ))

        append, update = output.mutations
        assert append["kind"] == MutationKind.APPEND.value
        assert update["kind"] == MutationKind.UPDATE.value
        assert update["row_index"] == 4
        assert update["color"] == "Orange"
        assert "Stuck" in update["values"]


class TestStoreActivities:
    """Test activities that talk to the stores."""

    def test_apply_ledger_mutations(self, config):
        from activities.sync import ApplyMutationsInput, apply_ledger_mutations

        ledger = MagicMock()
        ledger.apply = AsyncMock(return_value=2)
        ledger.close = AsyncMock()
        mutations = [
            {"kind": "append", "order_id": 1, "values": ["1"]},
            {"kind": "update", "order_id": 2, "row_index": 3, "values": ["2"]},
        ]

        with patch("activities.sync.get_config", return_value=config), \
             patch("activities.sync.GoogleSheetsLedger.from_config", return_value=ledger):
            output = run_activity(apply_ledger_mutations, ApplyMutationsInput(
                sync_run_id="sync-1", batch_number=1, mutations=mutations,
            ))

        assert output.applied == 2
        applied = ledger.apply.await_args.args[0]
        assert [m.kind for m in applied] == [MutationKind.APPEND, MutationKind.UPDATE]
        ledger.close.assert_awaited_once()

    def test_fetch_orders_serializes(self, config):
        from activities.sync import FetchOrdersInput, fetch_orders

        client = MagicMock()
        client.fetch_orders = AsyncMock(return_value=[Order(id=5, name="#5")])
        client.close = AsyncMock()

        with patch("activities.sync.get_config", return_value=config), \
             patch("activities.sync.ShopifyClient.from_config", return_value=client):
            output = run_activity(fetch_orders, FetchOrdersInput(
                sync_run_id="sync-1", start=NOW.isoformat(), end=NOW.isoformat(),
            ))

        assert output.orders[0]["id"] == 5
        assert output.orders[0]["fulfillment_status"] == "unfulfilled"
        client.close.assert_awaited_once()


if __name__ == "__main__":
    pytest.main([__file__, "-v", "-s"])
