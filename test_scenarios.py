"""
Scenario Resolution Tests

Validates the tag-driven lifecycle state machine:
1. Tag parsing and phrase matching
2. Resolution precedence (first match wins)
3. Alert text and colors per scenario
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.config import SyncSettings, TagVocabulary
from core.models.canonical import LedgerRow, Order, RowColor, Scenario, TrackingAnalysisResult


NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def make_order(tags="", hours_old=1.0, fulfillment_status=None, tracking_url=None, **kwargs):
    data = {
        "id": 1001,
        "name": "#1001",
        "created_at": (NOW - timedelta(hours=hours_old)).isoformat(),
        "tags": tags,
        "fulfillment_status": fulfillment_status,
    }
    if tracking_url is not None:
        data["fulfillments"] = [{"id": 1, "tracking_url": tracking_url}]
    data.update(kwargs)
    return Order.model_validate(data)


def make_row(**kwargs):
    data = {"row_index": 2, "order_id": 1001}
    data.update(kwargs)
    return LedgerRow(**data)


class TestTagSet:
    """Test tag parsing."""

    def test_splits_on_delimiters(self):
        from scenarios.tags import TagSet

        tags = TagSet("WhatsApp Sent, Size Confirmed; VIP | Karachi")
        assert len(tags) == 4
        assert tags.tags == ("WhatsApp Sent", "Size Confirmed", "VIP", "Karachi")

    def test_case_insensitive_phrase_match(self):
        from scenarios.tags import TagSet

        tags = TagSet("whatsapp sent")
        assert tags.contains("WhatsApp Sent")
        assert not tags.contains("WhatsApp Confirmed")

    def test_word_run_matching(self):
        from scenarios.tags import TagSet

        assert TagSet("WhatsApp Confirmed").contains("Confirmed")
        assert not TagSet("Unconfirmed").contains("Confirmed")
        assert TagSet("Did not pick up (2nd call)").contains("Did not pick up")

    def test_phrase_does_not_span_tags(self):
        from scenarios.tags import TagSet
        assert not TagSet("WhatsApp, Sent").contains("WhatsApp Sent")

    def test_empty_tags(self):
        from scenarios.tags import TagSet, parse_tag_flags

        assert len(TagSet(None)) == 0
        flags = parse_tag_flags("")
        assert not any(vars(flags).values())

    def test_custom_vocabulary(self):
        from scenarios.tags import parse_tag_flags

        vocabulary = TagVocabulary(whatsapp_sent=["WA Sent", "Msg Sent"])
        assert parse_tag_flags("msg sent", vocabulary).whatsapp_sent
        assert not parse_tag_flags("WhatsApp Sent", vocabulary).whatsapp_sent


class TestScenarioResolver:
    """Test resolution precedence."""

    @pytest.fixture
    def resolver(self):
        from scenarios.resolver import ScenarioResolver
        return ScenarioResolver(TagVocabulary(), SyncSettings(stale_after_hours=24))

    def test_cancelled_overrides_everything(self, resolver):
        tags = "Cancelled, WhatsApp Sent, Size Confirmed"
        assert resolver.resolve(make_order(tags=tags), make_row(), NOW) == Scenario.CANCELLED
        assert resolver.resolve(make_order(tags=tags), None, NOW) == Scenario.CANCELLED

    def test_cancelled_timestamp(self, resolver):
        order = make_order(
            tags="Size Confirmed",
            cancelled_at=NOW.isoformat(),
            fulfillment_status="fulfilled",
            tracking_url="https://courier.example/track/ABC123456",
        )
        assert resolver.resolve(order, make_row(), NOW) == Scenario.CANCELLED

    def test_no_row_is_new_order(self, resolver):
        order = make_order(tags="WhatsApp Sent", hours_old=100)
        assert resolver.resolve(order, None, NOW) == Scenario.NEW_ORDER

    @pytest.mark.parametrize("tags,expected", [
        ("WhatsApp Sent", Scenario.AWAITING_WHATSAPP_CONFIRM),
        ("WhatsApp Sent, Unconfirmed", Scenario.AWAITING_WHATSAPP_CONFIRM),
        ("WhatsApp Sent, WhatsApp Confirmed", Scenario.AWAITING_PHONE_CALL),
        ("WhatsApp Sent, Did not pick up", Scenario.CUSTOMER_NOT_PICKING_PHONE),
        ("Invalid WhatsApp", Scenario.INVALID_WHATSAPP),
        ("Awaiting Call", Scenario.AWAITING_PHONE_CALL),
        ("No Answer", Scenario.CUSTOMER_NOT_PICKING_PHONE),
        ("Call Completed", Scenario.AWAITING_SIZE_CONFIRMATION),
        ("Call Completed, Size Confirmed", Scenario.READY_FOR_COURIER),
    ])
    def test_pre_courier_funnel(self, resolver, tags, expected):
        assert resolver.resolve(make_order(tags=tags), make_row(), NOW) == expected

    def test_whatsapp_sent_then_confirmed(self, resolver):
        row = make_row()
        first = resolver.resolve(make_order(tags="WhatsApp Sent"), row, NOW)
        second = resolver.resolve(make_order(tags="WhatsApp Sent, WhatsApp Confirmed"), row, NOW)

        assert first == Scenario.AWAITING_WHATSAPP_CONFIRM
        assert second == Scenario.AWAITING_PHONE_CALL

    def test_fulfilled_is_tracked(self, resolver):
        order = make_order(
            fulfillment_status="fulfilled",
            tracking_url="https://courier.example/track/ABC123456",
            hours_old=100,
        )
        assert resolver.resolve(order, make_row(), NOW) == Scenario.TRACK_PARCEL

    def test_delivered_row_is_already_delivered(self, resolver):
        order = make_order(
            fulfillment_status="fulfilled",
            tracking_url="https://courier.example/track/ABC123456",
        )
        row = make_row(delivery_status="Delivered")
        assert resolver.resolve(order, row, NOW) == Scenario.ALREADY_DELIVERED

    def test_stale_after_threshold(self, resolver):
        assert resolver.resolve(make_order(hours_old=30), make_row(), NOW) == Scenario.STALE_ORDER
        assert resolver.resolve(make_order(hours_old=10), make_row(), NOW) == Scenario.UPDATE_ONLY

    def test_fulfilled_without_fulfillments_not_stale(self, resolver):
        order = make_order(fulfillment_status="fulfilled", hours_old=100)
        assert resolver.resolve(order, make_row(), NOW) == Scenario.UPDATE_ONLY

    def test_partial_fulfillment_not_stale(self, resolver):
        order = make_order(fulfillment_status="partial", hours_old=100)
        assert resolver.resolve(order, make_row(), NOW) == Scenario.UPDATE_ONLY

    def test_resolution_is_deterministic(self, resolver):
        order = make_order(tags="Call Completed", hours_old=50)
        row = make_row()
        results = {resolver.resolve(order, row, NOW) for _ in range(5)}
        assert results == {Scenario.AWAITING_SIZE_CONFIRMATION}


class TestAlerts:
    """Test alert text and colors."""

    @pytest.mark.parametrize("hours,text,color", [
        (1, "", RowColor.YELLOW),
        (3, "⏳ WhatsApp sent 3h ago - awaiting reply", RowColor.YELLOW),
        (8, "⚠️ No WhatsApp reply for 8h - follow up", RowColor.ORANGE),
        (50, "🚨 URGENT: No WhatsApp reply for 2 day(s) - call customer", RowColor.RED),
    ])
    def test_whatsapp_wait(self, hours, text, color):
        from scenarios.alerts import whatsapp_wait_alert, whatsapp_wait_color

        assert whatsapp_wait_alert(hours) == text
        assert whatsapp_wait_color(hours) == color

    def test_tracking_alerts(self):
        from scenarios.alerts import tracking_alert

        assert tracking_alert("Delivered", 2) == "✅ Delivered successfully"
        assert tracking_alert("In-Transit", 2) == "🚚 On the way"
        assert tracking_alert("In-Transit", 7) == "⚠️ In transit for 7 days - follow up with courier"
        assert tracking_alert("Stuck", 1).startswith("🚨 URGENT")
        assert tracking_alert("Failed", 1).startswith("🚨 CRITICAL")
        assert tracking_alert("Return", 1) == "⚠️ Parcel being returned - verify customer address"
        assert tracking_alert("Customer Not Picking Phone", 1).startswith("📞")
        assert tracking_alert("Analysis Failed", 1) == "ℹ️ Analysis Failed"

    def test_generator_stale(self):
        from scenarios.alerts import AlertGenerator

        text, color = AlertGenerator().alert(Scenario.STALE_ORDER, make_order(hours_old=30), now=NOW)
        assert text == "🚨 URGENT: Order pending for 1 day(s) without size confirmation"
        assert color == RowColor.ORANGE

    def test_generator_track_parcel_uses_verdict(self):
        from scenarios.alerts import AlertGenerator

        result = TrackingAnalysisResult(status="Delivered", color=RowColor.GREEN)
        text, color = AlertGenerator().alert(Scenario.TRACK_PARCEL, make_order(), result, NOW)
        assert text == "✅ Delivered successfully"
        assert color == RowColor.GREEN

    def test_generator_track_parcel_requires_verdict(self):
        from scenarios.alerts import AlertGenerator

        with pytest.raises(ValueError):
            AlertGenerator().alert(Scenario.TRACK_PARCEL, make_order(), None, NOW)

    def test_generator_templates(self):
        from scenarios.alerts import AlertGenerator

        generator = AlertGenerator()
        assert generator.alert(Scenario.CANCELLED, make_order(), now=NOW) == ("🚫 Order cancelled", RowColor.GREY)
        assert generator.alert(Scenario.ALREADY_DELIVERED, make_order(), now=NOW) == (None, None)
        assert generator.alert(Scenario.UPDATE_ONLY, make_order(), now=NOW) == (None, None)


if __name__ == "__main__":
    pytest.main([__file__, "-v", "-s"])
