"""Alert text and severity color per scenario."""

from datetime import datetime, timezone
from typing import Optional, Tuple

from classifier.normalize import normalize_color
from core.config import SyncSettings
from core.models.canonical import Order, RowColor, Scenario, TrackingAnalysisResult
from scenarios.templates import template_for


# =============================================================================
# Time-based Alerts
# =============================================================================

def _days(hours: float) -> int:
    return int(hours // 24)


def whatsapp_wait_alert(hours: float) -> str:
    """Reminder text for an unanswered WhatsApp confirmation.

    < 2h: nothing yet; 2-6h: reminder; 6-24h: follow-up; >= 24h: urgent.
    """
    hours = max(hours, 0.0)
    if hours < 2:
        return ""
    if hours < 6:
        return f"⏳ WhatsApp sent {int(hours)}h ago - awaiting reply"
    if hours < 24:
        return f"⚠️ No WhatsApp reply for {int(hours)}h - follow up"
    return f"🚨 URGENT: No WhatsApp reply for {_days(hours)} day(s) - call customer"


def whatsapp_wait_color(hours: float) -> RowColor:
    if hours < 6:
        return RowColor.YELLOW
    if hours < 24:
        return RowColor.ORANGE
    return RowColor.RED


def stale_alert(hours: float) -> str:
    return f"🚨 URGENT: Order pending for {_days(max(hours, 0.0))} day(s) without size confirmation"


def tracking_alert(status: str, age_days: float, follow_up_days: float = 5.0) -> str:
    """Alert text for a classifier verdict on a shipped order."""
    s = (status or "").strip().lower()

    if s == "delivered":
        return "✅ Delivered successfully"
    if s in ("in-transit", "in transit"):
        if age_days > follow_up_days:
            return f"⚠️ In transit for {int(age_days)} days - follow up with courier"
        return "🚚 On the way"
    if s == "stuck":
        return "🚨 URGENT: Parcel stuck - contact courier"
    if s == "failed":
        return "🚨 CRITICAL: Delivery failed - call customer immediately"
    if s in ("return", "returned"):
        return "⚠️ Parcel being returned - verify customer address"
    if s == "customer not picking phone":
        return "📞 Courier cannot reach customer - call customer back"
    return f"ℹ️ {status}"


# =============================================================================
# Alert Generator
# =============================================================================

class AlertGenerator:
    """Maps a scenario (plus classifier verdict for shipped orders) to an alert.

    Usage:
        alerts = AlertGenerator(config.sync)
        text, color = alerts.alert(Scenario.TRACK_PARCEL, order, result, now)
    """

    def __init__(self, settings: Optional[SyncSettings] = None):
        self.settings = settings or SyncSettings()

    def alert(
        self,
        scenario: Scenario,
        order: Order,
        result: Optional[TrackingAnalysisResult] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[Optional[str], Optional[RowColor]]:
        """Return (alert text, color); (None, None) leaves the row untouched."""
        now = now or datetime.now(timezone.utc)
        hours = order.age_hours(now)

        if scenario == Scenario.TRACK_PARCEL:
            if result is None:
                raise ValueError("TrackParcel alerts need a classifier result")
            text = tracking_alert(
                result.status, hours / 24, self.settings.in_transit_follow_up_days,
            )
            return text, normalize_color(result.color)

        if scenario == Scenario.AWAITING_WHATSAPP_CONFIRM:
            return whatsapp_wait_alert(hours), whatsapp_wait_color(hours)

        if scenario == Scenario.STALE_ORDER:
            return stale_alert(hours), RowColor.ORANGE

        template = template_for(scenario)
        if template is None:
            return None, None
        return template.alert, template.color
