"""Scenario resolution.

Assigns exactly one lifecycle scenario to an order for a sync pass. The
result depends only on the order, its existing ledger row and ``now``.

Precedence (first match wins):
    1.  Cancelled                 cancelled_at set, or "Cancelled" tag
    2.  NewOrder                  no ledger row yet
    3.  AwaitingWhatsAppConfirm   "WhatsApp Sent", not "Confirmed", not "Did not pick up"
    4.  InvalidWhatsApp           "Invalid WhatsApp"
    5.  AwaitingPhoneCall         "WhatsApp Confirmed" or "Awaiting Call"
    6.  CustomerNotPickingPhone   "Did not pick up" or "No Answer"
    7.  AwaitingSizeConfirmation  "Call Completed", not "Size Confirmed"
    8.  ReadyForCourier           "Size Confirmed" and unfulfilled
    9.  TrackParcel               fulfilled with a fulfillment
        AlreadyDelivered          ... and the row already reads Delivered
    10. StaleOrder                older than the stale threshold, unfulfilled, not "Size Confirmed"
    11. UpdateOnly
"""

from datetime import datetime, timezone
from typing import Optional

from core.config import SyncSettings, TagVocabulary
from core.models.canonical import LedgerRow, Order, Scenario
from scenarios.tags import TagFlags, TagSet


UNFULFILLED = "unfulfilled"
FULFILLED = "fulfilled"


class ScenarioResolver:
    """Tag-driven lifecycle state machine.

    Usage:
        resolver = ScenarioResolver(config.tag_vocabulary, config.sync)
        scenario = resolver.resolve(order, existing_row, now)
    """

    def __init__(
        self,
        vocabulary: Optional[TagVocabulary] = None,
        settings: Optional[SyncSettings] = None,
    ):
        self.vocabulary = vocabulary or TagVocabulary()
        self.settings = settings or SyncSettings()

    def flags_for(self, order: Order) -> TagFlags:
        return TagFlags.from_tags(TagSet(order.tags), self.vocabulary)

    def resolve(
        self,
        order: Order,
        row: Optional[LedgerRow],
        now: Optional[datetime] = None,
    ) -> Scenario:
        now = now or datetime.now(timezone.utc)
        flags = self.flags_for(order)
        status = order.fulfillment_status

        if order.cancelled_at is not None or flags.cancelled:
            return Scenario.CANCELLED

        if row is None:
            return Scenario.NEW_ORDER

        if flags.whatsapp_sent and not flags.confirmed and not flags.did_not_pick_up:
            return Scenario.AWAITING_WHATSAPP_CONFIRM

        if flags.invalid_whatsapp:
            return Scenario.INVALID_WHATSAPP

        if flags.whatsapp_confirmed or flags.awaiting_call:
            return Scenario.AWAITING_PHONE_CALL

        if flags.not_picking_phone:
            return Scenario.CUSTOMER_NOT_PICKING_PHONE

        if flags.call_completed and not flags.size_confirmed:
            return Scenario.AWAITING_SIZE_CONFIRMATION

        if flags.size_confirmed and status == UNFULFILLED:
            return Scenario.READY_FOR_COURIER

        if status == FULFILLED and order.fulfillments:
            if row.is_delivered:
                return Scenario.ALREADY_DELIVERED
            return Scenario.TRACK_PARCEL

        if (
            order.age_hours(now) > self.settings.stale_after_hours
            and status == UNFULFILLED
            and not flags.size_confirmed
        ):
            return Scenario.STALE_ORDER

        return Scenario.UPDATE_ONLY
