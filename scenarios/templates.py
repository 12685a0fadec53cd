"""Ledger row templates per scenario.

A template fixes the stage, WhatsApp status and delivery status labels for
a scenario. ``None`` means "keep whatever the row already holds". Alert
text and color come from the AlertGenerator; the static values listed
here are what it returns for scenarios without computed alerts.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from core.models.canonical import RowColor, Scenario


STAGE_NEW_ORDER = "New Order"
STAGE_WHATSAPP = "WhatsApp Confirmation"
STAGE_PHONE = "Phone Confirmation"
STAGE_SIZE = "Size Confirmation"
STAGE_READY = "Ready for Courier"
STAGE_SHIPPED = "Shipped"
STAGE_STALE = "Stale"
STAGE_CANCELLED = "Cancelled"

NOT_SHIPPED = "Not Shipped"


@dataclass(frozen=True)
class MutationTemplate:
    """Row values written for a scenario."""
    stage: Optional[str] = None
    whatsapp_status: Optional[str] = None
    delivery_status: Optional[str] = None
    alert: Optional[str] = None
    color: Optional[RowColor] = None


TEMPLATES: Dict[Scenario, MutationTemplate] = {
    Scenario.NEW_ORDER: MutationTemplate(
        stage=STAGE_NEW_ORDER,
        whatsapp_status="Pending",
        delivery_status=NOT_SHIPPED,
        alert="🆕 New order - send WhatsApp confirmation",
        color=RowColor.WHITE,
    ),
    # alert and color depend on elapsed time
    Scenario.AWAITING_WHATSAPP_CONFIRM: MutationTemplate(
        stage=STAGE_WHATSAPP,
        whatsapp_status="WhatsApp Sent",
    ),
    Scenario.INVALID_WHATSAPP: MutationTemplate(
        stage=STAGE_WHATSAPP,
        whatsapp_status="Invalid WhatsApp",
        alert="❌ Invalid WhatsApp number - call customer directly",
        color=RowColor.RED,
    ),
    Scenario.AWAITING_PHONE_CALL: MutationTemplate(
        stage=STAGE_PHONE,
        whatsapp_status="WhatsApp Confirmed",
        alert="📞 WhatsApp confirmed - call customer to confirm order",
        color=RowColor.YELLOW,
    ),
    Scenario.CUSTOMER_NOT_PICKING_PHONE: MutationTemplate(
        stage=STAGE_PHONE,
        whatsapp_status="Not Picking Phone",
        alert="📵 Customer not picking phone - retry call later",
        color=RowColor.ORANGE,
    ),
    Scenario.AWAITING_SIZE_CONFIRMATION: MutationTemplate(
        stage=STAGE_SIZE,
        whatsapp_status="Call Completed",
        alert="📏 Call completed - confirm size with customer",
        color=RowColor.YELLOW,
    ),
    Scenario.READY_FOR_COURIER: MutationTemplate(
        stage=STAGE_READY,
        whatsapp_status="Confirmed",
        delivery_status=NOT_SHIPPED,
        alert="✅ Order confirmed - book courier",
        color=RowColor.GREEN,
    ),
    # delivery status, alert and color come from the classifier verdict
    Scenario.TRACK_PARCEL: MutationTemplate(
        stage=STAGE_SHIPPED,
        whatsapp_status="Confirmed",
    ),
    # alert includes elapsed days
    Scenario.STALE_ORDER: MutationTemplate(
        stage=STAGE_STALE,
        delivery_status=NOT_SHIPPED,
        color=RowColor.ORANGE,
    ),
    Scenario.CANCELLED: MutationTemplate(
        stage=STAGE_CANCELLED,
        delivery_status="Cancelled",
        alert="🚫 Order cancelled",
        color=RowColor.GREY,
    ),
    Scenario.UPDATE_ONLY: MutationTemplate(),
}

# Scenarios that never produce a mutation
NO_OP_SCENARIOS = frozenset({Scenario.ALREADY_DELIVERED})


def template_for(scenario: Scenario) -> Optional[MutationTemplate]:
    """Template for ``scenario`` (None for no-op scenarios)."""
    if scenario in NO_OP_SCENARIOS:
        return None
    return TEMPLATES[scenario]
