"""Core canonical data models - platform-neutral order and ledger models.

These models represent orders, ledger rows and tracking verdicts in a
standardized format that is independent of the commerce platform (Shopify)
and of the ledger backend (Google Sheets).

Platform-specific field mappings are handled in /connectors/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


# =============================================================================
# Value Parsers (handle various input formats from platform payloads)
# =============================================================================

def _parse_datetime(value):
    """Parse an aware datetime from ISO strings; naive values are taken as UTC."""
    if value is None:
        return None
    if isinstance(value, str):
        s = value.strip()
        if s == "":
            return None
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        value = datetime.fromisoformat(s)
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _parse_text(value):
    """Coerce platform values (numbers, None) to plain strings."""
    if value is None:
        return ""
    return str(value)


def _parse_fulfillment_status(value):
    """Shopify reports unfulfilled orders with a null fulfillment_status."""
    if value is None:
        return "unfulfilled"
    s = str(value).strip().lower()
    return s or "unfulfilled"


DateTimeValue = Annotated[datetime, BeforeValidator(_parse_datetime)]
TextValue = Annotated[str, BeforeValidator(_parse_text)]
FulfillmentStatusValue = Annotated[str, BeforeValidator(_parse_fulfillment_status)]


# =============================================================================
# Enums
# =============================================================================

class Scenario(str, Enum):
    """Lifecycle stage assigned to an order for one sync pass."""
    NEW_ORDER = "NewOrder"
    AWAITING_WHATSAPP_CONFIRM = "AwaitingWhatsAppConfirm"
    INVALID_WHATSAPP = "InvalidWhatsApp"
    AWAITING_PHONE_CALL = "AwaitingPhoneCall"
    CUSTOMER_NOT_PICKING_PHONE = "CustomerNotPickingPhone"
    AWAITING_SIZE_CONFIRMATION = "AwaitingSizeConfirmation"
    READY_FOR_COURIER = "ReadyForCourier"
    TRACK_PARCEL = "TrackParcel"
    ALREADY_DELIVERED = "AlreadyDelivered"
    STALE_ORDER = "StaleOrder"
    CANCELLED = "Cancelled"
    UPDATE_ONLY = "UpdateOnly"


class ContentType(str, Enum):
    """Detected type of a raw tracking payload (derived, never persisted)."""
    JSON = "JSON"
    XML = "XML"
    HTML = "HTML"
    PLAIN_TEXT = "PlainText"
    UNKNOWN = "Unknown"


class RowColor(str, Enum):
    """Background color hints for ledger rows."""
    GREEN = "Green"
    YELLOW = "Yellow"
    ORANGE = "Orange"
    RED = "Red"
    GREY = "Grey"
    WHITE = "White"


class MutationKind(str, Enum):
    """Kinds of ledger mutations."""
    APPEND = "append"
    UPDATE = "update"


# =============================================================================
# Base Model
# =============================================================================

class CanonicalBase(BaseModel):
    """Base model for all canonical data structures."""
    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Order Models (read-only to the core)
# =============================================================================

class Fulfillment(CanonicalBase):
    """A shipment created for an order."""
    id: Optional[int] = None
    status: Optional[str] = None
    tracking_company: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    tracking_urls: List[str] = Field(default_factory=list)

    def get_tracking_url(self) -> Optional[str]:
        """Single tracking URL, falling back to the first of tracking_urls."""
        if self.tracking_url:
            return self.tracking_url
        for url in self.tracking_urls:
            if url:
                return url
        return None


class NoteAttribute(CanonicalBase):
    """Checkout note attribute (name/value pair)."""
    name: TextValue = ""
    value: TextValue = ""


class Customer(CanonicalBase):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None

    @property
    def full_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts)


class Address(CanonicalBase):
    name: Optional[str] = None
    city: Optional[str] = None
    phone: Optional[str] = None


PHONE_ATTRIBUTE_HINTS = ("phone", "whatsapp", "mobile", "contact")


class Order(CanonicalBase):
    """Commerce order as seen by the sync core.

    Field names follow the Shopify REST payload so an API response can be
    validated directly with ``Order.model_validate``.
    """
    id: int
    name: TextValue = ""
    created_at: Optional[DateTimeValue] = None
    cancelled_at: Optional[DateTimeValue] = None
    tags: TextValue = ""
    fulfillment_status: FulfillmentStatusValue = "unfulfilled"
    financial_status: TextValue = ""
    fulfillments: List[Fulfillment] = Field(default_factory=list)
    customer: Optional[Customer] = None
    phone: Optional[str] = None
    shipping_address: Optional[Address] = None
    billing_address: Optional[Address] = None
    note_attributes: List[NoteAttribute] = Field(default_factory=list)

    @property
    def tracking_url(self) -> Optional[str]:
        """Tracking URL of the first fulfillment that has one."""
        for fulfillment in self.fulfillments:
            url = fulfillment.get_tracking_url()
            if url:
                return url
        return None

    @property
    def customer_name(self) -> str:
        if self.customer and self.customer.full_name:
            return self.customer.full_name
        if self.shipping_address and self.shipping_address.name:
            return self.shipping_address.name
        return ""

    @property
    def city(self) -> str:
        if self.shipping_address and self.shipping_address.city:
            return self.shipping_address.city
        return ""

    @property
    def contact_phone(self) -> str:
        """Best available phone number.

        Priority:
        1. order phone
        2. customer phone
        3. shipping address phone
        4. billing address phone
        5. note attribute named like phone/whatsapp/mobile/contact
        """
        candidates = [
            self.phone,
            self.customer.phone if self.customer else None,
            self.shipping_address.phone if self.shipping_address else None,
            self.billing_address.phone if self.billing_address else None,
        ]
        for candidate in candidates:
            if candidate and candidate.strip():
                return candidate.strip()

        for attr in self.note_attributes:
            name = attr.name.lower()
            if any(hint in name for hint in PHONE_ATTRIBUTE_HINTS) and attr.value.strip():
                return attr.value.strip()
        return ""

    def age_hours(self, now: datetime) -> float:
        """Hours elapsed since creation (0 when unknown or in the future)."""
        if self.created_at is None:
            return 0.0
        elapsed = (now - self.created_at).total_seconds() / 3600
        return max(elapsed, 0.0)


# =============================================================================
# Ledger Models
# =============================================================================

class LedgerRow(CanonicalBase):
    """One persisted ledger row (row 1 is the header, data starts at row 2)."""
    row_index: int = Field(..., description="1-based sheet row, stable once assigned")
    order_id: int
    current_stage: TextValue = ""
    whatsapp_status: TextValue = ""
    delivery_status: TextValue = ""
    ai_alert: TextValue = ""
    order_name: TextValue = ""
    order_date: TextValue = ""
    customer_name: TextValue = ""
    phone: TextValue = ""
    city: TextValue = ""
    financial_status: TextValue = ""
    tracking_url: TextValue = ""
    last_synced: TextValue = ""

    @property
    def is_delivered(self) -> bool:
        return self.delivery_status.strip().lower() == "delivered"


LEDGER_COLUMNS = [
    ("order_id", "Order ID"),
    ("current_stage", "Current Stage"),
    ("whatsapp_status", "WhatsApp Status"),
    ("delivery_status", "Delivery Status"),
    ("ai_alert", "AI Alert"),
    ("order_name", "Order Name"),
    ("order_date", "Order Date"),
    ("customer_name", "Customer"),
    ("phone", "Phone"),
    ("city", "City"),
    ("financial_status", "Financial Status"),
    ("tracking_url", "Tracking URL"),
    ("last_synced", "Last Synced"),
]

LEDGER_FIELDS = [name for name, _ in LEDGER_COLUMNS]
LEDGER_HEADERS = [header for _, header in LEDGER_COLUMNS]


class LedgerMutation(CanonicalBase):
    """Full-row write against the ledger.

    Appends carry no row_index; the store assigns one. Updates rewrite every
    column of an existing row so no field drifts out of date.
    """
    kind: MutationKind
    order_id: int
    row_index: Optional[int] = None
    values: List[str] = Field(default_factory=list)
    color: Optional[RowColor] = None
    scenario: Optional[Scenario] = None


# =============================================================================
# Tracking Analysis
# =============================================================================

class TrackingAnalysisResult(CanonicalBase):
    """Verdict produced by the classifier for one tracking payload."""
    status: str
    color: RowColor = RowColor.YELLOW
    error_message: Optional[str] = Field(default=None, alias="error")

    @property
    def is_fallback(self) -> bool:
        return self.error_message is not None
