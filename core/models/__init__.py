"""Core data models - platform-neutral canonical types.

This package contains the canonical order, ledger and tracking models that
are intentionally independent of Shopify and Google Sheets.
"""

from core.models.canonical import (
    # Base
    CanonicalBase,
    DateTimeValue,
    TextValue,

    # Enums
    Scenario,
    ContentType,
    RowColor,
    MutationKind,

    # Orders
    Order,
    Fulfillment,
    NoteAttribute,
    Customer,
    Address,

    # Ledger
    LedgerRow,
    LedgerMutation,
    LEDGER_COLUMNS,
    LEDGER_FIELDS,
    LEDGER_HEADERS,

    # Tracking
    TrackingAnalysisResult,
)

__all__ = [
    # Base
    "CanonicalBase",
    "DateTimeValue",
    "TextValue",

    # Enums
    "Scenario",
    "ContentType",
    "RowColor",
    "MutationKind",

    # Orders
    "Order",
    "Fulfillment",
    "NoteAttribute",
    "Customer",
    "Address",

    # Ledger
    "LedgerRow",
    "LedgerMutation",
    "LEDGER_COLUMNS",
    "LEDGER_FIELDS",
    "LEDGER_HEADERS",

    # Tracking
    "TrackingAnalysisResult",
]
