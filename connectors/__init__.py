"""Connectors - order source, ledger store and courier integrations.

This package contains the abstract store interfaces and the concrete
implementations the sync pass runs against:
- Shopify Admin REST (order source)
- Google Sheets v4 (ledger store)
- Courier tracking APIs / tracking pages (tracking fetch)

Key Design Principle:
- The sync pass and Temporal activities depend ONLY on OrderSource / LedgerStore
- All methods return canonical types (Order, LedgerRow)
- No Shopify- or Sheets-specific payloads leak through the interfaces
"""

from connectors.base import LedgerStore, OrderSource
from connectors.couriers import (
    CourierEndpoint,
    TrackingFetchError,
    TrackingFetcher,
    extract_tracking_id,
    resolve_courier_endpoint,
)
from connectors.retry import RetryConfig

__all__ = [
    "OrderSource",
    "LedgerStore",
    "RetryConfig",
    "CourierEndpoint",
    "TrackingFetchError",
    "TrackingFetcher",
    "extract_tracking_id",
    "resolve_courier_endpoint",
]
