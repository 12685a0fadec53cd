"""Abstract store interfaces.

The sync core depends only on these two interfaces; the Shopify and
Google Sheets implementations live in their own subfolders.

Key Design Principles:
- Methods return canonical models (Order, LedgerRow), never platform payloads
- The sync pass and Temporal activities depend ONLY on this interface
- Writes are full-row mutations applied in one batch call
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List

from core.models.canonical import LedgerMutation, LedgerRow, Order


class OrderSource(ABC):
    """Commerce platform order feed (read-only)."""

    @abstractmethod
    async def fetch_orders(self, start: datetime, end: datetime) -> List[Order]:
        """Fetch every order created within [start, end], all pages."""
        pass

    async def close(self) -> None:
        """Release network resources."""
        pass


class LedgerStore(ABC):
    """Persisted per-order ledger."""

    @abstractmethod
    async def read_rows(self) -> List[LedgerRow]:
        """Read all data rows (row 2 onward)."""
        pass

    @abstractmethod
    async def apply(self, mutations: List[LedgerMutation]) -> int:
        """Apply a batch of mutations in one write.

        Returns:
            Number of mutations applied
        """
        pass

    async def close(self) -> None:
        """Release network resources."""
        pass
