"""Shopify Admin REST client.

Lists orders by creation date with cursor pagination (``Link`` header,
``rel="next"``), retries on throttling and server errors, and maps the
payload onto canonical Order models.
"""

import asyncio
import json
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import aiohttp
from pydantic import ValidationError

from connectors.base import OrderSource
from connectors.retry import RetryConfig, parse_retry_after
from core.config import AppConfiguration
from core.models.canonical import Order
from core.observability.logging import get_logger


logger = get_logger(__name__)


class ShopifyApiError(Exception):
    """Base exception for Shopify API errors."""
    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class ShopifyAuthenticationError(ShopifyApiError):
    """Access token rejected (401/403)."""
    pass


class ShopifyRateLimitError(ShopifyApiError):
    """Still throttled (429) after all retries."""
    def __init__(self, message: str, retry_after: float = 2.0):
        super().__init__(message, 429)
        self.retry_after = retry_after


NEXT_LINK_PATTERN = re.compile(r'<([^>]+)>\s*;\s*rel="?next"?')

DEFAULT_API_VERSION = "2024-01"
PAGE_SIZE = 250
MAX_PAGES = 100


def parse_next_link(link_header: Optional[str]) -> Optional[str]:
    """URL of the next page from a ``Link`` header, or None on the last page."""
    if not link_header:
        return None
    for part in link_header.split(","):
        match = NEXT_LINK_PATTERN.search(part)
        if match:
            return match.group(1)
    return None


def _iso(value: datetime) -> str:
    return value.isoformat()


class ShopifyClient(OrderSource):
    """Order source backed by the Shopify Admin REST API.

    Usage:
        client = ShopifyClient.from_config(config)
        orders = await client.fetch_orders(start, end)
        await client.close()
    """

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        api_version: str = DEFAULT_API_VERSION,
        retry_config: Optional[RetryConfig] = None,
        timeout_seconds: int = 30,
        max_pages: int = MAX_PAGES,
        page_size: int = PAGE_SIZE,
    ):
        domain = shop_domain.strip()
        domain = re.sub(r"^https?://", "", domain).rstrip("/")
        self.shop_domain = domain
        self.access_token = access_token
        self.api_version = api_version
        self.retry_config = retry_config or RetryConfig()
        self.timeout_seconds = timeout_seconds
        self.max_pages = max_pages
        self.page_size = page_size
        self._session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_config(cls, config: AppConfiguration) -> "ShopifyClient":
        return cls(
            shop_domain=config.shopify_shop_domain,
            access_token=config.shopify_access_token,
            api_version=config.shopify_api_version,
            max_pages=config.sync.max_pages,
        )

    @property
    def base_url(self) -> str:
        return f"https://{self.shop_domain}/admin/api/{self.api_version}"

    @property
    def orders_url(self) -> str:
        return f"{self.base_url}/orders.json"

    def _get_headers(self) -> Dict[str, str]:
        return {
            "X-Shopify-Access-Token": self.access_token,
            "Accept": "application/json",
        }

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def _request(
        self,
        url: str,
        params: Optional[Dict[str, str]] = None,
    ) -> Tuple[Dict[str, Any], Optional[str]]:
        """GET with retries.

        Returns:
            (response JSON, Link header)

        Raises:
            ShopifyAuthenticationError: Token rejected
            ShopifyRateLimitError: Still throttled after retries
            ShopifyApiError: Other API or transport errors
        """
        session = await self._get_session()
        retry_config = self.retry_config

        for attempt in range(retry_config.max_retries + 1):
            try:
                async with session.get(url, headers=self._get_headers(), params=params) as response:
                    body = await response.text()

                    if response.status < 400:
                        data = json.loads(body) if body else {}
                        return data, response.headers.get("Link")

                    if response.status in (401, 403):
                        raise ShopifyAuthenticationError(
                            f"Shopify rejected the access token: {body}",
                            response.status,
                            body,
                        )

                    if response.status == 429:
                        retry_after = parse_retry_after(
                            response.headers.get("Retry-After"),
                            retry_config.get_delay(attempt),
                        )
                        if attempt < retry_config.max_retries:
                            logger.warning("Shopify throttled, waiting %.1fs", retry_after)
                            await asyncio.sleep(retry_after)
                            continue
                        raise ShopifyRateLimitError("Shopify rate limit exceeded", retry_after)

                    if retry_config.should_retry(response.status, attempt):
                        delay = retry_config.get_delay(attempt)
                        logger.warning(
                            "Shopify request failed with %d, retrying in %.1fs (attempt %d/%d)",
                            response.status, delay, attempt + 1, retry_config.max_retries,
                        )
                        await asyncio.sleep(delay)
                        continue

                    raise ShopifyApiError(
                        f"Shopify API error {response.status}: {body}",
                        response.status,
                        body,
                    )

            except ShopifyApiError:
                raise
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                if attempt < retry_config.max_retries:
                    delay = retry_config.get_delay(attempt)
                    logger.warning(
                        "Shopify request failed with %s: %s, retrying in %.1fs",
                        type(e).__name__, e, delay,
                    )
                    await asyncio.sleep(delay)
                    continue
                raise ShopifyApiError(
                    f"Shopify request failed after {retry_config.max_retries} retries: {e}"
                ) from e

        raise ShopifyApiError("Shopify request failed")

    def build_order_params(self, start: datetime, end: datetime) -> Dict[str, str]:
        return {
            "status": "any",
            "created_at_min": _iso(start),
            "created_at_max": _iso(end),
            "limit": str(self.page_size),
        }

    @staticmethod
    def parse_orders(payload: Dict[str, Any]) -> List[Order]:
        """Canonical orders from one page; malformed orders are skipped."""
        orders: List[Order] = []
        for raw in payload.get("orders", []):
            try:
                orders.append(Order.model_validate(raw))
            except ValidationError as e:
                logger.warning(
                    "Skipping malformed order %s: %s", raw.get("id"), e.error_count(),
                    extra_fields={"order_id": raw.get("id")},
                )
        return orders

    async def fetch_orders(self, start: datetime, end: datetime) -> List[Order]:
        url: Optional[str] = self.orders_url
        params: Optional[Dict[str, str]] = self.build_order_params(start, end)
        orders: List[Order] = []
        pages = 0

        while url and pages < self.max_pages:
            payload, link_header = await self._request(url, params)
            page_orders = self.parse_orders(payload)
            orders.extend(page_orders)
            pages += 1

            logger.info(
                "Fetched page %d: %d orders (total %d)", pages, len(page_orders), len(orders),
            )

            url = parse_next_link(link_header)
            # next-page URLs carry their own page_info cursor
            params = None

        if url:
            logger.warning("Stopped pagination at the %d page ceiling", self.max_pages)

        return orders
