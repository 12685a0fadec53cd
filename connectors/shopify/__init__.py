"""Shopify order source."""

from connectors.shopify.shopify_client import (
    ShopifyApiError,
    ShopifyAuthenticationError,
    ShopifyClient,
    ShopifyRateLimitError,
    parse_next_link,
)

__all__ = [
    "ShopifyClient",
    "ShopifyApiError",
    "ShopifyAuthenticationError",
    "ShopifyRateLimitError",
    "parse_next_link",
]
