"""Retry configuration shared by the HTTP connectors."""

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3
    base_delay: float = 1.0  # seconds
    max_delay: float = 60.0  # seconds
    exponential_base: float = 2.0
    retry_on_status: Tuple[int, ...] = (429, 500, 502, 503, 504)

    def get_delay(self, attempt: int) -> float:
        """Calculate delay for retry attempt (exponential backoff)."""
        delay = self.base_delay * (self.exponential_base ** attempt)
        return min(delay, self.max_delay)

    def should_retry(self, status: int, attempt: int) -> bool:
        return status in self.retry_on_status and attempt < self.max_retries


def parse_retry_after(value: Optional[str], default: float) -> float:
    """Seconds from a Retry-After header (Shopify sends fractional values)."""
    if not value:
        return default
    try:
        return max(float(value), 0.0)
    except ValueError:
        return default
