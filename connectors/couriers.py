"""Courier API resolution and tracking page fetching.

Many couriers expose a JSON tracking API that is far easier to normalize
than their HTML tracking page. Given a tracking URL, the first enabled
courier whose detection substring appears in the URL supplies an endpoint
template; the tracking id is pulled from the URL and substituted in.
Whenever that fails, the original URL is fetched instead.
"""

import asyncio
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import parse_qs, quote, urlparse

import aiohttp

from core.config import CourierApiConfig
from core.observability.logging import get_logger


logger = get_logger(__name__)

MIN_PATH_ID_LENGTH = 5
ENDPOINT_PLACEHOLDERS = ("{tracking_id}", "{0}")

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
    ),
    "Accept": "application/json, text/html;q=0.9, */*;q=0.8",
}


class TrackingFetchError(Exception):
    """Tracking content could not be fetched (per-order failure)."""
    def __init__(self, message: str, url: str = "", status_code: int = 0):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


@dataclass
class CourierEndpoint:
    """Resolved courier API call for a tracking URL."""
    courier: str
    tracking_id: str
    url: str


def extract_tracking_id(tracking_url: str, query_parameters: Iterable[str]) -> Optional[str]:
    """Tracking id from the URL's query string, else from its path.

    Query parameter names are checked in the given order (case-insensitive).
    The path fallback takes the last non-empty segment longer than five
    characters.
    """
    parsed = urlparse(tracking_url)
    query = {key.lower(): values for key, values in parse_qs(parsed.query).items()}

    for name in query_parameters:
        for value in query.get(name.lower(), []):
            if value.strip():
                return value.strip()

    segments = [s for s in parsed.path.split("/") if s]
    if segments and len(segments[-1]) > MIN_PATH_ID_LENGTH:
        return segments[-1]
    return None


def _fill_template(template: str, tracking_id: str) -> Optional[str]:
    encoded = quote(tracking_id, safe="")
    lowered = template.lower()
    for placeholder in ENDPOINT_PLACEHOLDERS:
        index = lowered.find(placeholder)
        if index >= 0:
            return template[:index] + encoded + template[index + len(placeholder):]
    return None


def resolve_courier_endpoint(
    tracking_url: str,
    couriers: Iterable[CourierApiConfig],
) -> Optional[CourierEndpoint]:
    """Courier API endpoint for ``tracking_url``, or None to fetch it directly."""
    if not tracking_url:
        return None
    lowered_url = tracking_url.lower()

    for courier in couriers:
        if not courier.enabled or not courier.detection_url or not courier.api_endpoint:
            continue
        if courier.detection_url.lower() not in lowered_url:
            continue

        tracking_id = extract_tracking_id(tracking_url, courier.query_parameters)
        if not tracking_id:
            logger.debug(
                "No tracking id in URL for courier %s", courier.name,
                extra_fields={"courier": courier.name},
            )
            return None

        url = _fill_template(courier.api_endpoint, tracking_id)
        if url is None:
            logger.warning(
                "Courier %s endpoint has no tracking id placeholder", courier.name,
            )
            return None
        return CourierEndpoint(courier=courier.name, tracking_id=tracking_id, url=url)

    return None


class TrackingFetcher:
    """Downloads tracking content, preferring courier APIs.

    Usage:
        fetcher = TrackingFetcher(config.courier_apis)
        raw = await fetcher.fetch(order.tracking_url)
        await fetcher.close()
    """

    def __init__(
        self,
        couriers: Optional[Iterable[CourierApiConfig]] = None,
        timeout_seconds: int = 30,
    ):
        self.couriers = list(couriers or [])
        self.timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                headers=DEFAULT_HEADERS,
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def _get_text(self, url: str) -> str:
        session = await self._get_session()
        try:
            async with session.get(url) as response:
                body = await response.text()
                if response.status >= 400:
                    raise TrackingFetchError(
                        f"GET {url} returned {response.status}", url, response.status,
                    )
                return body
        except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError) as e:
            raise TrackingFetchError(f"GET {url} failed: {e}", url) from e

    async def fetch(self, tracking_url: str) -> str:
        """Fetch tracking content for ``tracking_url``.

        Raises:
            TrackingFetchError: Neither the courier API nor the URL could be read
        """
        endpoint = resolve_courier_endpoint(tracking_url, self.couriers)
        if endpoint is not None:
            try:
                body = await self._get_text(endpoint.url)
                logger.info(
                    "Fetched %s tracking API", endpoint.courier,
                    extra_fields={"courier": endpoint.courier, "tracking_id": endpoint.tracking_id},
                )
                return body
            except TrackingFetchError as e:
                logger.warning(
                    "Courier API %s failed, falling back to tracking URL: %s",
                    endpoint.courier, e,
                )

        return await self._get_text(tracking_url)
