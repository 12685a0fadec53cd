"""Tracking analysis: fetch -> normalize -> classify.

``classify_with_fallback`` is the only entry point the sync pass uses to
reach a classifier; it never raises and never waits past its timeout.
"""

import asyncio
import time
from typing import Optional

from classifier.base import Classifier
from classifier.normalize import call_failure_result
from core.models.canonical import TrackingAnalysisResult
from core.observability.logging import get_logger
from core.observability.metrics import get_metrics
from extraction.normalizer import ContentNormalizer


logger = get_logger(__name__)

DEFAULT_CLASSIFY_TIMEOUT = 60.0


async def classify_with_fallback(
    classifier: Classifier,
    text: str,
    timeout: float = DEFAULT_CLASSIFY_TIMEOUT,
) -> TrackingAnalysisResult:
    """Classify ``text``, substituting the call-failure verdict on any error.

    Args:
        classifier: Classifier implementation
        text: Normalized tracking text
        timeout: Seconds before the call is abandoned

    Returns:
        The classifier's verdict, or an "Analysis Failed"/Red fallback
    """
    metrics = get_metrics()
    start = time.perf_counter()

    try:
        result = await asyncio.wait_for(classifier.classify(text), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Classifier timed out after %.1fs", timeout)
        result = call_failure_result(f"Classifier timed out after {timeout:.0f}s")
    except Exception as e:
        logger.warning(
            "Classifier call failed: %s", e,
            extra_fields={"error_type": type(e).__name__},
        )
        result = call_failure_result(str(e))

    duration_ms = (time.perf_counter() - start) * 1000
    metrics.record_classification(result.status, duration_ms, fallback=result.is_fallback)
    return result


async def analyze_tracking(
    tracking_url: str,
    fetcher,
    classifier: Classifier,
    normalizer: Optional[ContentNormalizer] = None,
    timeout: float = DEFAULT_CLASSIFY_TIMEOUT,
) -> TrackingAnalysisResult:
    """Fetch a tracking page, normalize it and classify the result.

    Args:
        tracking_url: Tracking URL from the order's fulfillment
        fetcher: Object with ``async fetch(url) -> str`` (TrackingFetcher)
        classifier: Classifier implementation
        normalizer: Content normalizer (default settings when omitted)
        timeout: Classifier timeout in seconds

    Raises:
        TrackingFetchError: The tracking content could not be fetched
    """
    normalizer = normalizer or ContentNormalizer()

    raw = await fetcher.fetch(tracking_url)
    text = normalizer.normalize(raw)
    logger.info(
        "Normalized tracking payload (%d -> %d chars)", len(raw or ""), len(text),
    )

    return await classify_with_fallback(classifier, text, timeout=timeout)
