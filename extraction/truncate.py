"""Keyword-aware truncation.

Bounds text to a maximum length while keeping the sentence-like segments
that mention delivery progress. When too little keyword-bearing text
exists, the head and tail of the text are spliced around a marker instead.
"""

import re
from typing import List


TRACKING_KEYWORDS = (
    "delivered", "delivery", "status", "tracking",
    "failed", "returned", "stuck", "transit",
    "location", "date", "received", "recipient",
    "out for delivery", "in transit", "picked up",
    "attempted", "exception", "delay", "completed",
)

SEGMENT_DELIMITERS = re.compile(r"[.\n;]")
SPLICE_MARKER = " [...] "
SEGMENT_JOINER = ". "


def _keyword_segments(text: str, max_length: int) -> tuple:
    """Collect keyword-bearing segments in source order.

    Returns (segments, running_length) where running_length counts each
    untrimmed segment plus its joiner.
    """
    kept: List[str] = []
    running = 0
    for segment in SEGMENT_DELIMITERS.split(text):
        if not segment:
            continue
        lowered = segment.lower()
        if not any(keyword in lowered for keyword in TRACKING_KEYWORDS):
            continue
        if running + len(segment) >= max_length:
            break
        kept.append(segment.strip())
        running += len(segment) + len(SEGMENT_JOINER)
    return kept, running


def truncate_intelligently(text: str, max_length: int) -> str:
    """Bound ``text`` to ``max_length`` characters.

    Text that already fits is returned unchanged, so applying the function
    twice gives the same result as applying it once.

    Args:
        text: Input text (typically whitespace-collapsed)
        max_length: Hard upper bound on the result length

    Returns:
        Text of at most ``max_length`` characters
    """
    if text is None or max_length <= 0:
        return ""
    if len(text) <= max_length:
        return text

    kept, running = _keyword_segments(text, max_length)
    if kept and running > max_length / 2:
        return SEGMENT_JOINER.join(kept)[:max_length]

    half = max(max_length // 2 - 10, 0)
    beginning = text[:min(half, len(text))]
    end_start = max(half, len(text) - half)
    end = text[end_start:]

    return (beginning + SPLICE_MARKER + end)[:max_length]
