"""Classifier result normalization.

Classifiers answer in free text. These helpers map whatever comes back onto
the canonical status vocabulary and the four severity colors, and define
the fallback verdicts used when no answer can be obtained.
"""

import json
from typing import Any, Dict, Optional

from core.models.canonical import RowColor, TrackingAnalysisResult


# =============================================================================
# Canonical Vocabulary
# =============================================================================

STATUS_DELIVERED = "Delivered"
STATUS_IN_TRANSIT = "In-Transit"
STATUS_STUCK = "Stuck"
STATUS_FAILED = "Failed"
STATUS_RETURN = "Return"
STATUS_NOT_PICKING_PHONE = "Customer Not Picking Phone"
STATUS_ANALYSIS_FAILED = "Analysis Failed"

CANONICAL_STATUSES = (
    STATUS_DELIVERED,
    STATUS_IN_TRANSIT,
    STATUS_STUCK,
    STATUS_FAILED,
    STATUS_RETURN,
    STATUS_NOT_PICKING_PHONE,
)

SEVERITY_COLORS = (RowColor.GREEN, RowColor.YELLOW, RowColor.ORANGE, RowColor.RED)

UNPARSEABLE_MESSAGE = "Could not parse classifier response"


def normalize_status(raw: Optional[str]) -> str:
    """Map a free-text status onto the canonical vocabulary.

    Rules are checked in order, case-insensitively; unrecognized labels are
    passed through unchanged and a blank status reads as In-Transit.
    """
    if raw is None or not raw.strip():
        return STATUS_IN_TRANSIT

    s = raw.lower()
    if "deliver" in s and "not" not in s and "fail" not in s:
        return STATUS_DELIVERED
    if "transit" in s:
        return STATUS_IN_TRANSIT
    if "stuck" in s or "delay" in s or "hold" in s:
        return STATUS_STUCK
    if "fail" in s or "unsuccess" in s or "cancel" in s:
        return STATUS_FAILED
    if "return" in s:
        return STATUS_RETURN
    if "phone" in s or "contact" in s or "unreachable" in s:
        return STATUS_NOT_PICKING_PHONE
    return raw


def normalize_color(raw: Any) -> RowColor:
    """Map a free-text color onto Green/Yellow/Orange/Red (default Yellow)."""
    if isinstance(raw, RowColor):
        raw = raw.value
    if raw is None:
        return RowColor.YELLOW

    s = str(raw).lower()
    for color in SEVERITY_COLORS:
        if color.value.lower() in s:
            return color
    return RowColor.YELLOW


# =============================================================================
# Fallback Verdicts
# =============================================================================

def unparseable_result() -> TrackingAnalysisResult:
    """Classifier answered, but not with anything usable."""
    return TrackingAnalysisResult(
        status=STATUS_ANALYSIS_FAILED,
        color=RowColor.ORANGE,
        error_message=UNPARSEABLE_MESSAGE,
    )


def call_failure_result(error: str) -> TrackingAnalysisResult:
    """Classifier could not be reached or timed out."""
    return TrackingAnalysisResult(
        status=STATUS_ANALYSIS_FAILED,
        color=RowColor.RED,
        error_message=error or "Classifier call failed",
    )


# =============================================================================
# Response Parsing
# =============================================================================

def _load_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(text)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def parse_classifier_response(raw: Optional[str]) -> TrackingAnalysisResult:
    """Parse ``{"status": ..., "color": ...}`` out of a classifier reply.

    The JSON object may be surrounded by other text; the slice from the
    first ``{`` to the last ``}`` is parsed.
    """
    if raw is None or not raw.strip():
        return unparseable_result()

    start = raw.find("{")
    end = raw.rfind("}")
    if start >= 0 and end > start:
        data = _load_object(raw[start:end + 1])
    else:
        data = _load_object(raw)

    if data is None:
        return unparseable_result()

    status = data.get("status")
    color = data.get("color")
    return TrackingAnalysisResult(
        status=normalize_status(str(status) if status is not None else None),
        color=normalize_color(color),
    )
