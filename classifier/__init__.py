"""Tracking classifier interface, result normalization and analysis."""

from classifier.base import Classifier
from classifier.normalize import (
    CANONICAL_STATUSES,
    STATUS_ANALYSIS_FAILED,
    STATUS_DELIVERED,
    STATUS_FAILED,
    STATUS_IN_TRANSIT,
    STATUS_NOT_PICKING_PHONE,
    STATUS_RETURN,
    STATUS_STUCK,
    call_failure_result,
    normalize_color,
    normalize_status,
    parse_classifier_response,
    unparseable_result,
)
from classifier.analysis import analyze_tracking, classify_with_fallback
from classifier.llm_classifier import LLMClassifier

__all__ = [
    "Classifier",
    "LLMClassifier",
    "CANONICAL_STATUSES",
    "STATUS_ANALYSIS_FAILED",
    "STATUS_DELIVERED",
    "STATUS_FAILED",
    "STATUS_IN_TRANSIT",
    "STATUS_NOT_PICKING_PHONE",
    "STATUS_RETURN",
    "STATUS_STUCK",
    "normalize_status",
    "normalize_color",
    "parse_classifier_response",
    "unparseable_result",
    "call_failure_result",
    "classify_with_fallback",
    "analyze_tracking",
]
