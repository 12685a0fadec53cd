"""Tracking payload normalization.

Exposes:
- detect_content_type(raw) -> ContentType
- truncate_intelligently(text, max_length) -> str
- extract_with_patterns(raw) -> str
- ContentNormalizer / normalize_content(raw) -> bounded text
"""

from extraction.detector import detect_content_type
from extraction.normalizer import (
    ContentNormalizer,
    DEFAULT_OUTPUT_CEILING,
    normalize_content,
)
from extraction.patterns import extract_with_patterns
from extraction.structured import (
    extract_html_text,
    extract_json_fields,
    extract_plain_text,
    extract_xml_fields,
)
from extraction.truncate import truncate_intelligently

__all__ = [
    "detect_content_type",
    "truncate_intelligently",
    "extract_with_patterns",
    "extract_json_fields",
    "extract_xml_fields",
    "extract_html_text",
    "extract_plain_text",
    "ContentNormalizer",
    "DEFAULT_OUTPUT_CEILING",
    "normalize_content",
]
