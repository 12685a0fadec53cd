"""Content normalization pipeline.

Turns an arbitrary tracking payload (courier JSON API, XML feed, HTML
tracking page, plain text) into bounded, signal-dense text for the
classifier:

    detect -> extract (strategy chain per content type) -> final ceiling

Each content type maps to an ordered list of strategies. A strategy is a
pure function ``str -> Optional[str]``; the first one whose output carries
enough signal wins. The last strategy of every chain always produces text.
"""

from typing import Callable, Dict, List, Optional, Sequence

from core.models.canonical import ContentType
from core.observability.logging import get_logger
from extraction.detector import detect_content_type
from extraction.patterns import extract_with_patterns
from extraction.structured import (
    STRUCTURED_CEILING,
    clean_raw_json,
    extract_html_text,
    extract_json_fields,
    extract_plain_text,
    extract_xml_fields,
    strip_scaffolding,
)


logger = get_logger(__name__)

Strategy = Callable[[str], Optional[str]]

DEFAULT_OUTPUT_CEILING = 2000
MIN_SIGNAL_CHARS = 50


def has_signal(text: Optional[str], minimum: int = MIN_SIGNAL_CHARS) -> bool:
    return text is not None and len(text.strip()) >= minimum


# =============================================================================
# Strategies
# =============================================================================

def json_fields_strategy(content: str) -> Optional[str]:
    extracted = extract_json_fields(content)
    if extracted is None or not has_signal(strip_scaffolding(extracted)):
        return None
    return extracted[:STRUCTURED_CEILING]


def pattern_strategy(content: str) -> Optional[str]:
    extracted = extract_with_patterns(content)
    if not has_signal(extracted):
        return None
    return extracted[:STRUCTURED_CEILING]


def raw_json_strategy(content: str) -> Optional[str]:
    return clean_raw_json(content)


def xml_fields_strategy(content: str) -> Optional[str]:
    extracted = extract_xml_fields(content)
    return extracted or None


def html_strategy(content: str) -> Optional[str]:
    return extract_html_text(content)


def plain_text_strategy(content: str) -> Optional[str]:
    return extract_plain_text(content)


DEFAULT_STRATEGIES: Dict[ContentType, List[Strategy]] = {
    ContentType.JSON: [json_fields_strategy, pattern_strategy, raw_json_strategy],
    ContentType.XML: [xml_fields_strategy, plain_text_strategy],
    ContentType.HTML: [html_strategy],
    ContentType.PLAIN_TEXT: [plain_text_strategy],
}


def run_strategies(content: str, strategies: Sequence[Strategy]) -> str:
    """Return the output of the first strategy that produces text."""
    for strategy in strategies:
        result = strategy(content)
        if result:
            return result
        logger.debug(
            "Strategy %s produced no usable text", strategy.__name__,
        )
    return ""


# =============================================================================
# Normalizer
# =============================================================================

class ContentNormalizer:
    """Reduces raw tracking payloads to bounded text.

    Usage:
        normalizer = ContentNormalizer()
        text = normalizer.normalize(response_body)
    """

    def __init__(
        self,
        output_ceiling: int = DEFAULT_OUTPUT_CEILING,
        strategies: Optional[Dict[ContentType, List[Strategy]]] = None,
    ):
        self.output_ceiling = output_ceiling
        self.strategies = strategies or DEFAULT_STRATEGIES

    def normalize(self, raw: Optional[str]) -> str:
        """Normalize ``raw`` to at most ``output_ceiling`` characters."""
        if raw is None or not raw.strip():
            return ""

        content_type = detect_content_type(raw)
        strategies = self.strategies.get(content_type)
        if strategies:
            result = run_strategies(raw.strip(), strategies)
        else:
            result = raw

        logger.debug(
            "Normalized %s payload: %d -> %d chars",
            content_type.value, len(raw), len(result),
            extra_fields={"content_type": content_type.value},
        )
        return result[:self.output_ceiling]


def normalize_content(raw: Optional[str], output_ceiling: int = DEFAULT_OUTPUT_CEILING) -> str:
    """Module-level convenience wrapper around ContentNormalizer."""
    return ContentNormalizer(output_ceiling=output_ceiling).normalize(raw)
