"""Content type detection for raw tracking payloads."""

import json

from core.models.canonical import ContentType


HTML_MARKERS = ("<html", "<body", "<div", "<script")


def _is_json(text: str) -> bool:
    try:
        json.loads(text)
    except (ValueError, RecursionError):
        return False
    return True


def detect_content_type(content: str) -> ContentType:
    """Classify a raw payload as JSON, XML, HTML, plain text or unknown.

    Checks run in order:
    1. blank -> UNKNOWN
    2. starts with ``{``/``[`` and parses -> JSON
    3. starts with ``<`` (or an XML declaration) and has a closing tag -> XML
    4. contains an HTML marker anywhere -> HTML
    5. otherwise PLAIN_TEXT

    A complete HTML document satisfies check 3 and is handled as XML.
    """
    if content is None or not content.strip():
        return ContentType.UNKNOWN

    trimmed = content.lstrip()

    if trimmed[0] in "{[" and _is_json(trimmed):
        return ContentType.JSON

    if trimmed.startswith("<") and "</" in trimmed and ">" in trimmed:
        return ContentType.XML

    lowered = trimmed.lower()
    if any(marker in lowered for marker in HTML_MARKERS):
        return ContentType.HTML

    return ContentType.PLAIN_TEXT
