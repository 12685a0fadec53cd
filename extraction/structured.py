"""Structured extractors for JSON, XML, HTML and plain-text tracking payloads.

Each extractor reduces a payload of one content type to a handful of
tagged lines (status, location, time, details, history). None of them
raise on malformed input; a payload that fails to parse is demoted to
the next cheaper representation.
"""

import html
import json
import re
from typing import Any, Dict, Iterable, List, Optional, Set

from extraction.truncate import truncate_intelligently


# =============================================================================
# Field Vocabularies (case-insensitive)
# =============================================================================

STATUS_FIELDS = frozenset(name.lower() for name in (
    "status", "delivery_status", "tracking_status", "shipment_status",
    "current_status", "order_status", "state", "stage", "step",
    "delivered", "is_delivered", "deliveryStatus", "OperationDesc",
    "ProcessDescForPortal", "StatusCode", "TrackingStatus", "CurrentStatus",
))

LOCATION_FIELDS = frozenset(name.lower() for name in (
    "location", "current_location", "last_location", "city",
    "ConsigneeCity", "destination", "origin", "hub", "facility",
    "OriginCity", "DestBranch", "BranchName", "CurrentLocation",
    "DestinationCity",
))

TIME_FIELDS = frozenset(name.lower() for name in (
    "date", "timestamp", "updated_at", "delivery_date", "TransactionDate",
    "expected_delivery", "estimated_delivery", "delivered_at", "CallDate",
    "CallTime", "DeliveryDate", "DateTime", "Time",
))

CONTEXT_FIELDS = frozenset(name.lower() for name in (
    "remarks", "message", "description", "details", "notes", "reason",
    "comment", "failed_reason", "exception", "ReasonDesc", "ConsigneeName",
    "ReceivedBy", "Recipient",
))

# (tag, field set) in emission order
CATEGORIES = (
    ("STATUS", STATUS_FIELDS),
    ("LOCATION", LOCATION_FIELDS),
    ("TIME", TIME_FIELDS),
    ("DETAILS", CONTEXT_FIELDS),
)

HISTORY_FIELDS = (
    "history", "events", "tracking_history", "shipment_history",
    "timeline", "updates",
)

HISTORY_LIMIT = 3

STRUCTURED_CEILING = 1500
RAW_JSON_CEILING = 1000

LATEST_HEADER = "### LATEST STATUS ###"
RECENT_HEADER = "### RECENT HISTORY ###"
TRACKING_HISTORY_HEADER = "### TRACKING HISTORY ###"
HISTORY_SEPARATOR = "---"
SCAFFOLD_LINES = frozenset((LATEST_HEADER, RECENT_HEADER, TRACKING_HISTORY_HEADER, HISTORY_SEPARATOR))

# Nesting below this depth is not walked
MAX_JSON_DEPTH = 64

_WHITESPACE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


# =============================================================================
# JSON
# =============================================================================

def _scalar_text(value: Any) -> Optional[str]:
    """String form of a string/boolean leaf, None for anything else."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        text = value.strip()
        return text or None
    return None


def _collect_fields(node: Any, fields: Set[str], tag: Optional[str],
                    seen: Set[str], lines: List[str], depth: int = 0) -> None:
    """Depth-first walk appending ``[TAG] name: value`` lines.

    Values are de-duplicated case-insensitively across the whole walk.
    """
    if depth > MAX_JSON_DEPTH:
        return
    if isinstance(node, dict):
        for key, value in node.items():
            if key.lower() in fields:
                text = _scalar_text(value)
                if text is not None and text.lower() not in seen:
                    seen.add(text.lower())
                    prefix = f"[{tag}] " if tag else ""
                    lines.append(f"{prefix}{key}: {text}")
            if isinstance(value, (dict, list)):
                _collect_fields(value, fields, tag, seen, lines, depth + 1)
    elif isinstance(node, list):
        for item in node:
            _collect_fields(item, fields, tag, seen, lines, depth + 1)


def _extract_categories(node: Any, categories: Iterable, tagged: bool = True) -> List[str]:
    lines: List[str] = []
    for tag, fields in categories:
        _collect_fields(node, fields, tag if tagged else None, set(), lines)
    return lines


def _lookup(entry: Dict[str, Any], *names: str) -> Optional[str]:
    """First non-empty scalar among ``names`` (case-insensitive keys)."""
    lowered = {key.lower(): value for key, value in entry.items()}
    for name in names:
        text = _scalar_text(lowered.get(name))
        if text:
            return text
    return None


def _find_history(node: Any) -> Optional[List[Any]]:
    """Locate the first known history/events array anywhere in the payload."""
    for name in HISTORY_FIELDS:
        found = _find_array_field(node, name)
        if found is not None:
            return found
    return None


def _find_array_field(node: Any, name: str, depth: int = 0) -> Optional[List[Any]]:
    if depth > MAX_JSON_DEPTH:
        return None
    if isinstance(node, dict):
        for key, value in node.items():
            if key.lower() == name and isinstance(value, list):
                return value
        for value in node.values():
            found = _find_array_field(value, name, depth + 1)
            if found is not None:
                return found
    elif isinstance(node, list):
        for item in node:
            found = _find_array_field(item, name, depth + 1)
            if found is not None:
                return found
    return None


def _render_history_entry(entry: Any) -> Optional[str]:
    if not isinstance(entry, dict):
        return None
    status = _lookup(entry, "status", "message", "description")
    if not status:
        return None
    line = f"- {status}"
    date = _lookup(entry, "date", "timestamp", "time")
    if date:
        line += f" ({date})"
    location = _lookup(entry, "location", "city")
    if location:
        line += f" at {location}"
    return line


def _extract_array_root(items: List[Any]) -> List[str]:
    lines = [LATEST_HEADER]
    lines.extend(_extract_categories(items[-1], CATEGORIES))

    previous = items[:-1][-HISTORY_LIMIT:]
    if previous:
        lines.append(RECENT_HEADER)
        history_categories = (CATEGORIES[0], CATEGORIES[2])
        for item in previous:
            lines.extend(_extract_categories(item, history_categories, tagged=False))
            lines.append(HISTORY_SEPARATOR)
    return lines


def _extract_object_root(root: Any) -> List[str]:
    lines = _extract_categories(root, CATEGORIES)

    history = _find_history(root)
    if history:
        rendered = [
            line for line in (_render_history_entry(e) for e in history[-HISTORY_LIMIT:])
            if line
        ]
        if rendered:
            lines.append(TRACKING_HISTORY_HEADER)
            lines.extend(rendered)
    return lines


def extract_json_fields(content: str) -> Optional[str]:
    """Tagged field lines from a JSON payload, or None if it does not parse."""
    try:
        root = json.loads(content)
    except (ValueError, RecursionError):
        return None

    if isinstance(root, list):
        if not root:
            return ""
        lines = _extract_array_root(root)
    else:
        lines = _extract_object_root(root)

    return "\n".join(lines).strip()


def strip_scaffolding(text: str) -> str:
    """Extracted lines without the section headers and history separators."""
    return "\n".join(
        line for line in text.splitlines() if line.strip() not in SCAFFOLD_LINES
    )


def clean_raw_json(content: str) -> str:
    """Whitespace-collapsed raw payload, bounded for the last-resort path."""
    return collapse_whitespace(content)[:RAW_JSON_CEILING]


# =============================================================================
# XML
# =============================================================================

XML_TAG_PATTERN = re.compile(
    r"<(?:status|location|date|time|message|description|remarks|delivery)[^>]*>([^<]+)</",
    re.IGNORECASE,
)


def extract_xml_fields(content: str) -> str:
    """Text of status-like XML elements joined by newline ("" if none)."""
    values = []
    for match in XML_TAG_PATTERN.finditer(content):
        text = html.unescape(match.group(1)).strip()
        if text:
            values.append(text)
    return "\n".join(values)


# =============================================================================
# HTML / Plain Text
# =============================================================================

_SCRIPT_STYLE = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_COMMENTS = re.compile(r"<!--.*?-->", re.DOTALL)
_TAGS = re.compile(r"<[^>]+>")


def html_to_text(content: str) -> str:
    """Visible text of an HTML document with whitespace collapsed."""
    text = _SCRIPT_STYLE.sub(" ", content)
    text = _COMMENTS.sub(" ", text)
    text = _TAGS.sub(" ", text)
    text = html.unescape(text)
    return collapse_whitespace(text)


def extract_html_text(content: str, max_length: int = STRUCTURED_CEILING) -> str:
    return truncate_intelligently(html_to_text(content), max_length)


def extract_plain_text(content: str, max_length: int = STRUCTURED_CEILING) -> str:
    return truncate_intelligently(collapse_whitespace(content), max_length)
