"""Regex fallback extraction.

Used when structured extraction finds too little. Works on the raw text,
so it also recovers fields from truncated or otherwise broken JSON.
"""

import re
from typing import List


def _quoted_pair(keys: str) -> "re.Pattern[str]":
    return re.compile(r'"(?:' + keys + r')"\s*:\s*"([^"]+)"', re.IGNORECASE)


# (tag, pattern, max matches)
FALLBACK_PATTERNS = (
    ("STATUS", _quoted_pair(
        "status|delivery_status|tracking_status|state|stage|ProcessDescForPortal|OperationDesc"
    ), 5),
    ("LOCATION", _quoted_pair(
        "location|city|destination|origin|hub|BranchName|ConsigneeCity"
    ), 3),
    ("TIME", _quoted_pair(
        "date|timestamp|delivered_at|delivery_date|TransactionDate"
    ), 2),
)


def extract_with_patterns(content: str) -> str:
    """``[TAG] value`` lines for quoted key/value pairs found in ``content``."""
    if not content:
        return ""

    lines: List[str] = []
    for tag, pattern, limit in FALLBACK_PATTERNS:
        for match in pattern.finditer(content):
            if limit <= 0:
                break
            value = match.group(1).strip()
            if value:
                lines.append(f"[{tag}] {value}")
                limit -= 1
    return "\n".join(lines)
