"""Order lifecycle scenarios: tag parsing, resolution, row templates and alerts."""

from scenarios.alerts import (
    AlertGenerator,
    stale_alert,
    tracking_alert,
    whatsapp_wait_alert,
    whatsapp_wait_color,
)
from scenarios.resolver import ScenarioResolver
from scenarios.tags import TagFlags, TagSet, parse_tag_flags
from scenarios.templates import (
    MutationTemplate,
    NO_OP_SCENARIOS,
    TEMPLATES,
    template_for,
)

__all__ = [
    "ScenarioResolver",
    "TagSet",
    "TagFlags",
    "parse_tag_flags",
    "MutationTemplate",
    "TEMPLATES",
    "NO_OP_SCENARIOS",
    "template_for",
    "AlertGenerator",
    "whatsapp_wait_alert",
    "whatsapp_wait_color",
    "stale_alert",
    "tracking_alert",
]
