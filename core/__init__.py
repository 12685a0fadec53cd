"""Core module - platform-neutral order sync building blocks.

This module contains the canonical data models, configuration,
observability and sync result types. It is intentionally independent of
Shopify and Google Sheets.

Platform-specific logic belongs in /connectors/.
"""

__version__ = "1.0.0"
