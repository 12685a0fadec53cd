"""Google Sheets ledger store."""

from connectors.google_sheets.sheets_auth import (
    GoogleAuthError,
    GoogleServiceAccountAuth,
    GoogleToken,
    build_signed_assertion,
)
from connectors.google_sheets.sheets_client import (
    COLOR_PALETTE,
    GoogleSheetsLedger,
    SheetsApiError,
    SheetsAuthenticationError,
    background_color,
    build_batch_requests,
    rows_from_values,
)

__all__ = [
    "GoogleSheetsLedger",
    "GoogleServiceAccountAuth",
    "GoogleToken",
    "GoogleAuthError",
    "SheetsApiError",
    "SheetsAuthenticationError",
    "COLOR_PALETTE",
    "background_color",
    "build_batch_requests",
    "build_signed_assertion",
    "rows_from_values",
]
