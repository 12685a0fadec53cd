"""Google Sheets ledger store.

Reads the ledger range and applies row mutations through the Sheets v4
REST API. Every write is one ``spreadsheets.batchUpdate`` call made of
``appendCells`` (new rows) and ``updateCells`` (full-row rewrites)
requests; cells carry their text and, when given, a background color.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp

from connectors.base import LedgerStore
from connectors.google_sheets.sheets_auth import GoogleServiceAccountAuth
from connectors.retry import RetryConfig, parse_retry_after
from core.config import AppConfiguration
from core.models.canonical import (
    LEDGER_FIELDS,
    LEDGER_HEADERS,
    LedgerMutation,
    LedgerRow,
    MutationKind,
    RowColor,
)
from core.observability.logging import get_logger


logger = get_logger(__name__)

SHEETS_API_URL = "https://sheets.googleapis.com/v4/spreadsheets"
FIRST_DATA_ROW = 2
LAST_COLUMN = "M"


class SheetsApiError(Exception):
    """Base exception for Google Sheets API errors."""
    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class SheetsAuthenticationError(SheetsApiError):
    """Credentials rejected (401/403)."""
    pass


# =============================================================================
# Colors
# =============================================================================

COLOR_PALETTE: Dict[RowColor, Dict[str, float]] = {
    RowColor.GREEN: {"red": 0.7, "green": 0.9, "blue": 0.7},
    RowColor.YELLOW: {"red": 1.0, "green": 1.0, "blue": 0.7},
    RowColor.ORANGE: {"red": 1.0, "green": 0.85, "blue": 0.6},
    RowColor.RED: {"red": 0.95, "green": 0.7, "blue": 0.7},
    RowColor.GREY: {"red": 0.85, "green": 0.85, "blue": 0.85},
    RowColor.WHITE: {"red": 1.0, "green": 1.0, "blue": 1.0},
}


def background_color(color: Optional[RowColor]) -> Optional[Dict[str, float]]:
    if color is None:
        return None
    return dict(COLOR_PALETTE.get(color, COLOR_PALETTE[RowColor.WHITE]))


# =============================================================================
# Row Mapping
# =============================================================================

def _parse_order_id(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        s = value.strip()
        return int(s) if s.isdigit() else None
    return None


def rows_from_values(values: List[List[Any]], first_row: int = FIRST_DATA_ROW) -> List[LedgerRow]:
    """Map a ``values`` range (starting at ``first_row``) to LedgerRows.

    Rows whose first cell is not an integer order id are ignored.
    """
    rows: List[LedgerRow] = []
    for offset, cells in enumerate(values):
        if not cells:
            continue
        order_id = _parse_order_id(cells[0])
        if order_id is None:
            continue
        padded = list(cells) + [""] * (len(LEDGER_FIELDS) - len(cells))
        data = dict(zip(LEDGER_FIELDS[1:], padded[1:len(LEDGER_FIELDS)]))
        rows.append(LedgerRow(row_index=first_row + offset, order_id=order_id, **data))
    return rows


def _cell(value: str, column: int, color: Optional[Dict[str, float]]) -> Dict[str, Any]:
    if column == 0 and str(value).isdigit():
        cell: Dict[str, Any] = {"userEnteredValue": {"numberValue": int(value)}}
    else:
        cell = {"userEnteredValue": {"stringValue": value}}
    if color is not None:
        cell["userEnteredFormat"] = {"backgroundColor": color}
    return cell


def _fields_mask(color: Optional[Dict[str, float]]) -> str:
    if color is None:
        return "userEnteredValue"
    return "userEnteredValue,userEnteredFormat.backgroundColor"


def build_batch_requests(mutations: List[LedgerMutation], sheet_id: int) -> List[Dict[str, Any]]:
    """Translate mutations into ``batchUpdate`` requests."""
    requests: List[Dict[str, Any]] = []
    for mutation in mutations:
        color = background_color(mutation.color)
        row_data = {
            "values": [_cell(v, i, color) for i, v in enumerate(mutation.values)],
        }

        if mutation.kind == MutationKind.APPEND:
            requests.append({
                "appendCells": {
                    "sheetId": sheet_id,
                    "rows": [row_data],
                    "fields": _fields_mask(color),
                }
            })
        else:
            if mutation.row_index is None:
                raise ValueError(f"Update for order {mutation.order_id} has no row_index")
            requests.append({
                "updateCells": {
                    "range": {
                        "sheetId": sheet_id,
                        "startRowIndex": mutation.row_index - 1,
                        "endRowIndex": mutation.row_index,
                        "startColumnIndex": 0,
                        "endColumnIndex": len(LEDGER_FIELDS),
                    },
                    "rows": [row_data],
                    "fields": _fields_mask(color),
                }
            })
    return requests


# =============================================================================
# Client
# =============================================================================

class GoogleSheetsLedger(LedgerStore):
    """Ledger store backed by one Google Sheets tab.

    Usage:
        ledger = GoogleSheetsLedger.from_config(config)
        await ledger.ensure_header()
        rows = await ledger.read_rows()
        await ledger.apply(mutations)
    """

    def __init__(
        self,
        auth: GoogleServiceAccountAuth,
        spreadsheet_id: str,
        sheet_name: str = "Sheet1",
        sheet_id: int = 0,
        retry_config: Optional[RetryConfig] = None,
        timeout_seconds: int = 30,
    ):
        self.auth = auth
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name
        self.sheet_id = sheet_id
        self.retry_config = retry_config or RetryConfig()
        self.timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_config(cls, config: AppConfiguration) -> "GoogleSheetsLedger":
        return cls(
            auth=GoogleServiceAccountAuth(config.google_credentials),
            spreadsheet_id=config.spreadsheet_id,
            sheet_name=config.sheet_name,
            sheet_id=config.sheet_id,
        )

    @property
    def data_range(self) -> str:
        return f"'{self.sheet_name}'!A{FIRST_DATA_ROW}:{LAST_COLUMN}"

    @property
    def header_range(self) -> str:
        return f"'{self.sheet_name}'!A1:{LAST_COLUMN}1"

    def _values_url(self, a1_range: str) -> str:
        return f"{SHEETS_API_URL}/{self.spreadsheet_id}/values/{quote(a1_range, safe='')}"

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, str]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Authenticated request with retries.

        Raises:
            SheetsAuthenticationError: Credentials rejected
            SheetsApiError: Other API or transport errors
        """
        session = await self._get_session()
        retry_config = self.retry_config

        for attempt in range(retry_config.max_retries + 1):
            try:
                headers = {
                    "Authorization": await self.auth.get_authorization_header(session),
                    "Accept": "application/json",
                }
                async with session.request(
                    method, url, headers=headers, params=params, json=data,
                ) as response:
                    body = await response.text()

                    if response.status < 400:
                        return json.loads(body) if body else {}

                    if response.status in (401, 403):
                        if attempt == 0:
                            logger.warning("Got %d from Sheets, refreshing token", response.status)
                            self.auth.invalidate()
                            continue
                        raise SheetsAuthenticationError(
                            f"Sheets authentication failed: {body}",
                            response.status,
                            body,
                        )

                    if retry_config.should_retry(response.status, attempt):
                        delay = retry_config.get_delay(attempt)
                        if response.status == 429:
                            delay = parse_retry_after(response.headers.get("Retry-After"), delay)
                        logger.warning(
                            "Sheets request failed with %d, retrying in %.1fs (attempt %d/%d)",
                            response.status, delay, attempt + 1, retry_config.max_retries,
                        )
                        await asyncio.sleep(delay)
                        continue

                    raise SheetsApiError(
                        f"Sheets API error {response.status}: {body}",
                        response.status,
                        body,
                    )

            except SheetsApiError:
                raise
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                if attempt < retry_config.max_retries:
                    delay = retry_config.get_delay(attempt)
                    logger.warning(
                        "Sheets request failed with %s: %s, retrying in %.1fs",
                        type(e).__name__, e, delay,
                    )
                    await asyncio.sleep(delay)
                    continue
                raise SheetsApiError(
                    f"Sheets request failed after {retry_config.max_retries} retries: {e}"
                ) from e

        raise SheetsApiError("Sheets request failed")

    async def read_rows(self) -> List[LedgerRow]:
        response = await self._request(
            "GET",
            self._values_url(self.data_range),
            params={"valueRenderOption": "UNFORMATTED_VALUE"},
        )
        rows = rows_from_values(response.get("values", []))
        logger.info("Read %d ledger rows", len(rows))
        return rows

    async def ensure_header(self) -> bool:
        """Write the header row if row 1 is empty. Returns True if written."""
        response = await self._request("GET", self._values_url(self.header_range))
        if response.get("values"):
            return False

        await self._request(
            "PUT",
            self._values_url(self.header_range),
            params={"valueInputOption": "RAW"},
            data={"range": self.header_range, "values": [LEDGER_HEADERS]},
        )
        logger.info("Wrote ledger header row")
        return True

    async def apply(self, mutations: List[LedgerMutation]) -> int:
        if not mutations:
            return 0

        requests = build_batch_requests(mutations, self.sheet_id)
        await self._request(
            "POST",
            f"{SHEETS_API_URL}/{self.spreadsheet_id}:batchUpdate",
            data={"requests": requests},
        )
        logger.info("Applied %d ledger mutations", len(mutations))
        return len(mutations)
