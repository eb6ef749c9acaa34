"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the storage backend because:
1. Users can view and fix their ledger directly in Sheets
2. No database setup required
3. Accounts, keywords and budgets are configured by editing a sheet

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (writers are serialized by the ledger lock)
- Limited query capabilities (we filter in Python)

The implementation follows the RowStore interface, so we can swap
to PostgreSQL/SQLite later without changing business logic.
"""

from typing import Any, Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from finbot.config import GoogleSheetsSettings, get_settings
from finbot.errors import ConfigurationError
from finbot.models.audit import AUDIT_COLUMNS
from finbot.services.storage.interface import ConnectionError, RowStore, StorageError
from finbot.services.storage.tables import LEDGER_COLUMNS


_RETRY = dict(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type(ConfigurationError),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and worksheet lookup.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(
        self,
        name: str,
        create_with: Optional[list[str]] = None,
    ) -> gspread.Worksheet:
        """
        Get a worksheet by name.

        If it does not exist and create_with is given, create it with that
        header; otherwise the spreadsheet is misconfigured.
        """
        if name in self._worksheets:
            return self._worksheets[name]

        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(name)
        except gspread.WorksheetNotFound:
            if create_with is None:
                raise ConfigurationError(f"Worksheet not found: {name}")
            sheet = spreadsheet.add_worksheet(
                title=name,
                rows=1000,
                cols=len(create_with),
            )
            sheet.append_row(create_with)

        self._worksheets[name] = sheet
        return sheet


class GoogleSheetsRowStore(RowStore):
    """
    Google Sheets implementation of the row store.

    The ledger and audit sheets are created on first use; every other
    sheet is configuration and must already exist.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        settings = self._client.settings
        self._auto_create = {
            settings.ledger_sheet_name: LEDGER_COLUMNS,
            settings.audit_sheet_name: AUDIT_COLUMNS,
        }

    def _sheet(self, table: str) -> gspread.Worksheet:
        return self._client.get_worksheet(table, self._auto_create.get(table))

    @retry(**_RETRY)
    async def get_all_rows(self, table: str) -> list[list[str]]:
        try:
            return self._sheet(table).get_all_values()
        except (ConfigurationError, ConnectionError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to read '{table}': {e}")

    @retry(**_RETRY)
    async def append_row(self, table: str, row: list[Any]) -> None:
        try:
            self._sheet(table).append_row(row, value_input_option="USER_ENTERED")
        except (ConfigurationError, ConnectionError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to append to '{table}': {e}")

    async def set_cell(
        self,
        table: str,
        row_number: int,
        column_number: int,
        value: Any,
    ) -> None:
        try:
            self._sheet(table).update_cell(row_number, column_number, value)
        except (ConfigurationError, ConnectionError):
            raise
        except Exception as e:
            raise StorageError(
                f"Failed to update '{table}' cell ({row_number}, {column_number}): {e}"
            )

    async def delete_row(self, table: str, row_number: int) -> None:
        try:
            self._sheet(table).delete_rows(row_number)
        except (ConfigurationError, ConnectionError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete row {row_number} of '{table}': {e}")
