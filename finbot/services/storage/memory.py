"""
In-Memory Storage Implementations

Used by the test-suite and by the local chat console when Google Sheets
is not configured. Behaves like the spreadsheet: every cell reads back as
a string and row numbers shift after a delete.
"""

import time
from typing import Any, Callable, Optional

from finbot.errors import ConfigurationError
from finbot.services.storage.interface import ExpiringCache, RowStore, StorageError


class InMemoryRowStore(RowStore):
    """Dictionary of tables, each a list of rows with the header first."""

    def __init__(self, tables: Optional[dict[str, list[list[Any]]]] = None):
        self._tables: dict[str, list[list[str]]] = {}
        for name, rows in (tables or {}).items():
            self._tables[name] = [[self._cell(v) for v in row] for row in rows]

    @staticmethod
    def _cell(value: Any) -> str:
        return "" if value is None else str(value)

    def create_table(self, name: str, header: list[str]) -> None:
        self._tables.setdefault(name, [list(header)])

    def _table(self, name: str) -> list[list[str]]:
        try:
            return self._tables[name]
        except KeyError:
            raise ConfigurationError(f"Table not found: {name}")

    async def get_all_rows(self, table: str) -> list[list[str]]:
        return [list(row) for row in self._table(table)]

    async def append_row(self, table: str, row: list[Any]) -> None:
        self._table(table).append([self._cell(v) for v in row])

    async def set_cell(
        self,
        table: str,
        row_number: int,
        column_number: int,
        value: Any,
    ) -> None:
        rows = self._table(table)
        if row_number < 1 or row_number > len(rows) or column_number < 1:
            raise StorageError(
                f"Cell ({row_number}, {column_number}) outside table '{table}'"
            )
        row = rows[row_number - 1]
        while len(row) < column_number:
            row.append("")
        row[column_number - 1] = self._cell(value)

    async def delete_row(self, table: str, row_number: int) -> None:
        rows = self._table(table)
        if row_number < 2 or row_number > len(rows):
            raise StorageError(f"Row {row_number} outside table '{table}'")
        del rows[row_number - 1]


class InMemoryExpiringCache(ExpiringCache):
    """
    Per-key TTL cache.

    The clock is injectable so tests can move time forward.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries[key] = (value, self._clock() + ttl_seconds)

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def remove(self, key: str) -> None:
        self._entries.pop(key, None)
