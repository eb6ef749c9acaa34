"""
Abstract Storage Interfaces

DESIGN DECISION: The business logic only sees two small collaborators:

1. RowStore - a generic grid of rows (Google Sheets in production)
2. ExpiringCache - a keyed store with per-entry time-to-live

This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep interpretation and reconciliation decoupled from gspread

The interface is intentionally tiny - we're not building an ORM.
Typed access lives in the repositories on top of it.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class RowStore(ABC):
    """
    Abstract interface for a table-of-rows backend.

    Row and column numbers are 1-based and include the header row,
    matching spreadsheet coordinates.
    """

    @abstractmethod
    async def get_all_rows(self, table: str) -> list[list[str]]:
        """
        Read every row of a table, header first.

        Raises:
            ConfigurationError: If the table does not exist
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def append_row(self, table: str, row: list[Any]) -> None:
        """
        Append one row at the end of a table.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def set_cell(
        self,
        table: str,
        row_number: int,
        column_number: int,
        value: Any,
    ) -> None:
        """
        Overwrite a single cell.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_row(self, table: str, row_number: int) -> None:
        """
        Delete one row; rows below it move up.

        Raises:
            StorageError: If the delete fails
        """
        pass


class ExpiringCache(ABC):
    """
    Abstract interface for a keyed cache whose entries expire.

    Backs the pending-confirmation store and inbound deduplication.
    """

    @abstractmethod
    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value for at most ttl_seconds."""
        pass

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the value, or None if absent or expired."""
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Remove the key if present."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
