"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements Google Sheets as the backend, but designed to be swappable.
"""

from finbot.services.storage.interface import (
    ConnectionError,
    ExpiringCache,
    RowStore,
    StorageError,
)
from finbot.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsRowStore,
)
from finbot.services.storage.memory import (
    InMemoryExpiringCache,
    InMemoryRowStore,
)
from finbot.services.storage.repositories import (
    AccountRepository,
    BillRepository,
    BudgetRepository,
    GoalRepository,
    KeywordRepository,
    LedgerRepository,
    TableNames,
)
from finbot.services.storage.tables import (
    ACCOUNT_COLUMNS,
    BILL_COLUMNS,
    BUDGET_COLUMNS,
    DICTIONARY_COLUMNS,
    GOAL_COLUMNS,
    LEDGER_COLUMNS,
    RowRecord,
    Table,
)

__all__ = [
    # Interfaces
    "ExpiringCache",
    "RowStore",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsClient",
    "GoogleSheetsRowStore",
    # In-memory implementation
    "InMemoryExpiringCache",
    "InMemoryRowStore",
    # Repositories
    "AccountRepository",
    "BillRepository",
    "BudgetRepository",
    "GoalRepository",
    "KeywordRepository",
    "LedgerRepository",
    "TableNames",
    # Tables
    "ACCOUNT_COLUMNS",
    "BILL_COLUMNS",
    "BUDGET_COLUMNS",
    "DICTIONARY_COLUMNS",
    "GOAL_COLUMNS",
    "LEDGER_COLUMNS",
    "RowRecord",
    "Table",
]
