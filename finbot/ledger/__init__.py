"""
Ledger Package

Everything that writes to the ledger or derives state from it: the
billing-cycle calculator, the pending-confirmation store, the ledger lock,
the writer, the editor, payable bills and the reconciliation engine.
"""

from finbot.ledger.billing_cycle import (
    add_months,
    due_date_for_installment,
    due_date_for_purchase,
)
from finbot.ledger.bills import BillService
from finbot.ledger.editor import TransactionEditor
from finbot.ledger.lock import LedgerLock
from finbot.ledger.pending import PendingConfirmationStore
from finbot.ledger.reconciliation import BalanceReconciler, compute_snapshots
from finbot.ledger.writer import TransactionWriter, expand_draft

__all__ = [
    "add_months",
    "due_date_for_installment",
    "due_date_for_purchase",
    "BillService",
    "TransactionEditor",
    "LedgerLock",
    "PendingConfirmationStore",
    "BalanceReconciler",
    "compute_snapshots",
    "TransactionWriter",
    "expand_draft",
]
