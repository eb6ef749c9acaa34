"""
Balance Reconciliation Engine

Recomputes every account's derived balances from the full ledger. No
incremental state is trusted: each run starts from the account metadata
and replays every row once, so running it twice in a row yields the same
snapshot.

PASSES:
1. Initialize: checking/cash start at their opening balance, cards and
   consolidated invoices at zero.
2. Replay each ledger row:
   - checking/cash: income adds, expense subtracts
   - credit card: an invoice payment subtracts from the pending balance;
     any other expense adds to it, and also to the current-cycle invoice
     when its due date falls in the calendar month after "today"
3. Roll each card with a parent group up into its consolidated invoice.
4. Write the visible balance back to the accounts sheet.

NOTE: "current cycle" is relative to the day the pass runs, not to each
card's own closing day. Two cards with different closing days are both
measured against next calendar month.
"""

from datetime import date
from typing import Callable

import structlog

from finbot.ledger.billing_cycle import shift_month
from finbot.ledger.lock import LedgerLock
from finbot.models.finance import (
    Account,
    AccountKind,
    AccountSnapshot,
    Transaction,
    TransactionKind,
)
from finbot.services.storage.repositories import AccountRepository, LedgerRepository
from finbot.text.normalizer import normalize


logger = structlog.get_logger(__name__)

INVOICE_PAYMENT_SUBCATEGORY = "pagamento de fatura"


def is_invoice_payment(transaction: Transaction) -> bool:
    return normalize(transaction.subcategory) == INVOICE_PAYMENT_SUBCATEGORY


def compute_snapshots(
    accounts: list[Account],
    transactions: list[Transaction],
    today: date,
) -> dict[str, AccountSnapshot]:
    """
    Pure reconciliation: accounts + ledger + today -> snapshots.

    Returns snapshots keyed by normalized account name. Rows pointing at
    unknown accounts are ignored.
    """
    snapshots: dict[str, AccountSnapshot] = {}
    for account in accounts:
        snapshots[account.normalized_name] = AccountSnapshot(
            account_name=account.name,
            kind=account.kind,
            running_balance=(
                account.opening_balance
                if account.kind in (AccountKind.CHECKING, AccountKind.CASH)
                else 0.0
            ),
            credit_limit=account.credit_limit,
        )

    cycle_year, cycle_month = shift_month(today.year, today.month, 1)

    for transaction in transactions:
        snapshot = snapshots.get(normalize(transaction.account))
        if snapshot is None:
            continue

        if snapshot.kind in (AccountKind.CHECKING, AccountKind.CASH):
            if transaction.kind == TransactionKind.INCOME:
                snapshot.running_balance += transaction.amount
            elif transaction.kind == TransactionKind.EXPENSE:
                snapshot.running_balance -= transaction.amount

        elif snapshot.kind == AccountKind.CREDIT_CARD:
            if is_invoice_payment(transaction):
                snapshot.total_pending_balance -= transaction.amount
            elif transaction.kind == TransactionKind.EXPENSE:
                snapshot.total_pending_balance += transaction.amount
                due = transaction.due_date
                if (due.year, due.month) == (cycle_year, cycle_month):
                    snapshot.current_cycle_invoice_total += transaction.amount

    for account in accounts:
        if not account.is_credit_card or not account.parent_group_key:
            continue
        parent = snapshots.get(account.parent_group_key)
        if parent is None or parent.kind != AccountKind.CONSOLIDATED_INVOICE:
            continue
        child = snapshots[account.normalized_name]
        parent.total_pending_balance += child.total_pending_balance
        parent.current_cycle_invoice_total += child.current_cycle_invoice_total

    return snapshots


class BalanceReconciler:
    """
    Runs compute_snapshots against storage and persists the result.

    Callers that need fresh balances call recompute_all() and use the
    returned snapshots; nothing is cached between runs.
    """

    def __init__(
        self,
        account_repository: AccountRepository,
        ledger_repository: LedgerRepository,
        lock: LedgerLock,
        today: Callable[[], date] = date.today,
        audit_logger=None,
    ):
        self._accounts = account_repository
        self._ledger = ledger_repository
        self._lock = lock
        self._today = today
        self._audit_logger = audit_logger

    async def recompute_all(self) -> dict[str, AccountSnapshot]:
        """
        Full replay under the ledger lock.

        Raises:
            ConcurrencyTimeoutError: If the lock is busy
            ConfigurationError: If a table or column is missing
        """
        async with self._lock.hold("reconciliation"):
            table, accounts = await self._accounts.load()
            transactions = await self._ledger.list_transactions()

            snapshots = compute_snapshots(accounts, transactions, self._today())

            for account in accounts:
                snapshot = snapshots.get(account.normalized_name)
                if snapshot is None:
                    continue
                await self._accounts.write_balance(table, account, snapshot.visible_balance)

        logger.info(
            "balances_recomputed",
            accounts=len(snapshots),
            rows=len(transactions),
        )
        if self._audit_logger:
            await self._audit_logger.log_balances_recomputed(
                account_count=len(snapshots),
                row_count=len(transactions),
            )
        return snapshots
