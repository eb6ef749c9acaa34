"""
Transaction Writer

Turns a confirmed candidate into ledger rows.

FLOW (all under the ledger lock):
1. Split the amount evenly across the installments
2. Compute each installment's due date; credit-card purchases re-derive
   the first due date from the billing cycle instead of trusting the one
   stored in the candidate
3. Assign row ids:
   - installments: {base}-1 .. {base}-n
   - transfer legs: {base}-1 (expense) and {base}-2 (income)
   - a single row that is not part of a transfer: {base}
4. Append the rows
5. Reconcile balances before releasing the lock

NOTE: Installments use plain division. 100 in 3x is written as three rows
of 33.333..., and the sheet rounds for display. Cents are not moved
between installments.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

import structlog

from finbot.ledger.billing_cycle import (
    DEFAULT_MAX_INSTALLMENTS,
    check_installment_count,
    due_date_for_installment,
    due_date_for_purchase,
)
from finbot.ledger.lock import LedgerLock
from finbot.ledger.reconciliation import BalanceReconciler
from finbot.models.finance import Account, PendingCandidate, Transaction, TransactionKind
from finbot.services.storage.repositories import AccountRepository, LedgerRepository
from finbot.text.normalizer import normalize


logger = structlog.get_logger(__name__)


def expand_draft(
    draft: Transaction,
    account: Optional[Account],
    user: str,
    leg_number: Optional[int] = None,
    registered_at: Optional[datetime] = None,
    max_installments: int = DEFAULT_MAX_INSTALLMENTS,
) -> list[Transaction]:
    """
    One ledger row per installment of a draft.

    Args:
        draft: Candidate transaction (installment_index 1, bare base id)
        account: The draft's account, if it exists
        user: Who confirmed it
        leg_number: 1 or 2 for transfer legs, None otherwise
        registered_at: Shared registration time of the whole commit
        max_installments: Longest installment plan accepted

    Raises:
        InstallmentCountError: If the draft has more installments than that
    """
    count = check_installment_count(draft.installment_count, max_installments)
    base_id = draft.id
    registered_at = registered_at or datetime.now()

    first_due = draft.due_date
    if (
        account is not None
        and account.is_credit_card
        and leg_number is None
        and draft.kind == TransactionKind.EXPENSE
    ):
        first_due = due_date_for_purchase(account, draft.posted_date)

    part = draft.amount / count
    rows = []
    for index in range(1, count + 1):
        if leg_number is not None:
            row_id = f"{base_id}-{leg_number}"
        elif count == 1:
            row_id = base_id
        else:
            row_id = f"{base_id}-{index}"

        rows.append(draft.model_copy(update={
            "id": row_id,
            "amount": part,
            "installment_index": index,
            "due_date": due_date_for_installment(first_due, index, count),
            "owner": user or draft.owner,
            "registered_at": registered_at,
            "row_number": None,
        }))
    return rows


class TransactionWriter:
    """Writes confirmed candidates to the ledger."""

    def __init__(
        self,
        ledger_repository: LedgerRepository,
        account_repository: AccountRepository,
        reconciler: BalanceReconciler,
        lock: LedgerLock,
        audit_logger=None,
        max_installments: int = DEFAULT_MAX_INSTALLMENTS,
    ):
        self._ledger = ledger_repository
        self._accounts = account_repository
        self._reconciler = reconciler
        self._lock = lock
        self._audit_logger = audit_logger
        self._max_installments = max_installments

    async def commit(
        self,
        candidate: PendingCandidate,
        user: str,
        correlation_id: Optional[UUID] = None,
    ) -> list[str]:
        """
        Write a candidate (or transfer pair) and reconcile.

        Returns:
            Ids of the rows written, in order

        Raises:
            ConcurrencyTimeoutError: If the lock is busy; nothing is written
            InstallmentCountError: If a draft has too many installments; nothing is written
            ConfigurationError: If the ledger is missing a required column
        """
        async with self._lock.hold("commit"):
            accounts = await self._accounts.by_key()
            table = await self._ledger.load_table()
            registered_at = datetime.now()

            rows: list[Transaction] = []
            for position, draft in enumerate(candidate.drafts, start=1):
                rows.extend(expand_draft(
                    draft,
                    accounts.get(normalize(draft.account)),
                    user,
                    leg_number=position if candidate.is_transfer else None,
                    registered_at=registered_at,
                    max_installments=self._max_installments,
                ))

            for row in rows:
                await self._ledger.append(table, row)

            row_ids = [row.id for row in rows]
            logger.info(
                "transactions_written",
                transaction_id=candidate.transaction_id,
                rows=len(rows),
            )

            await self._reconciler.recompute_all()

        if self._audit_logger:
            await self._audit_logger.log_transactions_written(
                transaction_id=candidate.transaction_id,
                row_ids=row_ids,
                correlation_id=correlation_id,
            )
        return row_ids
