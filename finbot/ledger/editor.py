"""
Direct Edit and Delete of Ledger Rows

Both operations address a single row by its full id (e.g. "<uuid>-2" for
the second installment) and run under the same lock as commits, followed
by a reconciliation pass.

Deleting a row also reverts every payable bill that was paid by it: the
bill goes back to "Pendente" and its link is cleared.
"""

from typing import Optional
from uuid import UUID

import structlog

from finbot.errors import NotFoundError
from finbot.ledger.lock import LedgerLock
from finbot.ledger.reconciliation import BalanceReconciler
from finbot.models.finance import FieldEdit
from finbot.services.storage.repositories import (
    AccountRepository,
    BillRepository,
    LedgerRepository,
)
from finbot.validation.validator import EditValidator


logger = structlog.get_logger(__name__)


class TransactionEditor:
    """Edits and deletes ledger rows."""

    def __init__(
        self,
        ledger_repository: LedgerRepository,
        account_repository: AccountRepository,
        bill_repository: BillRepository,
        reconciler: BalanceReconciler,
        lock: LedgerLock,
        audit_logger=None,
    ):
        self._ledger = ledger_repository
        self._accounts = account_repository
        self._bills = bill_repository
        self._reconciler = reconciler
        self._lock = lock
        self._validator = EditValidator(LedgerRepository.FIELD_COLUMNS)
        self._audit_logger = audit_logger

    async def edit(
        self,
        transaction_id: str,
        field: str,
        value: str,
        user: str,
        correlation_id: Optional[UUID] = None,
    ) -> FieldEdit:
        """
        Change one field of one row.

        Raises:
            UserInputError: Unknown field or unparseable value
            NotFoundError: Unknown transaction id or account
            ConcurrencyTimeoutError: If the lock is busy
        """
        # Reject unknown fields before touching storage
        self._validator.resolve_field(field)

        async with self._lock.hold("edit"):
            table, record = await self._ledger.find(transaction_id)
            if record is None:
                raise NotFoundError("transação", transaction_id)

            accounts = await self._accounts.by_key()
            change = self._validator.validate(field, value, accounts)
            old_value = record.get(change.column)

            await self._ledger.set_field(table, record.row_number, change.column, change.value)
            logger.info(
                "transaction_edited",
                transaction_id=transaction_id,
                field=change.field,
                user=user,
            )

            await self._reconciler.recompute_all()

        if self._audit_logger:
            await self._audit_logger.log_transaction_edited(
                transaction_id=transaction_id,
                field=change.field,
                old_value=old_value,
                new_value=str(change.value),
                correlation_id=correlation_id,
            )
        return change

    async def delete(
        self,
        transaction_id: str,
        user: str,
        correlation_id: Optional[UUID] = None,
    ) -> list[str]:
        """
        Delete one row and revert the bills it paid.

        Returns:
            Ids of the reverted bills (usually empty)

        Raises:
            NotFoundError: Unknown transaction id
            ConcurrencyTimeoutError: If the lock is busy
        """
        transaction_id = transaction_id.strip()

        async with self._lock.hold("delete"):
            _, record = await self._ledger.find(transaction_id)
            if record is None:
                raise NotFoundError("transação", transaction_id)

            await self._ledger.delete(record.row_number)
            reverted = await self._bills.revert_linked(transaction_id)
            logger.info(
                "transaction_deleted",
                transaction_id=transaction_id,
                reverted_bills=reverted,
                user=user,
            )

            await self._reconciler.recompute_all()

        if self._audit_logger:
            await self._audit_logger.log_transaction_deleted(
                transaction_id=transaction_id,
                reverted_bill_id=", ".join(reverted) or None,
                correlation_id=correlation_id,
            )
            for bill_id in reverted:
                await self._audit_logger.log_bill_reverted(
                    bill_id=bill_id,
                    transaction_id=transaction_id,
                    correlation_id=correlation_id,
                )
        return reverted
