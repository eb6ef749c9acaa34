"""
Payable Bills

Paying a bill writes one expense through the Transaction Writer and marks
the bill "Pago" with the new row's id as its link. Deleting that row later
(TransactionEditor.delete) reverts the bill to "Pendente".
"""

from datetime import date
from typing import Callable, Optional
from uuid import UUID, uuid4

import structlog

from finbot.errors import NotFoundError, UserInputError
from finbot.interpreter.dictionary import KeywordDictionary
from finbot.ledger.lock import LedgerLock
from finbot.ledger.writer import TransactionWriter
from finbot.models.finance import (
    AccountKind,
    BillStatus,
    PayableBill,
    PendingCandidate,
    Transaction,
    TransactionKind,
)
from finbot.services.storage.repositories import (
    AccountRepository,
    BillRepository,
    KeywordRepository,
)
from finbot.text.normalizer import normalize


logger = structlog.get_logger(__name__)

BILL_CATEGORY = "Contas a Pagar"

PAYMENT_METHOD_BY_KIND = {
    AccountKind.CHECKING: "Débito",
    AccountKind.CASH: "Dinheiro",
    AccountKind.CREDIT_CARD: "Crédito",
}


class BillService:
    """Lists and pays payable bills."""

    def __init__(
        self,
        bill_repository: BillRepository,
        keyword_repository: KeywordRepository,
        account_repository: AccountRepository,
        writer: TransactionWriter,
        lock: LedgerLock,
        today: Callable[[], date] = date.today,
        audit_logger=None,
    ):
        self._bills = bill_repository
        self._keywords = keyword_repository
        self._accounts = account_repository
        self._writer = writer
        self._lock = lock
        self._today = today
        self._audit_logger = audit_logger

    async def pending_bills(self) -> list[PayableBill]:
        bills = await self._bills.list_bills(BillStatus.PENDING)
        return sorted(bills, key=lambda b: (b.due_date is None, b.due_date or date.max))

    async def pay(
        self,
        bill_id: str,
        account_name: str,
        user: str,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """
        Pay a bill from an account.

        Returns:
            Id of the ledger row linked to the bill

        Raises:
            NotFoundError: Unknown or already paid bill, unknown account
            UserInputError: Bill has no amount
            ConcurrencyTimeoutError: If the lock is busy
        """
        async with self._lock.hold("pay_bill"):
            table, bill = await self._bills.find(bill_id)
            if bill is None or bill.status == BillStatus.PAID:
                raise NotFoundError("conta a pagar", bill_id)
            if bill.amount <= 0:
                raise UserInputError(f"A conta {bill.id} não tem valor definido.")

            rules = await self._keywords.list_rules()
            accounts = await self._accounts.list_accounts()
            account, _ = KeywordDictionary(rules, accounts).match_account(
                normalize(account_name)
            )
            if account is None or account.is_consolidated:
                raise NotFoundError("conta", account_name)

            today = self._today()
            transaction_id = str(uuid4())
            draft = Transaction(
                id=transaction_id,
                posted_date=today,
                description=bill.description,
                category=BILL_CATEGORY,
                subcategory=bill.description,
                kind=TransactionKind.EXPENSE,
                amount=bill.amount,
                payment_method=PAYMENT_METHOD_BY_KIND[account.kind],
                account=account.name,
                due_date=today,
                owner=user,
            )
            candidate = PendingCandidate(
                chat_id="",
                transaction_id=transaction_id,
                drafts=[draft],
            )
            row_ids = await self._writer.commit(candidate, user, correlation_id)
            linked_id = row_ids[0]

            await self._bills.set_status(table, bill, BillStatus.PAID, linked_id)
            logger.info("bill_paid", bill_id=bill.id, transaction_id=linked_id)

        if self._audit_logger:
            await self._audit_logger.log_bill_paid(
                bill_id=bill.id,
                transaction_id=linked_id,
                correlation_id=correlation_id,
            )
        return linked_id
