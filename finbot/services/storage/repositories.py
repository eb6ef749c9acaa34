"""
Typed Repositories over the Row Store

Each repository turns RowRecords into pydantic models and back. This is
the only layer that knows column names; the interpreter, the writer and
the reconciliation engine work with Account / Transaction / KeywordRule.

Malformed rows are skipped with a warning rather than failing the whole
load: one bad row typed by hand in the sheet must not block every user.
"""

from datetime import datetime
from typing import Optional

import structlog
from pydantic import BaseModel, ValidationError

from finbot.config import GoogleSheetsSettings
from finbot.models.finance import (
    Account,
    AccountKind,
    BillStatus,
    Budget,
    ClosingPolicy,
    Goal,
    KeywordRule,
    PayableBill,
    RuleType,
    Transaction,
    TransactionKind,
    TransactionStatus,
)
from finbot.services.storage.interface import RowStore
from finbot.services.storage.tables import RowRecord, Table
from finbot.text.normalizer import (
    format_br_date,
    normalize,
    parse_br_date,
    parse_brl_float,
)


logger = structlog.get_logger(__name__)


class TableNames(BaseModel):
    """Names of the tables inside the row store."""

    ledger: str = "Transacoes"
    accounts: str = "Contas"
    dictionary: str = "Dicionario"
    bills: str = "ContasAPagar"
    budgets: str = "Orcamento"
    goals: str = "Metas"
    audit: str = "Auditoria"

    @classmethod
    def from_settings(cls, settings: GoogleSheetsSettings) -> "TableNames":
        return cls(
            ledger=settings.ledger_sheet_name,
            accounts=settings.accounts_sheet_name,
            dictionary=settings.dictionary_sheet_name,
            bills=settings.bills_sheet_name,
            budgets=settings.budgets_sheet_name,
            goals=settings.goals_sheet_name,
            audit=settings.audit_sheet_name,
        )


def _to_float(value: str, default: float = 0.0) -> float:
    if not value:
        return default
    try:
        return parse_brl_float(value)
    except ValueError:
        return default


def _to_int(value: str) -> Optional[int]:
    if not value:
        return None
    try:
        return int(parse_brl_float(value))
    except ValueError:
        return None


def _to_date(value: str):
    return parse_br_date(value) if value else None


class _Repository:
    """Shared loading logic."""

    table_attr = ""
    required_columns: tuple[str, ...] = ()

    def __init__(self, store: RowStore, names: Optional[TableNames] = None):
        self._store = store
        self._names = names or TableNames()

    @property
    def table_name(self) -> str:
        return getattr(self._names, self.table_attr)

    async def load_table(self) -> Table:
        rows = await self._store.get_all_rows(self.table_name)
        return Table(self.table_name, rows).require(*self.required_columns)


# =============================================================================
# ACCOUNTS
# =============================================================================

class AccountRepository(_Repository):
    """Accounts sheet: static metadata plus the derived balance column."""

    table_attr = "accounts"
    required_columns = ("Nome da Conta", "Tipo", "Saldo Atualizado")

    @staticmethod
    def _record_to_account(record: RowRecord) -> Optional[Account]:
        kind = AccountKind.from_label(record.get("Tipo"))
        name = record.get("Nome da Conta")
        if kind is None or not name:
            return None
        parent = normalize(record.get("Conta Pai Agrupador")) or None
        return Account(
            name=name,
            kind=kind,
            opening_balance=_to_float(record.get("Saldo Inicial")),
            credit_limit=_to_float(record.get("Limite")),
            due_day=_to_int(record.get("Vencimento")),
            closing_day=_to_int(record.get("Dia de Fechamento")),
            closing_policy=ClosingPolicy.from_label(record.get("Tipo de Fechamento")),
            parent_group_key=parent,
            row_number=record.row_number,
        )

    async def load(self) -> tuple[Table, list[Account]]:
        table = await self.load_table()
        accounts = []
        for record in table.records():
            try:
                account = self._record_to_account(record)
            except ValidationError as e:
                logger.warning(
                    "account_row_skipped",
                    row_number=record.row_number,
                    error=str(e),
                )
                continue
            if account is None:
                logger.warning("account_row_skipped", row_number=record.row_number)
                continue
            accounts.append(account)
        return table, accounts

    async def list_accounts(self) -> list[Account]:
        _, accounts = await self.load()
        return accounts

    async def by_key(self) -> dict[str, Account]:
        """Accounts keyed by normalized name."""
        return {a.normalized_name: a for a in await self.list_accounts()}

    async def write_balance(self, table: Table, account: Account, value: float) -> None:
        if account.row_number is None:
            return
        await self._store.set_cell(
            self.table_name,
            account.row_number,
            table.column_number("Saldo Atualizado"),
            round(value, 2),
        )


# =============================================================================
# LEDGER
# =============================================================================

class LedgerRepository(_Repository):
    """The transaction ledger."""

    table_attr = "ledger"
    required_columns = (
        "ID",
        "Data",
        "Descrição",
        "Tipo",
        "Valor",
        "Conta",
        "Data de Vencimento",
    )

    # Editable ledger columns, by normalized field alias
    FIELD_COLUMNS = {
        "descricao": "Descrição",
        "valor": "Valor",
        "categoria": "Categoria",
        "subcategoria": "Subcategoria",
        "conta": "Conta",
        "metodo": "Método de Pagamento",
        "data": "Data",
        "vencimento": "Data de Vencimento",
        "tipo": "Tipo",
    }

    @staticmethod
    def _record_to_transaction(record: RowRecord) -> Optional[Transaction]:
        kind = TransactionKind.from_label(record.get("Tipo"))
        if kind is None or kind == TransactionKind.TRANSFER:
            return None
        posted = parse_br_date(record.get("Data"))
        registered = record.get("Data de Registro")
        try:
            registered_at = datetime.fromisoformat(registered) if registered else None
        except ValueError:
            registered_at = None
        return Transaction(
            id=record.get("ID"),
            posted_date=posted,
            description=record.get("Descrição"),
            category=record.get("Categoria"),
            subcategory=record.get("Subcategoria"),
            kind=kind,
            amount=parse_brl_float(record.get("Valor")),
            payment_method=record.get("Método de Pagamento"),
            account=record.get("Conta"),
            installment_count=_to_int(record.get("Parcelas Totais")) or 1,
            installment_index=_to_int(record.get("Parcela Atual")) or 1,
            due_date=_to_date(record.get("Data de Vencimento")) or posted,
            owner=record.get("Usuário"),
            status=TransactionStatus.ACTIVE,
            registered_at=registered_at or datetime.combine(posted, datetime.min.time()),
            row_number=record.row_number,
        )

    @staticmethod
    def transaction_to_values(transaction: Transaction) -> dict:
        return {
            "ID": transaction.id,
            "Data": format_br_date(transaction.posted_date),
            "Descrição": transaction.description,
            "Categoria": transaction.category,
            "Subcategoria": transaction.subcategory,
            "Tipo": transaction.kind.value,
            "Valor": transaction.amount,
            "Método de Pagamento": transaction.payment_method,
            "Conta": transaction.account,
            "Parcelas Totais": transaction.installment_count,
            "Parcela Atual": transaction.installment_index,
            "Data de Vencimento": format_br_date(transaction.due_date),
            "Usuário": transaction.owner,
            "Status": transaction.status.value,
            "Data de Registro": transaction.registered_at.isoformat(timespec="seconds"),
        }

    def parse_records(self, table: Table) -> list[Transaction]:
        transactions = []
        for record in table.records():
            try:
                transaction = self._record_to_transaction(record)
            except (ValueError, ValidationError) as e:
                logger.warning(
                    "ledger_row_skipped",
                    row_number=record.row_number,
                    error=str(e),
                )
                continue
            if transaction is None:
                logger.warning("ledger_row_skipped", row_number=record.row_number)
                continue
            transactions.append(transaction)
        return transactions

    async def list_transactions(self) -> list[Transaction]:
        return self.parse_records(await self.load_table())

    async def append(self, table: Table, transaction: Transaction) -> None:
        row = table.build_row(self.transaction_to_values(transaction))
        await self._store.append_row(self.table_name, row)

    async def find(self, transaction_id: str) -> tuple[Table, Optional[RowRecord]]:
        table = await self.load_table()
        return table, table.find("ID", transaction_id.strip())

    async def set_field(self, table: Table, row_number: int, column: str, value) -> None:
        await self._store.set_cell(
            self.table_name,
            row_number,
            table.column_number(column),
            value,
        )

    async def delete(self, row_number: int) -> None:
        await self._store.delete_row(self.table_name, row_number)


# =============================================================================
# KEYWORD DICTIONARY
# =============================================================================

class KeywordRepository(_Repository):
    """The keyword dictionary sheet."""

    table_attr = "dictionary"
    required_columns = ("Tipo", "Palavra-chave", "Valor Interpretado")

    async def list_rules(self) -> list[KeywordRule]:
        table = await self.load_table()
        rules = []
        for record in table.records():
            rule_type = RuleType.from_label(record.get("Tipo"))
            keyword = record.get("Palavra-chave")
            if rule_type is None or not keyword:
                logger.warning("keyword_row_skipped", row_number=record.row_number)
                continue
            rules.append(KeywordRule(
                rule_type=rule_type,
                keyword=keyword,
                interpreted_value=record.get("Valor Interpretado"),
                type_constraint=record.get("Tipo de Transação") or None,
            ))
        return rules


# =============================================================================
# PAYABLE BILLS
# =============================================================================

class BillRepository(_Repository):
    """Bills waiting to be paid, optionally linked to the paying transaction."""

    table_attr = "bills"
    required_columns = ("ID", "Descrição", "Valor", "Status", "ID Transação Vinculada")

    @staticmethod
    def _record_to_bill(record: RowRecord) -> PayableBill:
        return PayableBill(
            id=record.get("ID"),
            description=record.get("Descrição"),
            amount=_to_float(record.get("Valor")),
            due_date=_to_date(record.get("Data de Vencimento")),
            status=BillStatus.from_label(record.get("Status")),
            linked_transaction_id=record.get("ID Transação Vinculada") or None,
            row_number=record.row_number,
        )

    async def load(self) -> tuple[Table, list[PayableBill]]:
        table = await self.load_table()
        bills = []
        for record in table.records():
            try:
                bills.append(self._record_to_bill(record))
            except (ValueError, ValidationError) as e:
                logger.warning("bill_row_skipped", row_number=record.row_number, error=str(e))
        return table, bills

    async def list_bills(self, status: Optional[BillStatus] = None) -> list[PayableBill]:
        _, bills = await self.load()
        if status is not None:
            bills = [b for b in bills if b.status == status]
        return bills

    async def find(self, bill_id: str) -> tuple[Table, Optional[PayableBill]]:
        table, bills = await self.load()
        for bill in bills:
            if bill.id == bill_id.strip():
                return table, bill
        return table, None

    async def set_status(
        self,
        table: Table,
        bill: PayableBill,
        status: BillStatus,
        linked_transaction_id: Optional[str],
    ) -> None:
        await self._store.set_cell(
            self.table_name, bill.row_number, table.column_number("Status"), status.value
        )
        await self._store.set_cell(
            self.table_name,
            bill.row_number,
            table.column_number("ID Transação Vinculada"),
            linked_transaction_id or "",
        )

    async def revert_linked(self, transaction_id: str) -> list[str]:
        """
        Revert every bill paid by the given transaction to pending.

        Returns the ids of the reverted bills.
        """
        table, bills = await self.load()
        reverted = []
        for bill in bills:
            if bill.linked_transaction_id and bill.linked_transaction_id == transaction_id:
                await self.set_status(table, bill, BillStatus.PENDING, None)
                reverted.append(bill.id)
        return reverted


# =============================================================================
# BUDGETS AND GOALS
# =============================================================================

class BudgetRepository(_Repository):
    table_attr = "budgets"
    required_columns = ("Categoria", "Valor Orçado")

    async def list_budgets(self) -> list[Budget]:
        table = await self.load_table()
        budgets = []
        for record in table.records():
            category = record.get("Categoria")
            if not category:
                continue
            budgets.append(Budget(
                category=category,
                planned_amount=_to_float(record.get("Valor Orçado")),
            ))
        return budgets


class GoalRepository(_Repository):
    table_attr = "goals"
    required_columns = ("Nome da Meta", "Valor Alvo", "Valor Salvo")

    async def list_goals(self) -> list[Goal]:
        table = await self.load_table()
        goals = []
        for record in table.records():
            try:
                goals.append(Goal(
                    name=record.get("Nome da Meta"),
                    target_amount=_to_float(record.get("Valor Alvo")),
                    saved_amount=_to_float(record.get("Valor Salvo")),
                    deadline=_to_date(record.get("Data Alvo")),
                ))
            except (ValueError, ValidationError) as e:
                logger.warning("goal_row_skipped", row_number=record.row_number, error=str(e))
        return goals
