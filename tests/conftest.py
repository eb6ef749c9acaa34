"""
Shared fixtures for Finbot tests

Test strategy:
1. Unit tests for pure pieces (normalizer, billing cycle, reconciliation)
2. Flow tests over the in-memory row store and cache
3. No real Google Sheets calls in tests

Every date-dependent test runs with TODAY fixed at 05/03/2026.
"""

from datetime import date
from types import SimpleNamespace

import pytest

from finbot.audit import AuditLogger
from finbot.interpreter import TransactionInterpreter
from finbot.ledger import (
    BalanceReconciler,
    BillService,
    LedgerLock,
    PendingConfirmationStore,
    TransactionEditor,
    TransactionWriter,
)
from finbot.models.audit import AUDIT_COLUMNS
from finbot.models.finance import (
    InboundEvent,
    PendingCandidate,
    Transaction,
    TransactionKind,
)
from finbot.orchestrator import ConversationFlow
from finbot.reports import ReportService
from finbot.services.storage import (
    ACCOUNT_COLUMNS,
    BILL_COLUMNS,
    BUDGET_COLUMNS,
    DICTIONARY_COLUMNS,
    GOAL_COLUMNS,
    LEDGER_COLUMNS,
    AccountRepository,
    BillRepository,
    BudgetRepository,
    GoalRepository,
    InMemoryExpiringCache,
    InMemoryRowStore,
    KeywordRepository,
    LedgerRepository,
)
from finbot.services.transport import RecordingTransport


TODAY = date(2026, 3, 5)

ACCOUNT_ROWS = [
    ["Itau", "Conta Corrente", "1.000,00", "", "", "", "", "", ""],
    ["Carteira", "Dinheiro Físico", "200", "", "", "", "", "", ""],
    ["Cartao X", "Cartão de Crédito", "0", "", "5000", "20", "10", "Padrão", "Fatura Familia"],
    ["Nubank", "Cartão de Crédito", "0", "", "3000", "15", "5", "Padrão", "Fatura Familia"],
    ["Fatura Familia", "Fatura Consolidada", "0", "", "", "", "", "", ""],
]

DICTIONARY_ROWS = [
    ["Categoria", "mercado", "Alimentação>Supermercado", "Despesa"],
    ["Categoria", "salario", "Renda>Salário", "Receita"],
    ["Categoria", "farmacia", "Saúde>Farmácia", ""],
    ["Meio de Pagamento", "pix", "Pix", ""],
    ["Meio de Pagamento", "debito", "Débito", ""],
    ["Conta", "roxinho", "Nubank", ""],
    ["Tipo de Transação", "vendi", "Receita", ""],
]

BILL_ROWS = [
    ["B1", "Aluguel", "1500", "10/03/2026", "Pendente", ""],
    ["B2", "Luz", "200", "08/03/2026", "Pendente", ""],
]


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def seed_tables() -> dict[str, list[list[str]]]:
    return {
        "Transacoes": [list(LEDGER_COLUMNS)],
        "Contas": [list(ACCOUNT_COLUMNS)] + [list(r) for r in ACCOUNT_ROWS],
        "Dicionario": [list(DICTIONARY_COLUMNS)] + [list(r) for r in DICTIONARY_ROWS],
        "ContasAPagar": [list(BILL_COLUMNS)] + [list(r) for r in BILL_ROWS],
        "Orcamento": [list(BUDGET_COLUMNS), ["Alimentação", "800"]],
        "Metas": [list(GOAL_COLUMNS), ["Viagem", "6000", "1500", "31/12/2026"]],
        "Auditoria": [list(AUDIT_COLUMNS)],
    }


def build_services(
    store: InMemoryRowStore,
    today=lambda: TODAY,
    lock_timeout: float = 30.0,
    clock=None,
) -> SimpleNamespace:
    """Wire every component over one store, the way create_app_components does."""
    cache = InMemoryExpiringCache(clock) if clock else InMemoryExpiringCache()
    transport = RecordingTransport()
    audit_logger = AuditLogger(store)
    lock = LedgerLock(timeout_seconds=lock_timeout)

    accounts = AccountRepository(store)
    ledger = LedgerRepository(store)
    keywords = KeywordRepository(store)
    bills = BillRepository(store)

    pending = PendingConfirmationStore(cache, ttl_seconds=900)
    reconciler = BalanceReconciler(accounts, ledger, lock, today=today, audit_logger=audit_logger)
    writer = TransactionWriter(ledger, accounts, reconciler, lock, audit_logger=audit_logger)
    editor = TransactionEditor(ledger, accounts, bills, reconciler, lock, audit_logger=audit_logger)
    bill_service = BillService(bills, keywords, accounts, writer, lock, today=today, audit_logger=audit_logger)
    reports = ReportService(ledger, BudgetRepository(store), GoalRepository(store), reconciler)
    interpreter = TransactionInterpreter(keywords, accounts, pending, today=today)

    flow = ConversationFlow(
        interpreter=interpreter,
        pending_store=pending,
        writer=writer,
        editor=editor,
        bill_service=bill_service,
        report_service=reports,
        transport=transport,
        cache=cache,
        audit_logger=audit_logger,
        dedup_ttl_seconds=60,
        lock_timeout_seconds=lock_timeout,
        today=today,
    )
    return SimpleNamespace(
        store=store,
        cache=cache,
        transport=transport,
        lock=lock,
        accounts=accounts,
        ledger=ledger,
        keywords=keywords,
        bills=bills,
        pending=pending,
        reconciler=reconciler,
        writer=writer,
        editor=editor,
        bill_service=bill_service,
        reports=reports,
        interpreter=interpreter,
        flow=flow,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryRowStore(seed_tables())


@pytest.fixture
def services(store, clock):
    return build_services(store, clock=clock)


@pytest.fixture
def services_factory(clock):
    """build_services with the shared fake clock, for custom stores or timeouts."""
    def _build(store, **kwargs):
        kwargs.setdefault("clock", clock)
        return build_services(store, **kwargs)
    return _build


@pytest.fixture
def tables():
    """Fresh copy of the seeded workbook, for tests that change its shape."""
    return seed_tables()


@pytest.fixture
async def dictionary(services):
    return await services.interpreter.load_dictionary()


@pytest.fixture
def make_draft():
    """Factory for candidate drafts."""
    def _make(
        account="Itau",
        amount=100.0,
        kind=TransactionKind.EXPENSE,
        installments=1,
        transaction_id="tx-1",
        due_date=TODAY,
        category="Alimentação",
        subcategory="Supermercado",
        payment_method="Débito",
    ) -> Transaction:
        return Transaction(
            id=transaction_id,
            posted_date=TODAY,
            description="Teste",
            category=category,
            subcategory=subcategory,
            kind=kind,
            amount=amount,
            payment_method=payment_method,
            account=account,
            installment_count=installments,
            due_date=due_date,
            owner="ana",
        )
    return _make


@pytest.fixture
def make_candidate(make_draft):
    """Factory for single-draft candidates."""
    def _make(**kwargs) -> PendingCandidate:
        draft = make_draft(**kwargs)
        return PendingCandidate(chat_id="chat-1", transaction_id=draft.id, drafts=[draft])
    return _make


@pytest.fixture
def make_event():
    """Factory for inbound messages and button presses with unique update ids."""
    counter = {"n": 0}

    def _make(text: str = "", callback_token: str = None, update_id: str = None) -> InboundEvent:
        counter["n"] += 1
        return InboundEvent(
            update_id=update_id or f"update-{counter['n']}",
            chat_id="chat-1",
            user="ana",
            text=text,
            callback_token=callback_token,
        )
    return _make


@pytest.fixture
def balance_of(store):
    """Reads the stored "Saldo Atualizado" of an account as a float."""
    async def _read(account_name: str) -> float:
        rows = await store.get_all_rows("Contas")
        column = rows[0].index("Saldo Atualizado")
        for row in rows[1:]:
            if row[0] == account_name:
                return float(row[column])
        raise KeyError(account_name)
    return _read
