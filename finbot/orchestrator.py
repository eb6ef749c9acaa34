"""
Main Orchestrator for Finbot

This module ties together all the components and defines the end-to-end
conversation flow:
1. Message (text -> interpret -> pending candidate -> confirm/cancel buttons)
2. Callback (button press -> write to ledger, or discard)
3. Commands (/saldo, /resumo, /editar, /excluir, /pagar ...)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No transaction reaches the ledger without an explicit confirmation
- Each confirmation is single-use (a retried button press writes nothing)
- Every step is audited
- This is the ONLY place where exceptions become chat messages

Inbound events are deduplicated on their update id for a short TTL, so a
transport that redelivers the same update does not run it twice.
"""

from datetime import date, datetime
from typing import Callable, Optional
from uuid import UUID
from zoneinfo import ZoneInfo

import structlog
from pydantic import ValidationError

from finbot.audit import AuditLogger, create_correlation_id
from finbot.config import get_settings
from finbot.errors import (
    ConcurrencyTimeoutError,
    ConfigurationError,
    FinanceAssistantError,
    InvalidDateError,
    NotFoundError,
    UserInputError,
)
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
    AccountKind,
    AccountSnapshot,
    InboundEvent,
    InterpretationResult,
    InterpretationStatus,
    PendingCandidate,
)
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
    ExpiringCache,
    GoalRepository,
    GoogleSheetsClient,
    GoogleSheetsRowStore,
    InMemoryExpiringCache,
    InMemoryRowStore,
    KeywordRepository,
    LedgerRepository,
    RowStore,
    StorageError,
    TableNames,
)
from finbot.services.transport import Button, ChatTransport, RecordingTransport
from finbot.text.normalizer import format_br_date, format_brl
from finbot.validation import review_candidate


logger = structlog.get_logger(__name__)

CONFIRM_ACTION = "confirm"
CANCEL_ACTION = "cancel"

HELP_TEXT = """🤖 Como usar:

Envie uma frase com o lançamento:
• gastei 50 no mercado com Nubank
• comprei tênis 300 em 3x no cartão
• recebi 1000 de salário
• transferi 100 de Itaú para Nubank

Comandos:
/saldo - saldos e faturas
/resumo [mm/aaaa] - receitas e despesas do mês
/orcamento - orçamento do mês
/metas - progresso das metas
/contas - contas a pagar pendentes
/pagar <id> <conta> - pagar uma conta
/editar <id> <campo> <valor> - editar um lançamento
/excluir <id> - excluir um lançamento"""

EXPIRED_TEXT = "⌛ Esta confirmação expirou ou já foi processada."
BUSY_TEXT = "⏳ O sistema está ocupado com outro lançamento. Nada foi gravado; tente novamente."
INTERNAL_ERROR_TEXT = "⚠️ Erro interno. O problema foi registrado; tente novamente mais tarde."


def parse_callback_token(token: str) -> tuple[str, str]:
    """
    Split "confirm:<id>" / "cancel:<id>".

    Raises:
        UserInputError: For any other token
    """
    action, sep, transaction_id = (token or "").partition(":")
    if not sep or action not in (CONFIRM_ACTION, CANCEL_ACTION) or not transaction_id:
        raise UserInputError("Ação desconhecida.")
    return action, transaction_id


def parse_month_argument(argument: str, today: date) -> tuple[int, int]:
    """
    "mm/aaaa" (or "mm/aa", or nothing for the current month) -> (month, year).

    Raises:
        InvalidDateError: If the argument is not a month
    """
    argument = argument.strip()
    if not argument:
        return today.month, today.year
    month_text, sep, year_text = argument.partition("/")
    try:
        month = int(month_text)
        year = int(year_text) if sep else today.year
    except ValueError:
        raise InvalidDateError(f"Mês inválido: '{argument}'.", hint="Use /resumo mm/aaaa.")
    if year < 100:
        year += 2000
    if not 1 <= month <= 12:
        raise InvalidDateError(f"Mês inválido: '{argument}'.", hint="Use /resumo mm/aaaa.")
    return month, year


# =============================================================================
# MESSAGE RENDERING
# =============================================================================

def render_candidate(candidate: PendingCandidate, today: date) -> str:
    """Confirmation message for a pending candidate."""
    if candidate.is_transfer:
        source, destination = candidate.drafts
        lines = [
            "📝 Confirme a transferência:",
            f"Valor: {format_brl(source.amount)}",
            f"De: {source.account}",
            f"Para: {destination.account}",
            f"Categoria: {source.category} > {source.subcategory}",
        ]
    else:
        draft = candidate.drafts[0]
        amount = format_brl(draft.amount)
        if draft.installment_count > 1:
            part = format_brl(draft.amount / draft.installment_count)
            amount = f"{amount} ({draft.installment_count}x de {part})"
        lines = [
            "📝 Confirme o lançamento:",
            f"Tipo: {draft.kind.value}",
            f"Valor: {amount}",
            f"Descrição: {draft.description}",
            f"Categoria: {draft.category} > {draft.subcategory}",
            f"Conta: {draft.account}",
            f"Pagamento: {draft.payment_method}",
            f"Data: {format_br_date(draft.posted_date)}",
        ]
        if draft.due_date != draft.posted_date:
            lines.append(f"Vencimento: {format_br_date(draft.due_date)}")

    for issue in review_candidate(candidate, today):
        lines.append(f"⚠️ {issue.message}")
    return "\n".join(lines)


def render_snapshot(snapshot: AccountSnapshot) -> str:
    if snapshot.kind == AccountKind.CREDIT_CARD:
        return (
            f"💳 {snapshot.account_name}: fatura atual {format_brl(snapshot.current_cycle_invoice_total)}"
            f" | total pendente {format_brl(snapshot.total_pending_balance)}"
            f" | limite disponível {format_brl(snapshot.available_limit)}"
        )
    if snapshot.kind == AccountKind.CONSOLIDATED_INVOICE:
        return (
            f"🧾 {snapshot.account_name}: fatura atual {format_brl(snapshot.current_cycle_invoice_total)}"
            f" | total pendente {format_brl(snapshot.total_pending_balance)}"
        )
    return f"🏦 {snapshot.account_name}: {format_brl(snapshot.running_balance)}"


def confirmation_buttons(transaction_id: str) -> list[Button]:
    return [
        Button(label="✅ Confirmar", token=f"{CONFIRM_ACTION}:{transaction_id}"),
        Button(label="❌ Cancelar", token=f"{CANCEL_ACTION}:{transaction_id}"),
    ]


# =============================================================================
# CONVERSATION FLOW
# =============================================================================

class ConversationFlow:
    """
    Orchestrates one chat conversation.

    Flow:
    1. Message → interpreted into a candidate (nothing written)
    2. Review → candidate shown with confirm/cancel buttons (PAUSE)
    3. Confirm → rows written under the ledger lock, balances reconciled
       Cancel → candidate discarded

    Human confirmation (step 3) is MANDATORY.
    The system NEVER auto-saves.
    """

    def __init__(
        self,
        interpreter: TransactionInterpreter,
        pending_store: PendingConfirmationStore,
        writer: TransactionWriter,
        editor: TransactionEditor,
        bill_service: BillService,
        report_service: ReportService,
        transport: ChatTransport,
        cache: ExpiringCache,
        audit_logger: Optional[AuditLogger] = None,
        dedup_ttl_seconds: int = 60,
        lock_timeout_seconds: float = 30.0,
        today: Callable[[], date] = date.today,
    ):
        self._interpreter = interpreter
        self._pending = pending_store
        self._writer = writer
        self._editor = editor
        self._bills = bill_service
        self._reports = report_service
        self._transport = transport
        self._cache = cache
        self._audit_logger = audit_logger or AuditLogger()
        self._dedup_ttl_seconds = dedup_ttl_seconds
        self._lock_timeout_seconds = lock_timeout_seconds
        self._today = today

        self._commands = {
            "/ajuda": self._cmd_help,
            "/start": self._cmd_help,
            "/saldo": self._cmd_balances,
            "/resumo": self._cmd_summary,
            "/orcamento": self._cmd_budgets,
            "/metas": self._cmd_goals,
            "/contas": self._cmd_bills,
            "/pagar": self._cmd_pay,
            "/editar": self._cmd_edit,
            "/excluir": self._cmd_delete,
        }

    async def handle_event(self, event: InboundEvent) -> InterpretationResult:
        """Entry point for the transport: routes messages and button presses."""
        if event.is_callback:
            return await self.handle_callback(event)
        return await self.handle_message(event)

    async def _is_duplicate(self, event: InboundEvent, correlation_id: UUID) -> bool:
        key = f"dedup:{event.update_id}"
        if await self._cache.get(key) is not None:
            logger.info("duplicate_update_suppressed", update_id=event.update_id)
            await self._audit_logger.log_duplicate_suppressed(event.update_id, correlation_id)
            return True
        await self._cache.put(key, "1", self._dedup_ttl_seconds)
        return False

    async def handle_message(self, event: InboundEvent) -> InterpretationResult:
        """
        Handle a text message: a command or a transaction phrase.

        Returns:
            PENDING_CONFIRMATION with the candidate id, ERROR with the text
            shown to the user, or HANDLED for commands and duplicates
        """
        correlation_id = create_correlation_id()
        if await self._is_duplicate(event, correlation_id):
            return InterpretationResult.handled()

        await self._audit_logger.log_message_received(
            chat_id=event.chat_id,
            text=event.text,
            correlation_id=correlation_id,
        )

        text = event.text.strip()
        try:
            if text.startswith("/"):
                await self._run_command(event, text, correlation_id)
                return InterpretationResult.handled()

            result = await self._interpreter.interpret(text, event.chat_id, event.user)
        except (FinanceAssistantError, StorageError) as e:
            message = await self._report_error(event.chat_id, e, correlation_id)
            return InterpretationResult.error(message)

        if result.status == InterpretationStatus.ERROR:
            await self._audit_logger.log_interpretation_failed(
                chat_id=event.chat_id,
                reason=result.error_message,
                correlation_id=correlation_id,
            )
            await self._transport.send_message(event.chat_id, f"🤔 {result.error_message}")
            return result

        candidate = result.candidate
        draft = candidate.drafts[0]
        await self._audit_logger.log_candidate_pending(
            transaction_id=candidate.transaction_id,
            amount=draft.amount,
            installments=draft.installment_count,
            correlation_id=correlation_id,
        )
        await self._transport.send_message(
            event.chat_id,
            render_candidate(candidate, self._today()),
            buttons=confirmation_buttons(candidate.transaction_id),
        )
        return result

    async def handle_callback(self, event: InboundEvent) -> InterpretationResult:
        """
        Handle a confirm/cancel button press.

        The pending entry is consumed on the first press. Later presses
        (or presses after the TTL) are answered as expired and write nothing.
        """
        correlation_id = create_correlation_id()
        if await self._is_duplicate(event, correlation_id):
            return InterpretationResult.handled()

        try:
            action, transaction_id = parse_callback_token(event.callback_token)
        except UserInputError as e:
            message = await self._report_error(event.chat_id, e, correlation_id)
            return InterpretationResult.error(message)

        candidate = await self._pending.take(event.chat_id, transaction_id)
        if candidate is None:
            await self._audit_logger.log_confirmation_expired(
                transaction_id=transaction_id,
                action=action,
                correlation_id=correlation_id,
            )
            await self._transport.send_message(event.chat_id, EXPIRED_TEXT)
            return InterpretationResult.error(EXPIRED_TEXT)

        if action == CANCEL_ACTION:
            await self._audit_logger.log_user_cancelled(
                transaction_id=transaction_id,
                chat_id=event.chat_id,
                correlation_id=correlation_id,
            )
            await self._transport.send_message(event.chat_id, "❌ Lançamento cancelado.")
            return InterpretationResult.handled()

        await self._audit_logger.log_user_confirmed(
            transaction_id=transaction_id,
            chat_id=event.chat_id,
            correlation_id=correlation_id,
        )
        try:
            row_ids = await self._writer.commit(candidate, event.user, correlation_id)
        except ConcurrencyTimeoutError as e:
            # Nothing was written: give the user the button back
            await self._pending.put(candidate)
            message = await self._report_error(event.chat_id, e, correlation_id)
            return InterpretationResult.error(message)
        except (FinanceAssistantError, StorageError) as e:
            message = await self._report_error(event.chat_id, e, correlation_id)
            return InterpretationResult.error(message)

        ids = "\n".join(f"• {row_id}" for row_id in row_ids)
        await self._transport.send_message(
            event.chat_id,
            f"✅ Lançamento registrado ({len(row_ids)} linha(s)):\n{ids}",
        )
        return InterpretationResult.handled()

    async def _report_error(
        self,
        chat_id: str,
        error: Exception,
        correlation_id: UUID,
    ) -> str:
        """Turn a domain error into the message shown to the user, and send it."""
        if isinstance(error, UserInputError):
            message = str(error)
            if error.hint:
                message = f"{message}\n{error.hint}"
            message = f"🤔 {message}"
        elif isinstance(error, NotFoundError):
            message = f"🔎 Não encontrei {error.kind}: {error.identifier}"
        elif isinstance(error, ConcurrencyTimeoutError):
            await self._audit_logger.log_lock_timeout(
                operation=str(error),
                timeout_seconds=self._lock_timeout_seconds,
                correlation_id=correlation_id,
            )
            message = BUSY_TEXT
        elif isinstance(error, ConfigurationError):
            logger.critical("configuration_error", error=str(error))
            await self._audit_logger.log_configuration_error(
                error_message=str(error),
                correlation_id=correlation_id,
            )
            message = INTERNAL_ERROR_TEXT
        else:
            await self._audit_logger.log_error(
                error_type=type(error).__name__,
                error_message=str(error),
                correlation_id=correlation_id,
            )
            message = INTERNAL_ERROR_TEXT

        await self._transport.send_message(chat_id, message)
        return message

    # =========================================================================
    # COMMANDS
    # =========================================================================

    async def _run_command(self, event: InboundEvent, text: str, correlation_id: UUID) -> None:
        name, _, argument = text.partition(" ")
        # "/saldo@finbot" style mentions
        name = name.split("@", 1)[0].lower()
        handler = self._commands.get(name)
        if handler is None:
            raise UserInputError(f"Comando desconhecido: {name}", hint="Envie /ajuda.")
        await handler(event, argument.strip(), correlation_id)

    async def _cmd_help(self, event: InboundEvent, argument: str, correlation_id: UUID) -> None:
        await self._transport.send_message(event.chat_id, HELP_TEXT)

    async def _cmd_balances(self, event: InboundEvent, argument: str, correlation_id: UUID) -> None:
        snapshots = await self._reports.balances()
        if not snapshots:
            await self._transport.send_message(event.chat_id, "Nenhuma conta cadastrada.")
            return
        lines = ["💰 Saldos:"]
        lines.extend(render_snapshot(s) for s in snapshots.values())
        await self._transport.send_message(event.chat_id, "\n".join(lines))

    async def _cmd_summary(self, event: InboundEvent, argument: str, correlation_id: UUID) -> None:
        month, year = parse_month_argument(argument, self._today())
        summary = await self._reports.monthly_summary(month, year)
        lines = [
            f"📊 Resumo de {month:02d}/{year}",
            f"Receitas: {format_brl(summary.income_total)}",
            f"Despesas: {format_brl(summary.expense_total)}",
            f"Saldo do mês: {format_brl(summary.net)}",
        ]
        if summary.expenses_by_category:
            lines.append("")
            lines.append("Despesas por categoria:")
            for category, amount in summary.expenses_by_category.items():
                lines.append(f"• {category}: {format_brl(amount)}")
        await self._transport.send_message(event.chat_id, "\n".join(lines))

    async def _cmd_budgets(self, event: InboundEvent, argument: str, correlation_id: UUID) -> None:
        today = self._today()
        progress = await self._reports.budget_progress(today.month, today.year)
        if not progress:
            await self._transport.send_message(event.chat_id, "Nenhum orçamento cadastrado.")
            return
        lines = [f"📋 Orçamento de {today.month:02d}/{today.year}:"]
        for item in progress:
            marker = "🔴" if item.remaining < 0 else "🟢"
            lines.append(
                f"{marker} {item.category}: {format_brl(item.spent_amount)} de "
                f"{format_brl(item.planned_amount)} ({item.percent_used:.0f}%)"
            )
        await self._transport.send_message(event.chat_id, "\n".join(lines))

    async def _cmd_goals(self, event: InboundEvent, argument: str, correlation_id: UUID) -> None:
        progress = await self._reports.goal_progress(self._today())
        if not progress:
            await self._transport.send_message(event.chat_id, "Nenhuma meta cadastrada.")
            return
        lines = ["🎯 Metas:"]
        for goal in progress:
            line = (
                f"• {goal.name}: {format_brl(goal.saved_amount)} de "
                f"{format_brl(goal.target_amount)} ({goal.percent_complete:.0f}%)"
            )
            if goal.deadline is not None and goal.monthly_needed:
                line += (
                    f" - faltam {format_brl(goal.monthly_needed)}/mês"
                    f" até {format_br_date(goal.deadline)}"
                )
            lines.append(line)
        await self._transport.send_message(event.chat_id, "\n".join(lines))

    async def _cmd_bills(self, event: InboundEvent, argument: str, correlation_id: UUID) -> None:
        bills = await self._bills.pending_bills()
        if not bills:
            await self._transport.send_message(event.chat_id, "✅ Nenhuma conta pendente.")
            return
        lines = ["🧾 Contas a pagar:"]
        for bill in bills:
            due = f" (vence {format_br_date(bill.due_date)})" if bill.due_date else ""
            lines.append(f"• [{bill.id}] {bill.description}: {format_brl(bill.amount)}{due}")
        lines.append("")
        lines.append("Para pagar: /pagar <id> <conta>")
        await self._transport.send_message(event.chat_id, "\n".join(lines))

    async def _cmd_pay(self, event: InboundEvent, argument: str, correlation_id: UUID) -> None:
        bill_id, _, account_name = argument.partition(" ")
        if not bill_id or not account_name.strip():
            raise UserInputError("Uso: /pagar <id> <conta>")
        row_id = await self._bills.pay(bill_id, account_name.strip(), event.user, correlation_id)
        await self._transport.send_message(
            event.chat_id,
            f"✅ Conta {bill_id} paga. Lançamento: {row_id}",
        )

    async def _cmd_edit(self, event: InboundEvent, argument: str, correlation_id: UUID) -> None:
        parts = argument.split(maxsplit=2)
        if len(parts) < 3:
            raise UserInputError(
                "Uso: /editar <id> <campo> <valor>",
                hint="Campos: descricao, valor, categoria, subcategoria, conta, metodo, data, vencimento, tipo.",
            )
        transaction_id, field, value = parts
        change = await self._editor.edit(transaction_id, field, value, event.user, correlation_id)
        await self._transport.send_message(
            event.chat_id,
            f"✏️ {transaction_id}: {change.field} alterado para {change.value}",
        )

    async def _cmd_delete(self, event: InboundEvent, argument: str, correlation_id: UUID) -> None:
        if not argument:
            raise UserInputError("Uso: /excluir <id>")
        reverted = await self._editor.delete(argument, event.user, correlation_id)
        message = f"🗑️ Lançamento {argument} excluído."
        if reverted:
            message += f"\nContas voltaram a pendente: {', '.join(reverted)}"
        await self._transport.send_message(event.chat_id, message)


# =============================================================================
# FACTORY
# =============================================================================

def create_memory_store(names: Optional[TableNames] = None) -> InMemoryRowStore:
    """An empty in-memory store with every table and its header."""
    names = names or TableNames()
    store = InMemoryRowStore()
    store.create_table(names.ledger, LEDGER_COLUMNS)
    store.create_table(names.accounts, ACCOUNT_COLUMNS)
    store.create_table(names.dictionary, DICTIONARY_COLUMNS)
    store.create_table(names.bills, BILL_COLUMNS)
    store.create_table(names.budgets, BUDGET_COLUMNS)
    store.create_table(names.goals, GOAL_COLUMNS)
    store.create_table(names.audit, AUDIT_COLUMNS)
    return store


def create_app_components(
    use_storage: bool = True,
    transport: Optional[ChatTransport] = None,
    row_store: Optional[RowStore] = None,
    today: Optional[Callable[[], date]] = None,
) -> tuple[ConversationFlow, ChatTransport, RowStore]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to connect to Google Sheets.
                     Set to False to run on an in-memory store.
        transport: Outbound transport (RecordingTransport if None)
        row_store: Explicit row store; overrides use_storage
        today: Clock for "today" (the configured timezone if None)

    Returns:
        (conversation_flow, transport, row_store)
    """
    settings = get_settings()
    app_settings = settings.app
    names = TableNames()

    if row_store is None and use_storage:
        try:
            client = GoogleSheetsClient()
            client.get_spreadsheet()
            row_store = GoogleSheetsRowStore(client)
            names = TableNames.from_settings(settings.google_sheets)
        except (StorageError, ConfigurationError, ValidationError) as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            row_store = None
    if row_store is None:
        row_store = create_memory_store(names)

    if today is None:
        zone = ZoneInfo(app_settings.timezone)

        def today() -> date:
            return datetime.now(zone).date()

    transport = transport or RecordingTransport()
    cache = InMemoryExpiringCache()
    audit_logger = AuditLogger(row_store, table=names.audit)
    lock = LedgerLock(timeout_seconds=app_settings.lock_timeout_seconds)

    accounts = AccountRepository(row_store, names)
    ledger = LedgerRepository(row_store, names)
    keywords = KeywordRepository(row_store, names)
    bills = BillRepository(row_store, names)

    pending = PendingConfirmationStore(cache, ttl_seconds=app_settings.pending_ttl_seconds)
    reconciler = BalanceReconciler(accounts, ledger, lock, today=today, audit_logger=audit_logger)
    writer = TransactionWriter(
        ledger,
        accounts,
        reconciler,
        lock,
        audit_logger=audit_logger,
        max_installments=app_settings.max_installments,
    )

    flow = ConversationFlow(
        interpreter=TransactionInterpreter(
            keywords,
            accounts,
            pending,
            today=today,
            placeholder_description=app_settings.placeholder_description,
            min_description_length=app_settings.min_description_length,
            max_installments=app_settings.max_installments,
        ),
        pending_store=pending,
        writer=writer,
        editor=TransactionEditor(ledger, accounts, bills, reconciler, lock, audit_logger=audit_logger),
        bill_service=BillService(bills, keywords, accounts, writer, lock, today=today, audit_logger=audit_logger),
        report_service=ReportService(
            ledger,
            BudgetRepository(row_store, names),
            GoalRepository(row_store, names),
            reconciler,
        ),
        transport=transport,
        cache=cache,
        audit_logger=audit_logger,
        dedup_ttl_seconds=app_settings.dedup_ttl_seconds,
        lock_timeout_seconds=app_settings.lock_timeout_seconds,
        today=today,
    )
    return flow, transport, row_store
