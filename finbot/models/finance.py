"""
Core Data Models for Finbot

These models define the schemas for everything flowing through the system:
accounts read from configuration, transactions written to the ledger,
candidates awaiting confirmation and the derived balance snapshots.

DESIGN DECISION: Values stored in the spreadsheet are the Portuguese labels
users see (e.g. "Despesa", "Cartão de Crédito"). Enums carry those labels as
values, and tolerant from_label() parsers accept any casing/accents.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    model_validator,
)

from finbot.text.normalizer import normalize


NOT_IDENTIFIED = "Não Identificado"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionKind(str, Enum):
    """
    Transaction type.

    Transfers never reach the ledger as such: they are written as one
    expense leg and one income leg.
    """
    EXPENSE = "Despesa"
    INCOME = "Receita"
    TRANSFER = "Transferência"

    @classmethod
    def from_label(cls, label: Optional[str]) -> Optional["TransactionKind"]:
        key = normalize(label)
        for kind in cls:
            if normalize(kind.value) == key:
                return kind
        return None


class AccountKind(str, Enum):
    """Kinds of accounts configured in the accounts sheet."""
    CHECKING = "Conta Corrente"
    CASH = "Dinheiro Físico"
    CREDIT_CARD = "Cartão de Crédito"
    CONSOLIDATED_INVOICE = "Fatura Consolidada"

    @classmethod
    def from_label(cls, label: Optional[str]) -> Optional["AccountKind"]:
        key = normalize(label)
        if not key:
            return None
        if "fatura" in key:
            return cls.CONSOLIDATED_INVOICE
        if "cartao" in key or "credito" in key:
            return cls.CREDIT_CARD
        if "dinheiro" in key:
            return cls.CASH
        if "conta" in key or "corrente" in key:
            return cls.CHECKING
        return None


class ClosingPolicy(str, Enum):
    """
    How a card's statement closing interacts with the purchase day.

    Unknown labels fall back to STANDARD.
    """
    STANDARD = "Padrão"
    CLOSE_THIS_MONTH = "Fechamento no Mês"
    CLOSE_PREVIOUS_MONTH = "Fechamento no Mês Anterior"

    @classmethod
    def from_label(cls, label: Optional[str]) -> "ClosingPolicy":
        key = normalize(label)
        if "anterior" in key:
            return cls.CLOSE_PREVIOUS_MONTH
        if "mes" in key:
            return cls.CLOSE_THIS_MONTH
        return cls.STANDARD


class TransactionStatus(str, Enum):
    """Ledger row status."""
    ACTIVE = "Ativo"


class BillStatus(str, Enum):
    """Payment status for a payable bill."""
    PENDING = "Pendente"
    PAID = "Pago"

    @classmethod
    def from_label(cls, label: Optional[str]) -> "BillStatus":
        return cls.PAID if normalize(label) == "pago" else cls.PENDING


class RuleType(str, Enum):
    """Which dictionary table a keyword rule belongs to."""
    TRANSACTION_TYPE = "Tipo de Transação"
    PAYMENT_METHOD = "Meio de Pagamento"
    ACCOUNT = "Conta"
    CATEGORY = "Categoria"

    @classmethod
    def from_label(cls, label: Optional[str]) -> Optional["RuleType"]:
        key = normalize(label)
        for rule_type in cls:
            if normalize(rule_type.value) == key:
                return rule_type
        return None


# =============================================================================
# CONFIGURATION MODELS (read-only to the engine)
# =============================================================================

class Account(BaseModel):
    """
    An account as configured in the accounts sheet.

    The derived balance columns are never a source of truth; the
    reconciliation engine recomputes them from the ledger.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(
        ...,
        min_length=1,
        description="Display name"
    )
    kind: AccountKind
    opening_balance: float = 0.0
    credit_limit: float = 0.0
    due_day: Optional[int] = Field(
        default=None,
        ge=1,
        le=31,
        description="Invoice due day (credit cards only)"
    )
    closing_day: Optional[int] = Field(
        default=None,
        ge=1,
        le=31,
        description="Statement closing day (credit cards only)"
    )
    closing_policy: ClosingPolicy = ClosingPolicy.STANDARD
    parent_group_key: Optional[str] = Field(
        default=None,
        description="Normalized name of the consolidated-invoice account"
    )

    # Where the account lives in the sheet (None for accounts built in code)
    row_number: Optional[int] = None

    @computed_field
    @property
    def normalized_name(self) -> str:
        return normalize(self.name)

    @property
    def is_credit_card(self) -> bool:
        return self.kind == AccountKind.CREDIT_CARD

    @property
    def is_consolidated(self) -> bool:
        return self.kind == AccountKind.CONSOLIDATED_INVOICE


class KeywordRule(BaseModel):
    """
    One row of the keyword dictionary.

    For category rules, interpreted_value is encoded as
    "Categoria>Subcategoria" and type_constraint optionally restricts the
    rule to one transaction type.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    rule_type: RuleType
    keyword: str = Field(..., min_length=1)
    interpreted_value: str
    type_constraint: Optional[str] = None
    canonical: bool = Field(
        default=False,
        description="True when the keyword is an account's own name"
    )

    @property
    def normalized_keyword(self) -> str:
        return normalize(self.keyword)


# =============================================================================
# LEDGER MODELS
# =============================================================================

class Transaction(BaseModel):
    """
    One ledger row.

    A candidate (unconfirmed) transaction uses the same model with
    installment_index fixed at 1 and the bare base id; the writer expands
    it into one row per installment.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    posted_date: date
    description: str
    category: str = NOT_IDENTIFIED
    subcategory: str = NOT_IDENTIFIED
    kind: TransactionKind
    amount: float = Field(..., gt=0)
    payment_method: str = NOT_IDENTIFIED
    account: str
    installment_count: int = Field(default=1, ge=1)
    installment_index: int = Field(default=1, ge=1)
    due_date: date
    owner: str = ""
    status: TransactionStatus = TransactionStatus.ACTIVE
    registered_at: datetime = Field(default_factory=datetime.now)

    # Where the row lives in the sheet (None before it is written)
    row_number: Optional[int] = None

    @model_validator(mode='after')
    def validate_installments(self) -> 'Transaction':
        """Installment index must fall inside the installment count."""
        if self.installment_index > self.installment_count:
            raise ValueError("Installment index cannot exceed installment count")
        if self.kind == TransactionKind.TRANSFER:
            raise ValueError("Transfers must be recorded as an expense and an income leg")
        return self


class PendingCandidate(BaseModel):
    """
    An interpreted transaction (or transfer pair) awaiting confirmation.

    Keyed in the pending store by (chat_id, transaction_id).
    """

    chat_id: str
    transaction_id: str
    drafts: list[Transaction] = Field(..., min_length=1, max_length=2)
    is_transfer: bool = False
    created_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode='after')
    def validate_pair(self) -> 'PendingCandidate':
        """Transfers carry exactly two legs; everything else exactly one draft."""
        expected = 2 if self.is_transfer else 1
        if len(self.drafts) != expected:
            raise ValueError(f"Expected {expected} draft(s), got {len(self.drafts)}")
        return self


class PayableBill(BaseModel):
    """A bill waiting to be paid (rent, utilities...)."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str
    description: str
    amount: float = Field(..., ge=0)
    due_date: Optional[date] = None
    status: BillStatus = BillStatus.PENDING
    linked_transaction_id: Optional[str] = None
    row_number: Optional[int] = None


class Budget(BaseModel):
    """Monthly spending plan for a category."""

    category: str
    planned_amount: float = Field(..., ge=0)


class Goal(BaseModel):
    """A savings goal."""

    name: str
    target_amount: float = Field(..., gt=0)
    saved_amount: float = 0.0
    deadline: Optional[date] = None


# =============================================================================
# DERIVED STATE
# =============================================================================

class AccountSnapshot(BaseModel):
    """
    Derived per-account state produced by a reconciliation pass.

    running_balance applies to checking/cash accounts; the two invoice
    totals apply to credit cards and consolidated invoices.
    """

    account_name: str
    kind: AccountKind
    running_balance: float = 0.0
    current_cycle_invoice_total: float = 0.0
    total_pending_balance: float = 0.0
    credit_limit: float = 0.0

    @property
    def visible_balance(self) -> float:
        """The value written back to the account's balance column."""
        if self.kind in (AccountKind.CREDIT_CARD, AccountKind.CONSOLIDATED_INVOICE):
            return self.total_pending_balance
        return self.running_balance

    @property
    def available_limit(self) -> float:
        return self.credit_limit - self.total_pending_balance


# =============================================================================
# INTERPRETATION AND CONVERSATION
# =============================================================================

class InterpretationStatus(str, Enum):
    PENDING_CONFIRMATION = "pending_confirmation"
    ERROR = "error"
    HANDLED = "handled"


class InterpretationResult(BaseModel):
    """
    Outcome of processing one inbound message.

    Exactly one of transaction_id (pending) or error_message (error) is set;
    HANDLED carries neither.
    """

    status: InterpretationStatus
    transaction_id: Optional[str] = None
    error_message: Optional[str] = None
    candidate: Optional[PendingCandidate] = None

    @classmethod
    def pending(cls, candidate: PendingCandidate) -> "InterpretationResult":
        return cls(
            status=InterpretationStatus.PENDING_CONFIRMATION,
            transaction_id=candidate.transaction_id,
            candidate=candidate,
        )

    @classmethod
    def error(cls, message: str) -> "InterpretationResult":
        return cls(status=InterpretationStatus.ERROR, error_message=message)

    @classmethod
    def handled(cls) -> "InterpretationResult":
        return cls(status=InterpretationStatus.HANDLED)


class InboundEvent(BaseModel):
    """
    A message or button press delivered by the chat transport.

    callback_token is set for button presses ("confirm:<id>" / "cancel:<id>").
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    update_id: str
    chat_id: str
    user: str
    text: str = ""
    callback_token: Optional[str] = None

    @property
    def is_callback(self) -> bool:
        return self.callback_token is not None


# =============================================================================
# REPORT MODELS
# =============================================================================

class MonthlySummary(BaseModel):
    month: int = Field(..., ge=1, le=12)
    year: int
    income_total: float = 0.0
    expense_total: float = 0.0
    expenses_by_category: dict[str, float] = Field(default_factory=dict)

    @property
    def net(self) -> float:
        return self.income_total - self.expense_total


class BudgetProgress(BaseModel):
    category: str
    planned_amount: float
    spent_amount: float

    @property
    def remaining(self) -> float:
        return self.planned_amount - self.spent_amount

    @property
    def percent_used(self) -> float:
        if self.planned_amount <= 0:
            return 0.0
        return self.spent_amount / self.planned_amount * 100


class GoalProgress(BaseModel):
    name: str
    target_amount: float
    saved_amount: float
    deadline: Optional[date] = None
    monthly_needed: Optional[float] = None

    @property
    def percent_complete(self) -> float:
        return min(self.saved_amount / self.target_amount * 100, 100.0)


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationIssue(BaseModel):
    """A single issue found while reviewing a candidate or an edit."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'not_identified', 'future_date')"
    )
    message: str = Field(
        ...,
        description="Human-readable description, in Portuguese"
    )
    severity: str = Field(
        default="warning",
        pattern="^(error|warning|info)$",
    )


class FieldEdit(BaseModel):
    """A validated edit: which ledger column gets which cell value."""

    field: str
    column: str
    value: Union[str, float]
