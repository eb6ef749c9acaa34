"""
Two-Stage Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - FIELD RESOLUTION:
- The user-typed field name (any casing/accents) maps to a ledger column
- Unknown fields are rejected before any value is looked at

STAGE 2 - VALUE VALIDATION:
- Amounts parse as positive Brazilian numbers
- Dates parse as dd/mm/aaaa (or ISO)
- Types are expense or income (transfers are two rows, not one)
- Accounts exist in the accounts sheet

Candidates produced by the interpreter get a softer review: nothing is
rejected, but fields the dictionary could not identify are reported so
the confirmation message can point them out.

IMPORTANT: Validation NEVER silently fixes issues. Edits that fail raise
a UserInputError; candidate issues are shown for human review.
"""

from datetime import date
from typing import Optional

from finbot.errors import (
    AmbiguousTypeError,
    AmountNotFoundError,
    InvalidDateError,
    NotFoundError,
    UnknownFieldError,
    UserInputError,
)
from finbot.models.finance import (
    NOT_IDENTIFIED,
    Account,
    FieldEdit,
    PendingCandidate,
    TransactionKind,
    ValidationIssue,
)
from finbot.text.normalizer import (
    format_br_date,
    normalize,
    parse_br_date,
    parse_brl_float,
)


# Field aliases accepted by /editar, by normalized name
FIELD_ALIASES = {
    "descricao": "descricao",
    "valor": "valor",
    "categoria": "categoria",
    "subcategoria": "subcategoria",
    "conta": "conta",
    "metodo": "metodo",
    "metodo de pagamento": "metodo",
    "pagamento": "metodo",
    "data": "data",
    "vencimento": "vencimento",
    "data de vencimento": "vencimento",
    "tipo": "tipo",
}

DATE_FIELDS = ("data", "vencimento")


class EditValidator:
    """
    Validates one field edit typed by the user.

    Args:
        field_columns: Field alias -> ledger column (LedgerRepository.FIELD_COLUMNS)
    """

    def __init__(self, field_columns: dict[str, str]):
        self._field_columns = field_columns

    def resolve_field(self, field: str) -> tuple[str, str]:
        """
        Stage 1: field name -> (canonical field, ledger column).

        Raises:
            UnknownFieldError: If the field cannot be edited
        """
        canonical = FIELD_ALIASES.get(normalize(field))
        if canonical is None or canonical not in self._field_columns:
            allowed = ", ".join(sorted(self._field_columns))
            raise UnknownFieldError(
                f"Campo desconhecido: '{field}'.",
                hint=f"Campos editáveis: {allowed}.",
            )
        return canonical, self._field_columns[canonical]

    def validate(
        self,
        field: str,
        raw_value: str,
        accounts: Optional[dict[str, Account]] = None,
    ) -> FieldEdit:
        """
        Run both stages.

        Args:
            field: Field name as typed by the user
            raw_value: New value as typed by the user
            accounts: Accounts keyed by normalized name, needed for "conta"

        Returns:
            FieldEdit with the cell value to write

        Raises:
            UserInputError: For an unknown field or an unparseable value
            NotFoundError: If the new account does not exist
        """
        canonical, column = self.resolve_field(field)
        raw_value = (raw_value or "").strip()
        if not raw_value:
            raise UserInputError(f"Informe o novo valor para '{canonical}'.")

        if canonical == "valor":
            try:
                amount = parse_brl_float(raw_value)
            except ValueError:
                raise AmountNotFoundError(f"Não entendi o valor '{raw_value}'.")
            if amount <= 0:
                raise AmountNotFoundError("O valor precisa ser maior que zero.")
            return FieldEdit(field=canonical, column=column, value=amount)

        if canonical in DATE_FIELDS:
            try:
                parsed = parse_br_date(raw_value)
            except ValueError:
                raise InvalidDateError(
                    f"Data inválida: '{raw_value}'.",
                    hint="Use o formato dd/mm/aaaa.",
                )
            return FieldEdit(field=canonical, column=column, value=format_br_date(parsed))

        if canonical == "tipo":
            kind = TransactionKind.from_label(raw_value)
            if kind is None or kind == TransactionKind.TRANSFER:
                raise AmbiguousTypeError(
                    f"Tipo inválido: '{raw_value}'.",
                    hint="Use Despesa ou Receita.",
                )
            return FieldEdit(field=canonical, column=column, value=kind.value)

        if canonical == "conta" and accounts is not None:
            account = accounts.get(normalize(raw_value))
            if account is None:
                raise NotFoundError("conta", raw_value)
            return FieldEdit(field=canonical, column=column, value=account.name)

        return FieldEdit(field=canonical, column=column, value=raw_value)


def review_candidate(candidate: PendingCandidate, today: date) -> list[ValidationIssue]:
    """
    Issues worth pointing out before the user confirms.

    Never blocks confirmation; the user decides.
    """
    issues = []
    for draft in candidate.drafts:
        if draft.account == NOT_IDENTIFIED:
            issues.append(ValidationIssue(
                field="conta",
                issue_type="not_identified",
                message="Conta não identificada.",
            ))
        if not candidate.is_transfer and draft.category == NOT_IDENTIFIED:
            issues.append(ValidationIssue(
                field="categoria",
                issue_type="not_identified",
                message="Categoria não identificada.",
            ))
        if draft.posted_date > today:
            issues.append(ValidationIssue(
                field="data",
                issue_type="future_date",
                message=f"Data no futuro: {format_br_date(draft.posted_date)}.",
            ))
        if draft.installment_count > 1 and draft.kind == TransactionKind.INCOME:
            issues.append(ValidationIssue(
                field="parcelas",
                issue_type="suspicious_value",
                message="Receita parcelada: confira o número de parcelas.",
                severity="info",
            ))
    return issues
