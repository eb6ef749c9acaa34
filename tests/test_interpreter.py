"""
Tests for the transaction interpreter.

All messages are interpreted on 05/03/2026 against the accounts and
dictionary seeded in conftest.
"""

from datetime import date

import pytest

from finbot.errors import (
    AmbiguousTypeError,
    AmountNotFoundError,
    InstallmentCountError,
    TransferFormatError,
)
from finbot.interpreter.interpreter import (
    derive_description,
    extract_amount,
    extract_installments,
)
from finbot.models.finance import (
    NOT_IDENTIFIED,
    InterpretationStatus,
    TransactionKind,
)


@pytest.fixture
def build(services, dictionary):
    """Interpret a message without touching the pending store."""
    def _build(message: str):
        return services.interpreter.build_candidate(message, dictionary, "chat-1", "ana")
    return _build


class TestExtractAmount:
    """Tests for extract_amount()."""

    def test_brazilian_format(self):
        """Test thousands dot and decimal comma."""
        assert extract_amount("gastei R$ 1.234,56 no mercado") == (1234.56, "1.234,56")

    def test_thousands_only(self):
        """Test a dotted number without decimals is read as thousands."""
        assert extract_amount("paguei 1.500 de aluguel")[0] == 1500.0

    def test_decimal_comma(self):
        """Test a plain decimal comma."""
        assert extract_amount("gastei 12,5 no pao")[0] == 12.5

    def test_skips_installment_count(self):
        """Test "3x" is never taken as the amount."""
        assert extract_amount("comprei em 3x um tenis de 300")[0] == 300.0

    def test_only_installment_count(self):
        """Test a message whose only number is the installment count."""
        with pytest.raises(AmountNotFoundError):
            extract_amount("comprei em 3x")

    def test_zero(self):
        """Test zero is not an amount."""
        with pytest.raises(AmountNotFoundError):
            extract_amount("gastei 0 reais")


class TestExtractInstallments:
    """Tests for extract_installments()."""

    @pytest.mark.parametrize("text,expected", [
        ("comprei tenis 300 em 3x", 3),
        ("comprei tv 2000 em 10 vezes", 10),
        ("comprei tenis 300 em 3 x", 3),
        ("gastei 50 no mercado", 1),
        ("comprei algo 10 em 0x", 1),
    ])
    def test_counts(self, text, expected):
        """Test installment phrases."""
        assert extract_installments(text) == expected

    def test_above_limit(self):
        """Test an installment count above the limit is rejected."""
        with pytest.raises(InstallmentCountError):
            extract_installments("comprei tv 500 em 99999x")

    def test_custom_limit(self):
        """Test the limit can be lowered."""
        assert extract_installments("comprei tv 500 em 12x", limit=12) == 12
        with pytest.raises(InstallmentCountError):
            extract_installments("comprei tv 500 em 13x", limit=12)


class TestDeriveDescription:
    """Tests for derive_description()."""

    def test_removes_structured_parts(self):
        """Test amount, keywords and edge prepositions are removed."""
        text = "gastei 50 no mercado com cartao x"
        assert derive_description(text, "50", ["gastei", "cartao x"], "Lançamento") == "Mercado"

    def test_placeholder_when_too_short(self):
        """Test short leftovers fall back to the placeholder."""
        assert derive_description("gastei 50 no pix", "50", ["gastei", "pix"], "Lançamento") == "Lançamento"


class TestBuildCandidate:
    """Tests for the pure interpretation step."""

    def test_card_expense(self, build):
        """Test an expense on a card follows its billing cycle."""
        candidate = build("gastei 50 no mercado com Cartao X")
        draft = candidate.drafts[0]

        assert candidate.is_transfer is False
        assert draft.kind == TransactionKind.EXPENSE
        assert draft.amount == 50.0
        assert draft.account == "Cartao X"
        assert (draft.category, draft.subcategory) == ("Alimentação", "Supermercado")
        assert draft.payment_method == "Crédito"
        assert draft.description == "Mercado"
        assert draft.posted_date == date(2026, 3, 5)
        assert draft.due_date == date(2026, 4, 20)
        assert draft.owner == "ana"
        assert draft.id == candidate.transaction_id

    def test_installments(self, build):
        """Test an installment purchase keeps the total amount on the draft."""
        draft = build("comprei tenis 300 em 3x no Nubank").drafts[0]

        assert draft.amount == 300.0
        assert draft.installment_count == 3
        assert draft.installment_index == 1
        assert draft.description == "Tenis"
        assert draft.category == NOT_IDENTIFIED
        assert draft.due_date == date(2026, 4, 15)

    def test_income(self, build):
        """Test an income on a checking account is due today."""
        draft = build("recebi 1000 de salario no Itau").drafts[0]

        assert draft.kind == TransactionKind.INCOME
        assert draft.account == "Itau"
        assert (draft.category, draft.subcategory) == ("Renda", "Salário")
        assert draft.payment_method == NOT_IDENTIFIED
        assert draft.due_date == date(2026, 3, 5)
        assert draft.description == "Salario"

    def test_alias_account(self, build):
        """Test an account alias in a message."""
        assert build("gastei 20 na farmacia com roxinho").drafts[0].account == "Nubank"

    def test_debit_on_card_becomes_credit(self, build):
        """Test debit is never recorded against a credit card."""
        assert build("gastei 80 no debito com Nubank").drafts[0].payment_method == "Crédito"

    def test_debit_on_checking(self, build):
        """Test the dictionary payment method outside cards."""
        assert build("gastei 80 no debito com Itau").drafts[0].payment_method == "Débito"

    def test_unknown_account(self, build):
        """Test a message without an account still becomes a candidate."""
        draft = build("gastei 50 no mercado").drafts[0]
        assert draft.account == NOT_IDENTIFIED
        assert draft.due_date == date(2026, 3, 5)

    def test_placeholder_description(self, build):
        """Test a message with nothing left gets the placeholder."""
        assert build("gastei 50 no pix").drafts[0].description == "Lançamento"

    def test_ambiguous_type(self, build):
        """Test a message without a type."""
        with pytest.raises(AmbiguousTypeError) as exc_info:
            build("almoco 30")
        assert exc_info.value.hint

    def test_missing_amount(self, build):
        """Test a message without an amount."""
        with pytest.raises(AmountNotFoundError):
            build("gastei no mercado")

    def test_unique_ids(self, build):
        """Test every candidate gets a fresh id."""
        assert build("gastei 10 no mercado").transaction_id != build("gastei 10 no mercado").transaction_id


class TestTransfers:
    """Tests for the transfer sub-flow."""

    def test_transfer_between_accounts(self, build):
        """Test a transfer becomes an expense leg and an income leg."""
        candidate = build("transferi 100 do Itau para Carteira")
        source, destination = candidate.drafts

        assert candidate.is_transfer is True
        assert (source.kind, source.account) == (TransactionKind.EXPENSE, "Itau")
        assert (destination.kind, destination.account) == (TransactionKind.INCOME, "Carteira")
        assert source.amount == destination.amount == 100.0
        assert source.category == "Transferências"
        assert source.payment_method == "Transferência"
        assert source.description == "Transferência de Itau para Carteira"

    def test_transfer_to_card_is_invoice_payment(self, build):
        """Test paying a card by transfer is categorized as an invoice payment."""
        source, destination = build("transferi 500 do Itau para Nubank").drafts
        assert (destination.category, destination.subcategory) == ("Contas a Pagar", "Pagamento de Fatura")
        assert source.subcategory == "Pagamento de Fatura"

    def test_transfer_without_source(self, build):
        """Test the 'de ... para ...' shape is required."""
        with pytest.raises(TransferFormatError):
            build("transferi 100 para Carteira")

    def test_transfer_unknown_account(self, build):
        """Test both sides must be configured accounts."""
        with pytest.raises(TransferFormatError, match="origem"):
            build("transferi 100 do bradesco para Itau")

    def test_transfer_same_account(self, build):
        """Test source and destination must differ."""
        with pytest.raises(TransferFormatError):
            build("transferi 100 do Itau para Itau")


class TestInterpret:
    """Tests for interpret(), which parks candidates for confirmation."""

    async def test_pending_candidate_is_stored(self, services):
        """Test a successful interpretation is stored in the pending store."""
        result = await services.interpreter.interpret("gastei 50 no mercado com Itau", "chat-1", "ana")

        assert result.status == InterpretationStatus.PENDING_CONFIRMATION
        stored = await services.pending.get("chat-1", result.transaction_id)
        assert stored is not None
        assert stored.drafts[0].amount == 50.0

    async def test_user_error_becomes_result(self, services):
        """Test user mistakes come back as an error result with the hint."""
        result = await services.interpreter.interpret("almoco 30", "chat-1", "ana")

        assert result.status == InterpretationStatus.ERROR
        assert result.transaction_id is None
        assert "gastei 50 no mercado" in result.error_message

    async def test_nothing_written(self, services):
        """Test interpretation never writes to the ledger."""
        await services.interpreter.interpret("gastei 50 no mercado com Itau", "chat-1", "ana")
        assert await services.ledger.list_transactions() == []

    async def test_too_many_installments(self, services):
        """Test an oversized installment plan is refused before confirmation."""
        result = await services.interpreter.interpret(
            "comprei tv 500 em 99999x no Cartao X", "chat-1", "ana"
        )

        assert result.status == InterpretationStatus.ERROR
        assert result.transaction_id is None
        assert "Parcelamento em 99999x não é aceito." in result.error_message
        assert "O máximo é 48x." in result.error_message
