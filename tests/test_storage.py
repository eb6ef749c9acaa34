"""
Tests for table access, the in-memory backend and the repositories.
"""

from datetime import date

import pytest

from finbot.config import GoogleSheetsSettings
from finbot.errors import ConfigurationError
from finbot.models.finance import AccountKind, BillStatus, ClosingPolicy, RuleType
from finbot.services.storage import (
    AccountRepository,
    InMemoryRowStore,
    KeywordRepository,
    LedgerRepository,
    StorageError,
    Table,
    TableNames,
)


class TestTable:
    """Tests for header-mapped tables."""

    def test_get_by_any_spelling(self):
        """Test column names ignore case and accents."""
        table = Table("T", [["Descrição", "Valor"], ["Café", " 10 "]])
        record = next(table.records())
        assert record.get("descricao") == "Café"
        assert record.get("DESCRIÇÃO") == "Café"
        assert record.get("valor") == "10"
        assert record.get("missing", "x") == "x"

    def test_short_row(self):
        """Test columns past the end of a row read as the default."""
        table = Table("T", [["A", "B"], ["1"]])
        assert next(table.records()).get("B") == ""

    def test_require(self):
        """Test a missing column is a configuration error naming it."""
        table = Table("Contas", [["Nome da Conta"]])
        with pytest.raises(ConfigurationError, match="Saldo Atualizado"):
            table.require("Nome da Conta", "Saldo Atualizado")

    def test_blank_rows_skipped_row_numbers_kept(self):
        """Test blank rows are skipped but row numbers match the sheet."""
        table = Table("T", [["ID"], ["a"], ["  "], ["b"]])
        assert [r.row_number for r in table.records()] == [2, 4]

    def test_find(self):
        """Test finding a record by exact value."""
        table = Table("T", [["ID", "X"], ["a", "1"], ["b", "2"]])
        assert table.find("ID", "b").get("X") == "2"
        assert table.find("ID", "c") is None

    def test_build_row_follows_header(self):
        """Test values are laid out in the sheet's own column order."""
        table = Table("T", [["Valor", "Notas", "ID"]])
        assert table.build_row({"ID": "a", "valor": 10.5, "Notas": None}) == [10.5, "", "a"]

    def test_column_number(self):
        """Test 1-based column numbers."""
        table = Table("T", [["A", "B"]])
        assert table.column_number("b") == 2


class TestInMemoryRowStore:
    """Tests for the in-memory backend."""

    async def test_cells_read_back_as_strings(self):
        """Test every cell is stored as text, like the spreadsheet."""
        store = InMemoryRowStore({"T": [["A", "B"]]})
        await store.append_row("T", [1.5, None])
        assert await store.get_all_rows("T") == [["A", "B"], ["1.5", ""]]

    async def test_set_cell_extends_short_row(self):
        """Test writing past the end of a row pads it."""
        store = InMemoryRowStore({"T": [["A", "B", "C"], ["x"]]})
        await store.set_cell("T", 2, 3, "z")
        assert (await store.get_all_rows("T"))[1] == ["x", "", "z"]

    async def test_set_cell_out_of_range(self):
        """Test writing outside the table."""
        store = InMemoryRowStore({"T": [["A"]]})
        with pytest.raises(StorageError):
            await store.set_cell("T", 5, 1, "z")

    async def test_delete_row_shifts(self):
        """Test rows below a deleted row move up."""
        store = InMemoryRowStore({"T": [["A"], ["1"], ["2"]]})
        await store.delete_row("T", 2)
        assert await store.get_all_rows("T") == [["A"], ["2"]]

    async def test_header_cannot_be_deleted(self):
        """Test the header row is protected."""
        store = InMemoryRowStore({"T": [["A"], ["1"]]})
        with pytest.raises(StorageError):
            await store.delete_row("T", 1)

    async def test_missing_table(self):
        """Test reading a table that does not exist."""
        with pytest.raises(ConfigurationError):
            await InMemoryRowStore().get_all_rows("Nope")


class TestRepositories:
    """Tests for the typed repositories."""

    async def test_accounts(self, store):
        """Test account rows become typed accounts."""
        accounts = await AccountRepository(store).list_accounts()

        by_name = {a.name: a for a in accounts}
        assert by_name["Itau"].opening_balance == 1000.0
        assert by_name["Itau"].row_number == 2
        card = by_name["Cartao X"]
        assert card.kind == AccountKind.CREDIT_CARD
        assert (card.closing_day, card.due_day) == (10, 20)
        assert card.closing_policy == ClosingPolicy.STANDARD
        assert card.parent_group_key == "fatura familia"

    async def test_account_with_unknown_kind_skipped(self, tables):
        """Test accounts of an unknown kind are skipped."""
        tables["Contas"].append(["Reserva", "Poupança", "0", "", "", "", "", "", ""])
        accounts = await AccountRepository(InMemoryRowStore(tables)).list_accounts()
        assert "Reserva" not in [a.name for a in accounts]

    async def test_keyword_rules(self, store):
        """Test dictionary rows become rules; type constraints are optional."""
        rules = await KeywordRepository(store).list_rules()

        mercado = next(r for r in rules if r.keyword == "mercado")
        assert mercado.rule_type == RuleType.CATEGORY
        assert mercado.interpreted_value == "Alimentação>Supermercado"
        assert mercado.type_constraint == "Despesa"
        farmacia = next(r for r in rules if r.keyword == "farmacia")
        assert farmacia.type_constraint is None

    async def test_unknown_rule_type_skipped(self, tables):
        """Test dictionary rows of an unknown table are skipped."""
        tables["Dicionario"].append(["Humor", "feliz", "Sim", ""])
        rules = await KeywordRepository(InMemoryRowStore(tables)).list_rules()
        assert "feliz" not in [r.keyword for r in rules]

    async def test_ledger_skips_malformed_rows(self, tables):
        """Test unreadable ledger rows are skipped, not fatal."""
        tables["Transacoes"] += [
            ["ok", "05/03/2026", "x", "", "", "Despesa", "10,50", "", "Itau", "", "", "", "", "", ""],
            ["bad-date", "ontem", "x", "", "", "Despesa", "10", "", "Itau", "", "", "", "", "", ""],
            ["bad-kind", "05/03/2026", "x", "", "", "Transferência", "10", "", "Itau", "", "", "", "", "", ""],
            ["", "05/03/2026", "x", "", "", "Despesa", "10", "", "Itau", "", "", "", "", "", ""],
        ]

        rows = await LedgerRepository(InMemoryRowStore(tables)).list_transactions()

        assert [r.id for r in rows] == ["ok"]
        assert rows[0].amount == 10.5
        assert rows[0].due_date == date(2026, 3, 5)
        assert rows[0].installment_count == 1

    async def test_bill_revert_linked(self, services):
        """Test only the bill linked to the transaction is reverted."""
        table, bill = await services.bills.find("B1")
        await services.bills.set_status(table, bill, BillStatus.PAID, "tx-9")

        assert await services.bills.revert_linked("tx-9") == ["B1"]
        assert await services.bills.revert_linked("tx-9") == []

    def test_table_names_from_settings(self):
        """Test sheet names come from the Google Sheets settings."""
        with pytest.warns(UserWarning):
            settings = GoogleSheetsSettings(
                credentials_path="/nonexistent/credentials.json",
                spreadsheet_id="sheet-id",
                ledger_sheet_name="Lancamentos",
            )
        names = TableNames.from_settings(settings)
        assert names.ledger == "Lancamentos"
        assert names.accounts == "Contas"
