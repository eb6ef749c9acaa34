"""
Header-Mapped Table Access

Rows come out of the spreadsheet as lists of strings. A Table builds a
header-to-index map once per load and hands out RowRecords with named
field access, so nothing downstream indexes rows by position.

Header matching is case/accent-insensitive: "Descrição", "descricao" and
"DESCRICAO" all name the same column.
"""

from typing import Any, Iterator, Optional

from finbot.errors import ConfigurationError
from finbot.text.normalizer import normalize


# Column headers for each table, in the order new tables are created with
LEDGER_COLUMNS = [
    "ID",
    "Data",
    "Descrição",
    "Categoria",
    "Subcategoria",
    "Tipo",
    "Valor",
    "Método de Pagamento",
    "Conta",
    "Parcelas Totais",
    "Parcela Atual",
    "Data de Vencimento",
    "Usuário",
    "Status",
    "Data de Registro",
]

ACCOUNT_COLUMNS = [
    "Nome da Conta",
    "Tipo",
    "Saldo Inicial",
    "Saldo Atualizado",
    "Limite",
    "Vencimento",
    "Dia de Fechamento",
    "Tipo de Fechamento",
    "Conta Pai Agrupador",
]

DICTIONARY_COLUMNS = [
    "Tipo",
    "Palavra-chave",
    "Valor Interpretado",
    "Tipo de Transação",
]

BILL_COLUMNS = [
    "ID",
    "Descrição",
    "Valor",
    "Data de Vencimento",
    "Status",
    "ID Transação Vinculada",
]

BUDGET_COLUMNS = [
    "Categoria",
    "Valor Orçado",
]

GOAL_COLUMNS = [
    "Nome da Meta",
    "Valor Alvo",
    "Valor Salvo",
    "Data Alvo",
]


class RowRecord:
    """One data row with access by column name."""

    __slots__ = ("row_number", "_values", "_index")

    def __init__(self, row_number: int, values: list[str], index: dict[str, int]):
        self.row_number = row_number
        self._values = values
        self._index = index

    def get(self, column: str, default: str = "") -> str:
        position = self._index.get(normalize(column))
        if position is None or position >= len(self._values):
            return default
        value = self._values[position]
        if value is None:
            return default
        text = str(value).strip()
        return text if text else default

    def is_blank(self) -> bool:
        return not any(str(v).strip() for v in self._values if v is not None)


class Table:
    """
    A loaded table: header map plus data rows.

    row_number on records is the spreadsheet row (header is row 1).
    """

    def __init__(self, name: str, rows: list[list[Any]]):
        self.name = name
        self.header = [str(h) for h in rows[0]] if rows else []
        self._index = {}
        for position, title in enumerate(self.header):
            key = normalize(title)
            if key and key not in self._index:
                self._index[key] = position
        self._rows = rows[1:] if rows else []

    def has_column(self, column: str) -> bool:
        return normalize(column) in self._index

    def require(self, *columns: str) -> "Table":
        """
        Check that every column exists.

        Raises:
            ConfigurationError: Naming the first missing column
        """
        for column in columns:
            if not self.has_column(column):
                raise ConfigurationError(
                    f"Column '{column}' not found in table '{self.name}'"
                )
        return self

    def column_number(self, column: str) -> int:
        """1-based column number for set_cell."""
        self.require(column)
        return self._index[normalize(column)] + 1

    def records(self) -> Iterator[RowRecord]:
        """Yield non-blank data rows."""
        for offset, values in enumerate(self._rows):
            record = RowRecord(offset + 2, list(values), self._index)
            if not record.is_blank():
                yield record

    def find(self, column: str, value: str) -> Optional[RowRecord]:
        """First record whose column equals value (exact, trimmed)."""
        self.require(column)
        for record in self.records():
            if record.get(column) == value:
                return record
        return None

    def build_row(self, values: dict[str, Any]) -> list[Any]:
        """
        Lay out values in this table's actual header order.

        Columns absent from values are left empty.
        """
        by_key = {normalize(k): v for k, v in values.items()}
        return ["" if by_key.get(normalize(title)) is None else by_key[normalize(title)]
                for title in self.header]
