"""
Text Normalization and Brazilian Locale Parsing

Everything the interpreter compares goes through normalize() first:
lowercase, no accents, no punctuation, single spaces. Keyword rules,
account names and sheet headers are all matched in this folded form.

The parsing helpers understand the way Brazilian users write numbers
and dates ("1.234,56", "R$ 50,00", "15/10/2026").
"""

import re
import unicodedata
from datetime import date, datetime
from typing import Optional

from rapidfuzz.distance import Levenshtein


_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize(text: Optional[str]) -> str:
    """
    Fold text for comparison.

    normalize("Café, 2024!") == "cafe 2024"
    """
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", str(text).lower())
    stripped = "".join(c for c in decomposed if unicodedata.category(c) != "Mn")
    cleaned = _NON_ALNUM.sub("", stripped)
    return _WHITESPACE.sub(" ", cleaned).strip()


def similarity(a: str, b: str) -> float:
    """
    Similarity in [0, 1] based on Levenshtein distance.

    Computed as (max_len - distance) / max_len; two empty strings are
    identical.
    """
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    distance = Levenshtein.distance(a, b)
    return (max_len - distance) / max_len


def parse_brl_float(value) -> float:
    """
    Parse a monetary value written in Brazilian or international style.

    If the last comma comes after the last dot, the comma is the decimal
    separator and dots group thousands ("1.234,56"); otherwise the dot is
    decimal and commas group thousands ("1,234.56"). A bare digit string
    parses directly.

    Raises:
        ValueError: If no number can be read
    """
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value or "").strip()
    text = re.sub(r"(?i)r\$|\s", "", text)
    if not text:
        raise ValueError("Empty monetary value")

    if text.rfind(",") > text.rfind("."):
        text = text.replace(".", "").replace(",", ".")
    else:
        text = text.replace(",", "")

    return float(text)


def format_brl(value: float) -> str:
    """Format a value as Brazilian currency, e.g. R$ 1.234,56."""
    formatted = f"{abs(value):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    sign = "-" if value < 0 else ""
    return f"{sign}R$ {formatted}"


_DATE_FORMATS = ("%d/%m/%Y", "%Y-%m-%d", "%d/%m/%y", "%d-%m-%Y")


def parse_br_date(value) -> date:
    """
    Parse a date typed by a user or read back from the sheet.

    Accepts dd/mm/aaaa (preferred), ISO dates and ISO datetimes.

    Raises:
        ValueError: If the text is not a date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value or "").strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    # Sheets sometimes hand back full timestamps
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        raise ValueError(f"Not a date: {value!r}")


def format_br_date(value: date) -> str:
    """Format a date as dd/mm/aaaa."""
    return value.strftime("%d/%m/%Y")
