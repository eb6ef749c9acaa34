"""
Tests for text normalization and Brazilian locale parsing.
"""

from datetime import date

import pytest

from finbot.text.normalizer import (
    format_br_date,
    format_brl,
    normalize,
    parse_br_date,
    parse_brl_float,
    similarity,
)


class TestNormalize:
    """Tests for normalize()."""

    def test_strips_accents_and_punctuation(self):
        """Test accents and punctuation are removed."""
        assert normalize("Café, 2024!") == "cafe 2024"

    def test_is_idempotent(self):
        """Test normalizing twice changes nothing."""
        once = normalize("  Cartão   de CRÉDITO!! ")
        assert normalize(once) == once
        assert once == "cartao de credito"

    def test_empty_and_none(self):
        """Test empty input folds to an empty string."""
        assert normalize("") == ""
        assert normalize(None) == ""

    def test_cedilla(self):
        """Test ç folds to c."""
        assert normalize("Alimentação") == "alimentacao"


class TestSimilarity:
    """Tests for similarity()."""

    def test_identical_strings(self):
        """Test a string is fully similar to itself."""
        assert similarity("mercado", "mercado") == 1.0

    def test_two_empty_strings(self):
        """Test two empty strings count as identical."""
        assert similarity("", "") == 1.0

    def test_one_substitution(self):
        """Test one substitution out of three characters."""
        assert similarity("abc", "abd") == pytest.approx(2 / 3)

    def test_substring_scores_by_length(self):
        """Test a longer keyword inside the same message scores higher."""
        message = "gastei 50 no mercado com cartao x"
        assert similarity(message, "cartao x") > similarity(message, "cartao")


class TestParseBrlFloat:
    """Tests for parse_brl_float()."""

    @pytest.mark.parametrize("text,expected", [
        ("1.234,56", 1234.56),
        ("123", 123.0),
        ("R$ 50,00", 50.0),
        ("1,234.56", 1234.56),
        ("0,5", 0.5),
        ("33.333333333333336", 33.333333333333336),
    ])
    def test_formats(self, text, expected):
        """Test Brazilian and international formats."""
        assert parse_brl_float(text) == pytest.approx(expected)

    def test_numbers_pass_through(self):
        """Test numeric cell values are returned as floats."""
        assert parse_brl_float(42) == 42.0

    def test_rejects_empty(self):
        """Test empty input raises ValueError."""
        with pytest.raises(ValueError):
            parse_brl_float("R$ ")

    def test_rejects_text(self):
        """Test non-numeric text raises ValueError."""
        with pytest.raises(ValueError):
            parse_brl_float("abc")


class TestFormatting:
    """Tests for currency and date formatting."""

    def test_format_brl(self):
        """Test thousands and decimal separators."""
        assert format_brl(1234.56) == "R$ 1.234,56"

    def test_format_brl_negative(self):
        """Test negative values keep the sign in front."""
        assert format_brl(-50) == "-R$ 50,00"

    def test_format_br_date(self):
        """Test dates are written dd/mm/aaaa."""
        assert format_br_date(date(2026, 4, 5)) == "05/04/2026"


class TestParseBrDate:
    """Tests for parse_br_date()."""

    @pytest.mark.parametrize("text", ["15/10/2026", "2026-10-15", "15/10/26", "15-10-2026"])
    def test_accepted_formats(self, text):
        """Test every accepted date format."""
        assert parse_br_date(text) == date(2026, 10, 15)

    def test_iso_timestamp(self):
        """Test full timestamps are cut to the date."""
        assert parse_br_date("2026-10-15T10:30:00") == date(2026, 10, 15)

    def test_invalid_date(self):
        """Test an impossible date raises ValueError."""
        with pytest.raises(ValueError):
            parse_br_date("32/01/2026")
