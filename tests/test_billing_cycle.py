"""
Tests for the credit-card billing-cycle calculator.
"""

from datetime import date

import pytest

from finbot.ledger.billing_cycle import (
    add_months,
    check_installment_count,
    closing_month_for_purchase,
    due_date_for_installment,
    due_date_for_purchase,
)
from finbot.errors import InstallmentCountError
from finbot.models.finance import Account, AccountKind, ClosingPolicy


def card(closing_day=10, due_day=20, policy=ClosingPolicy.STANDARD) -> Account:
    return Account(
        name="Cartao X",
        kind=AccountKind.CREDIT_CARD,
        credit_limit=5000,
        closing_day=closing_day,
        due_day=due_day,
        closing_policy=policy,
    )


class TestDueDateForPurchase:
    """Tests for due_date_for_purchase()."""

    def test_purchase_before_closing(self):
        """Test a purchase before the closing day is due next month."""
        assert due_date_for_purchase(card(), date(2026, 3, 5)) == date(2026, 4, 20)

    def test_purchase_after_closing(self):
        """Test a purchase after the closing day rolls one more month."""
        assert due_date_for_purchase(card(), date(2026, 3, 15)) == date(2026, 5, 20)

    def test_purchase_on_closing_day(self):
        """Test the closing day itself is still in the current statement."""
        assert due_date_for_purchase(card(), date(2026, 3, 10)) == date(2026, 4, 20)

    def test_close_this_month_policy(self):
        """Test close-this-month follows the standard rule."""
        account = card(policy=ClosingPolicy.CLOSE_THIS_MONTH)
        assert due_date_for_purchase(account, date(2026, 3, 15)) == date(2026, 5, 20)

    def test_close_previous_month_policy(self):
        """Test close-previous-month never rolls, whatever the day."""
        account = card(policy=ClosingPolicy.CLOSE_PREVIOUS_MONTH)
        assert closing_month_for_purchase(account, date(2026, 3, 15)) == (2026, 3)
        assert due_date_for_purchase(account, date(2026, 3, 15)) == date(2026, 4, 20)

    def test_due_day_clamped_to_short_month(self):
        """Test a due day of 31 lands on the last day of February."""
        account = card(closing_day=25, due_day=31)
        assert due_date_for_purchase(account, date(2026, 1, 10)) == date(2026, 2, 28)

    def test_year_rollover(self):
        """Test a December purchase after closing is due in February."""
        assert due_date_for_purchase(card(), date(2026, 12, 15)) == date(2027, 2, 20)

    def test_no_due_day(self):
        """Test accounts without a due day settle on the purchase date."""
        account = card(due_day=None)
        assert due_date_for_purchase(account, date(2026, 3, 15)) == date(2026, 3, 15)

    def test_no_closing_day_uses_month_end(self):
        """Test a missing closing day means the statement closes at month end."""
        account = card(closing_day=None)
        assert due_date_for_purchase(account, date(2026, 3, 31)) == date(2026, 4, 20)

    def test_unknown_policy_label_is_standard(self):
        """Test unknown closing-policy labels fall back to the standard rule."""
        assert ClosingPolicy.from_label("qualquer coisa") == ClosingPolicy.STANDARD


class TestDueDateForInstallment:
    """Tests for due_date_for_installment()."""

    def test_first_installment_unchanged(self):
        """Test installment 1 is the first due date itself."""
        first = date(2026, 4, 20)
        assert due_date_for_installment(first, 1, 3) == first

    def test_january_31_to_february(self):
        """Test Jan 31 advances to the last day of February, not March."""
        assert due_date_for_installment(date(2026, 1, 31), 2, 3) == date(2026, 2, 28)

    def test_leap_year(self):
        """Test Jan 31 advances to Feb 29 in a leap year."""
        assert due_date_for_installment(date(2028, 1, 31), 2, 2) == date(2028, 2, 29)

    def test_computed_from_first_date(self):
        """Test the 31st comes back after a short month."""
        assert due_date_for_installment(date(2026, 1, 31), 3, 3) == date(2026, 3, 31)

    def test_one_per_month_strictly_increasing(self):
        """Test twelve installments fall in twelve consecutive months."""
        first = date(2026, 1, 31)
        dates = [due_date_for_installment(first, k, 12) for k in range(1, 13)]
        assert all(a < b for a, b in zip(dates, dates[1:]))
        months = [(d.year, d.month) for d in dates]
        assert len(set(months)) == 12
        assert months[-1] == (2026, 12)

    def test_rederivable(self):
        """Test the same inputs always give the same dates."""
        first = date(2026, 5, 31)
        assert [due_date_for_installment(first, k, 6) for k in range(1, 7)] == \
            [due_date_for_installment(first, k, 6) for k in range(1, 7)]

    @pytest.mark.parametrize("index,total", [(0, 3), (4, 3), (1, 0)])
    def test_invalid_index(self, index, total):
        """Test indexes outside 1..total raise ValueError."""
        with pytest.raises(ValueError):
            due_date_for_installment(date(2026, 1, 1), index, total)


class TestAddMonths:
    """Tests for add_months()."""

    def test_crosses_year(self):
        """Test adding a month to December."""
        assert add_months(date(2026, 12, 15), 1) == date(2027, 1, 15)

    def test_negative(self):
        """Test moving backwards."""
        assert add_months(date(2026, 3, 31), -1) == date(2026, 2, 28)


class TestCheckInstallmentCount:
    """Tests for check_installment_count()."""

    def test_within_limit(self):
        """Test counts up to the limit are accepted."""
        assert check_installment_count(1) == 1
        assert check_installment_count(48) == 48
        assert check_installment_count(12, limit=12) == 12

    def test_above_limit(self):
        """Test a count above the limit is a user error with the maximum as hint."""
        with pytest.raises(InstallmentCountError) as exc_info:
            check_installment_count(99999)
        assert "99999x" in str(exc_info.value)
        assert exc_info.value.hint == "O máximo é 48x."

    def test_custom_limit(self):
        """Test the limit is configurable."""
        with pytest.raises(InstallmentCountError):
            check_installment_count(13, limit=12)
