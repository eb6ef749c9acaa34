"""
Credit-Card Billing-Cycle Calculator

Pure date arithmetic. No storage, no clock: every function takes the
dates it needs, so the writer and the reconciliation pass can re-derive
the same due dates from persisted data at any time.

Example (closing day 10, due day 20, standard policy):
    purchase on 05/03 -> closes 10/03 -> due 20/04
    purchase on 15/03 -> closes 10/04 -> due 20/05
"""

import calendar
from datetime import date

from finbot.errors import InstallmentCountError
from finbot.models.finance import Account, ClosingPolicy


# Longest installment plan accepted when none is configured
DEFAULT_MAX_INSTALLMENTS = 48


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def shift_month(year: int, month: int, months: int) -> tuple[int, int]:
    """(year, month) moved by a number of months, either direction."""
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def clamped_date(year: int, month: int, day: int) -> date:
    """The given day, or the month's last day when the day does not exist."""
    return date(year, month, min(day, last_day_of_month(year, month)))


def add_months(start: date, months: int) -> date:
    """
    Same day-of-month, months later.

    Clamps to the last day when the target month is shorter:
    31/01 + 1 month -> 28/02 (or 29/02).
    """
    year, month = shift_month(start.year, start.month, months)
    return clamped_date(year, month, start.day)


def closing_month_for_purchase(account: Account, purchase_date: date) -> tuple[int, int]:
    """
    (year, month) of the statement that will include the purchase.

    STANDARD and CLOSE_THIS_MONTH: purchases after the closing day roll to
    next month's statement. CLOSE_PREVIOUS_MONTH: the statement of the
    purchase's own month, regardless of day.
    """
    year, month = purchase_date.year, purchase_date.month
    if account.closing_policy == ClosingPolicy.CLOSE_PREVIOUS_MONTH:
        return year, month

    closing_day = account.closing_day or last_day_of_month(year, month)
    if purchase_date.day > closing_day:
        return shift_month(year, month, 1)
    return year, month


def due_date_for_purchase(account: Account, purchase_date: date) -> date:
    """
    Invoice due date for a credit-card purchase.

    The invoice is due the month after its statement closes, on the
    account's due day (clamped to that month's last day). Accounts with no
    due day configured settle on the purchase date.
    """
    if not account.due_day:
        return purchase_date

    closing_year, closing_month = closing_month_for_purchase(account, purchase_date)
    due_year, due_month = shift_month(closing_year, closing_month, 1)
    return clamped_date(due_year, due_month, account.due_day)


def due_date_for_installment(
    first_due_date: date,
    installment_index: int,
    total_installments: int,
) -> date:
    """
    Due date of installment k of n.

    Installment 1 is first_due_date itself; installment k is k-1 months
    later. Always computed from the first date (never chained), so a
    31st keeps coming back on months that have one.

    Raises:
        ValueError: If the index is outside 1..total_installments
    """
    if total_installments < 1:
        raise ValueError("total_installments must be at least 1")
    if not 1 <= installment_index <= total_installments:
        raise ValueError(
            f"Installment {installment_index} outside 1..{total_installments}"
        )
    if installment_index == 1:
        return first_due_date
    return add_months(first_due_date, installment_index - 1)


def check_installment_count(count: int, limit: int = DEFAULT_MAX_INSTALLMENTS) -> int:
    """
    The count itself when the plan fits the limit.

    Raises:
        InstallmentCountError: If the count is above the limit
    """
    if count > limit:
        raise InstallmentCountError(
            f"Parcelamento em {count}x não é aceito.",
            hint=f"O máximo é {limit}x.",
        )
    return count
