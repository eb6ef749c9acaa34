"""
Report Service

DESIGN DECISION: Reports are DETERMINISTIC reads over the ledger.
Every figure shown to the user is computed here from stored rows; the
chat layer only formats it.

Reports never take the ledger lock. Right after a write they may see the
ledger before the reconciliation pass finishes; that is accepted.

Month attribution uses the row's due date, so a purchase in 3x counts
one installment in each of three months, and a card purchase counts in
the month its invoice is due. Rows outside cards have due date = date.
Transfer legs (including invoice payments) are movements between the
user's own accounts and never count as income or expense.
"""

from collections import defaultdict
from datetime import date
from typing import Optional

import structlog

from finbot.ledger.reconciliation import BalanceReconciler
from finbot.models.finance import (
    AccountSnapshot,
    BudgetProgress,
    GoalProgress,
    MonthlySummary,
    Transaction,
    TransactionKind,
)
from finbot.services.storage.repositories import (
    BudgetRepository,
    GoalRepository,
    LedgerRepository,
)
from finbot.text.normalizer import normalize


logger = structlog.get_logger(__name__)

TRANSFER_KEYS = ("transferencia", "transferencias")


def is_transfer_leg(transaction: Transaction) -> bool:
    return (
        normalize(transaction.payment_method) in TRANSFER_KEYS
        or normalize(transaction.category) in TRANSFER_KEYS
    )


def in_month(transaction: Transaction, month: int, year: int) -> bool:
    return transaction.due_date.month == month and transaction.due_date.year == year


def months_between(start: date, end: date) -> int:
    return (end.year - start.year) * 12 + (end.month - start.month)


class ReportService:
    """
    Read paths: monthly summary, budgets, goals and balances.

    GUARANTEES:
    - Only returns real data from storage
    - Empty months produce zero totals, not errors
    """

    def __init__(
        self,
        ledger_repository: LedgerRepository,
        budget_repository: BudgetRepository,
        goal_repository: GoalRepository,
        reconciler: BalanceReconciler,
    ):
        self._ledger = ledger_repository
        self._budgets = budget_repository
        self._goals = goal_repository
        self._reconciler = reconciler

    @staticmethod
    def summarize(transactions: list[Transaction], month: int, year: int) -> MonthlySummary:
        """Pure aggregation behind monthly_summary()."""
        summary = MonthlySummary(month=month, year=year)
        by_category: dict[str, float] = defaultdict(float)

        for transaction in transactions:
            if not in_month(transaction, month, year) or is_transfer_leg(transaction):
                continue
            if transaction.kind == TransactionKind.INCOME:
                summary.income_total += transaction.amount
            elif transaction.kind == TransactionKind.EXPENSE:
                summary.expense_total += transaction.amount
                by_category[transaction.category] += transaction.amount

        summary.expenses_by_category = dict(
            sorted(by_category.items(), key=lambda item: item[1], reverse=True)
        )
        return summary

    async def monthly_summary(self, month: int, year: int) -> MonthlySummary:
        transactions = await self._ledger.list_transactions()
        summary = self.summarize(transactions, month, year)
        logger.info(
            "monthly_summary",
            month=month,
            year=year,
            rows=len(transactions),
        )
        return summary

    async def budget_progress(self, month: int, year: int) -> list[BudgetProgress]:
        """Spent vs planned for each budgeted category in the month."""
        budgets = await self._budgets.list_budgets()
        summary = await self.monthly_summary(month, year)

        spent_by_key: dict[str, float] = defaultdict(float)
        for category, amount in summary.expenses_by_category.items():
            spent_by_key[normalize(category)] += amount

        return [
            BudgetProgress(
                category=budget.category,
                planned_amount=budget.planned_amount,
                spent_amount=spent_by_key.get(normalize(budget.category), 0.0),
            )
            for budget in budgets
        ]

    async def goal_progress(self, today: Optional[date] = None) -> list[GoalProgress]:
        """
        Progress of each savings goal.

        monthly_needed spreads what is missing over the months left until
        the deadline (at least one). Goals without a deadline have none.
        """
        today = today or date.today()
        goals = await self._goals.list_goals()

        progress = []
        for goal in goals:
            remaining = max(goal.target_amount - goal.saved_amount, 0.0)
            monthly_needed = None
            if goal.deadline is not None:
                months_left = max(months_between(today, goal.deadline), 1)
                monthly_needed = remaining / months_left
            progress.append(GoalProgress(
                name=goal.name,
                target_amount=goal.target_amount,
                saved_amount=goal.saved_amount,
                deadline=goal.deadline,
                monthly_needed=monthly_needed,
            ))
        return progress

    async def balances(self) -> dict[str, AccountSnapshot]:
        """Fresh snapshots: runs a reconciliation pass."""
        return await self._reconciler.recompute_all()
