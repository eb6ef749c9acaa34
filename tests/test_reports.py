"""
Tests for the report service.
"""

from datetime import date

import pytest

from finbot.models.finance import Transaction, TransactionKind
from finbot.reports import ReportService
from finbot.reports.service import is_transfer_leg, months_between
from finbot.services.storage import InMemoryRowStore


def tx(amount, kind=TransactionKind.EXPENSE, category="Alimentação", due=date(2026, 3, 10),
       payment_method="Débito"):
    return Transaction(
        id="t",
        posted_date=date(2026, 3, 1),
        description="x",
        category=category,
        kind=kind,
        amount=amount,
        payment_method=payment_method,
        account="Itau",
        due_date=due,
    )


LEDGER = [
    tx(1000, TransactionKind.INCOME, category="Renda"),
    tx(100),
    tx(50, category="Saúde", due=date(2026, 3, 3)),
    tx(200, category="Transferências", payment_method="Transferência"),
    tx(300, category="Contas a Pagar", payment_method="Transferência"),
    tx(999, due=date(2026, 4, 1)),
]


class TestSummarize:
    """Tests for the pure monthly aggregation."""

    def test_totals(self):
        """Test income and expense totals for the month."""
        summary = ReportService.summarize(LEDGER, 3, 2026)
        assert summary.income_total == 1000
        assert summary.expense_total == 150
        assert summary.net == 850

    def test_by_category_sorted(self):
        """Test categories are listed from the largest expense down."""
        summary = ReportService.summarize(LEDGER, 3, 2026)
        assert list(summary.expenses_by_category.items()) == [("Alimentação", 100), ("Saúde", 50)]

    def test_empty_month(self):
        """Test a month without rows is all zeros."""
        summary = ReportService.summarize(LEDGER, 1, 2026)
        assert summary.income_total == summary.expense_total == 0
        assert summary.expenses_by_category == {}

    def test_transfer_legs(self):
        """Test transfer legs are recognized by method or category."""
        assert is_transfer_leg(tx(1, payment_method="Transferência"))
        assert is_transfer_leg(tx(1, category="Transferências", payment_method="Pix"))
        assert not is_transfer_leg(tx(1))

    def test_months_between(self):
        """Test calendar months between two dates."""
        assert months_between(date(2026, 3, 5), date(2026, 12, 31)) == 9
        assert months_between(date(2026, 3, 5), date(2026, 1, 1)) == -2


class TestReportService:
    """Tests for the storage-backed reports."""

    async def test_installments_counted_by_due_month(self, services, make_candidate):
        """Test each installment counts in the month it is due."""
        await services.writer.commit(
            make_candidate(account="Cartao X", amount=300.0, installments=3, payment_method="Crédito"),
            "ana",
        )

        march = await services.reports.monthly_summary(3, 2026)
        april = await services.reports.monthly_summary(4, 2026)
        assert march.expense_total == 0
        assert april.expense_total == pytest.approx(100.0)

    async def test_budget_progress(self, services, make_candidate):
        """Test spending is matched to budgets by category."""
        await services.writer.commit(make_candidate(amount=300.0, category="alimentacao"), "ana")

        progress = await services.reports.budget_progress(3, 2026)

        assert len(progress) == 1
        item = progress[0]
        assert item.category == "Alimentação"
        assert item.spent_amount == 300.0
        assert item.remaining == 500.0
        assert item.percent_used == pytest.approx(37.5)

    async def test_goal_progress(self, services):
        """Test the monthly amount needed to reach a goal."""
        progress = await services.reports.goal_progress(date(2026, 3, 5))

        goal = progress[0]
        assert goal.name == "Viagem"
        assert goal.monthly_needed == pytest.approx(500.0)
        assert goal.percent_complete == pytest.approx(25.0)

    async def test_goal_without_deadline(self, tables, services_factory):
        """Test goals without a deadline have no monthly amount."""
        tables["Metas"].append(["Reserva", "10000", "0", ""])
        services = services_factory(InMemoryRowStore(tables))

        progress = await services.reports.goal_progress(date(2026, 3, 5))

        assert progress[1].name == "Reserva"
        assert progress[1].monthly_needed is None

    async def test_goal_past_deadline(self, services):
        """Test an overdue goal asks for everything that is missing now."""
        progress = await services.reports.goal_progress(date(2027, 2, 1))
        assert progress[0].monthly_needed == pytest.approx(4500.0)

    async def test_balances(self, services):
        """Test balances come from a fresh reconciliation."""
        snapshots = await services.reports.balances()
        assert snapshots["itau"].running_balance == 1000.0
        assert snapshots["carteira"].running_balance == 200.0
