"""Read-only reports over the ledger."""

from finbot.reports.service import ReportService

__all__ = ["ReportService"]
