"""
Error Taxonomy for Finbot

DESIGN DECISION: Errors are split by who can fix them.

- UserInputError: the user can fix it by rephrasing. Always recovered
  locally and shown as a retry prompt.
- NotFoundError: an identifier the user sent does not exist.
- ConcurrencyTimeoutError: the ledger lock was busy for too long.
  Nothing was written.
- ConfigurationError: the spreadsheet does not have the shape we expect.
  This is a deployment defect, never the user's fault.

Only the orchestrator turns these into chat messages.
"""

from typing import Optional


class FinanceAssistantError(Exception):
    """Base exception for all domain errors."""
    pass


class UserInputError(FinanceAssistantError):
    """The message could not be understood; the user should try again."""

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.hint = hint


class AmbiguousTypeError(UserInputError):
    """Could not tell whether the message is an expense, income or transfer."""
    pass


class AmountNotFoundError(UserInputError):
    """No positive monetary amount in the message."""
    pass


class TransferFormatError(UserInputError):
    """Transfer message does not follow 'de <origem> para <destino>'."""
    pass


class UnknownFieldError(UserInputError):
    """Edit command names a field that cannot be edited."""
    pass


class InvalidDateError(UserInputError):
    """A date could not be parsed."""
    pass


class InstallmentCountError(UserInputError):
    """More installments than the ledger accepts."""
    pass


class NotFoundError(FinanceAssistantError):
    """An account, transaction or bill identifier does not exist."""

    def __init__(self, kind: str, identifier: str):
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class ConcurrencyTimeoutError(FinanceAssistantError):
    """The ledger lock could not be acquired in time."""
    pass


class ConfigurationError(FinanceAssistantError):
    """A required table or column is missing from storage."""
    pass
