"""
Data Models Package

This package contains all Pydantic models used in Finbot.
All data flowing through the system must conform to these schemas.
"""

from finbot.models.finance import (
    NOT_IDENTIFIED,
    Account,
    AccountKind,
    AccountSnapshot,
    BillStatus,
    Budget,
    BudgetProgress,
    ClosingPolicy,
    FieldEdit,
    Goal,
    GoalProgress,
    InboundEvent,
    InterpretationResult,
    InterpretationStatus,
    KeywordRule,
    MonthlySummary,
    PayableBill,
    PendingCandidate,
    RuleType,
    Transaction,
    TransactionKind,
    TransactionStatus,
    ValidationIssue,
)
from finbot.models.audit import (
    AUDIT_COLUMNS,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "NOT_IDENTIFIED",
    "Account",
    "AccountKind",
    "AccountSnapshot",
    "BillStatus",
    "Budget",
    "BudgetProgress",
    "ClosingPolicy",
    "FieldEdit",
    "Goal",
    "GoalProgress",
    "InboundEvent",
    "InterpretationResult",
    "InterpretationStatus",
    "KeywordRule",
    "MonthlySummary",
    "PayableBill",
    "PendingCandidate",
    "RuleType",
    "Transaction",
    "TransactionKind",
    "TransactionStatus",
    "ValidationIssue",
    # Audit models
    "AUDIT_COLUMNS",
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
