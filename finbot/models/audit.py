"""
Audit Models for Finbot

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability from an inbound chat message to the ledger rows it produced
2. Debugging information when interpretation goes wrong
3. A record of every edit and deletion

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step from message to ledger has its own event type.
    """
    # Inbound
    MESSAGE_RECEIVED = "message_received"
    DUPLICATE_SUPPRESSED = "duplicate_suppressed"

    # Interpretation
    INTERPRETATION_FAILED = "interpretation_failed"
    CANDIDATE_PENDING = "candidate_pending"

    # Human confirmation
    USER_CONFIRMED = "user_confirmed"
    USER_CANCELLED = "user_cancelled"
    CONFIRMATION_EXPIRED = "confirmation_expired"

    # Ledger writes
    TRANSACTIONS_WRITTEN = "transactions_written"
    TRANSACTION_EDITED = "transaction_edited"
    TRANSACTION_DELETED = "transaction_deleted"

    # Payable bills
    BILL_PAID = "bill_paid"
    BILL_REVERTED = "bill_reverted"

    # Reconciliation
    BALANCES_RECOMPUTED = "balances_recomputed"

    # System events
    LOCK_TIMEOUT = "lock_timeout"
    CONFIGURATION_ERROR = "configuration_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'bill', 'message')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one chat message)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row for the audit sheet, in AUDIT_COLUMNS order.
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.message_received(chat_id, text, correlation_id)
        event = AuditEventBuilder.user_confirmed(transaction_id, chat_id, correlation_id)
    """

    @staticmethod
    def message_received(
        chat_id: str,
        text: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MESSAGE_RECEIVED,
            entity_type="message",
            entity_id=chat_id,
            correlation_id=correlation_id,
            description="Message received",
            details={"text": text[:200]},
            is_user_action=True,
        )

    @staticmethod
    def duplicate_suppressed(
        update_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATE_SUPPRESSED,
            severity=AuditSeverity.DEBUG,
            entity_type="message",
            entity_id=update_id,
            correlation_id=correlation_id,
            description=f"Duplicate update ignored: {update_id}",
        )

    @staticmethod
    def interpretation_failed(
        chat_id: str,
        reason: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INTERPRETATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="message",
            entity_id=chat_id,
            correlation_id=correlation_id,
            description="Message could not be interpreted",
            details={"reason": reason},
        )

    @staticmethod
    def candidate_pending(
        transaction_id: str,
        amount: float,
        installments: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CANDIDATE_PENDING,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Candidate awaiting confirmation: {amount:.2f} in {installments}x",
            details={
                "amount": amount,
                "installments": installments,
            },
        )

    @staticmethod
    def user_confirmed(
        transaction_id: str,
        chat_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_CONFIRMED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="User confirmed transaction",
            details={"chat_id": chat_id},
            is_user_action=True,
        )

    @staticmethod
    def user_cancelled(
        transaction_id: str,
        chat_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_CANCELLED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="User cancelled transaction",
            details={"chat_id": chat_id},
            is_user_action=True,
        )

    @staticmethod
    def confirmation_expired(
        transaction_id: str,
        action: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONFIRMATION_EXPIRED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"'{action}' for an expired or already processed transaction",
            details={"action": action},
            is_user_action=True,
        )

    @staticmethod
    def transactions_written(
        transaction_id: str,
        row_ids: list[str],
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_WRITTEN,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"{len(row_ids)} ledger row(s) written",
            details={"row_ids": row_ids},
        )

    @staticmethod
    def transaction_edited(
        transaction_id: str,
        field: str,
        old_value: str,
        new_value: str,
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_EDITED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Field '{field}' edited",
            details={
                "field": field,
                "old_value": old_value,
                "new_value": new_value,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: str,
        reverted_bill_id: Optional[str],
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted",
            details={"reverted_bill_id": reverted_bill_id},
            is_user_action=True,
        )

    @staticmethod
    def bill_paid(
        bill_id: str,
        transaction_id: str,
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_PAID,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description="Payable bill marked as paid",
            details={"transaction_id": transaction_id},
            is_user_action=True,
        )

    @staticmethod
    def bill_reverted(
        bill_id: str,
        transaction_id: str,
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_REVERTED,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description="Payable bill reverted to pending",
            details={"transaction_id": transaction_id},
        )

    @staticmethod
    def balances_recomputed(
        account_count: int,
        row_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCES_RECOMPUTED,
            severity=AuditSeverity.DEBUG,
            entity_type="ledger",
            description=f"Recomputed {account_count} accounts from {row_count} rows",
            details={
                "account_count": account_count,
                "row_count": row_count,
            },
        )

    @staticmethod
    def lock_timeout(
        operation: str,
        timeout_seconds: float,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOCK_TIMEOUT,
            severity=AuditSeverity.ERROR,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Ledger lock not acquired for {operation}",
            details={"timeout_seconds": timeout_seconds},
        )

    @staticmethod
    def configuration_error(
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONFIGURATION_ERROR,
            severity=AuditSeverity.CRITICAL,
            description="Spreadsheet configuration error",
            error_message=error_message,
            correlation_id=correlation_id,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
