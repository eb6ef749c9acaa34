"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability from a chat message to the ledger rows it produced
2. Debugging capability when interpretation goes wrong
3. A history of every edit, deletion and bill payment

The audit logger:
- Is async so it fits in the same flow as the storage calls
- Gracefully handles failures (a broken audit sheet never blocks a write)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from finbot.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from finbot.services.storage.interface import RowStore


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit table of the row store (for persistence)
    """

    def __init__(
        self,
        row_store: Optional[RowStore] = None,
        table: str = "Auditoria",
    ):
        """
        Initialize audit logger.

        Args:
            row_store: Storage backend for persistence.
                       If None, only logs locally.
            table: Name of the audit table
        """
        self._store = row_store
        self._table = table
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._store:
            try:
                await self._store.append_row(self._table, event.to_sheets_row())
                return True
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_message_received(
        self,
        chat_id: str,
        text: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.message_received(
            chat_id=chat_id,
            text=text,
            correlation_id=correlation_id,
        ))

    async def log_duplicate_suppressed(self, update_id: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.duplicate_suppressed(
            update_id=update_id,
            correlation_id=correlation_id,
        ))

    async def log_interpretation_failed(
        self,
        chat_id: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.interpretation_failed(
            chat_id=chat_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_candidate_pending(
        self,
        transaction_id: str,
        amount: float,
        installments: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.candidate_pending(
            transaction_id=transaction_id,
            amount=amount,
            installments=installments,
            correlation_id=correlation_id,
        ))

    async def log_user_confirmed(
        self,
        transaction_id: str,
        chat_id: str,
        correlation_id: UUID,
    ) -> None:
        """Log user confirmation."""
        await self.log(AuditEventBuilder.user_confirmed(
            transaction_id=transaction_id,
            chat_id=chat_id,
            correlation_id=correlation_id,
        ))

    async def log_user_cancelled(
        self,
        transaction_id: str,
        chat_id: str,
        correlation_id: UUID,
    ) -> None:
        """Log user cancellation."""
        await self.log(AuditEventBuilder.user_cancelled(
            transaction_id=transaction_id,
            chat_id=chat_id,
            correlation_id=correlation_id,
        ))

    async def log_confirmation_expired(
        self,
        transaction_id: str,
        action: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.confirmation_expired(
            transaction_id=transaction_id,
            action=action,
            correlation_id=correlation_id,
        ))

    async def log_transactions_written(
        self,
        transaction_id: str,
        row_ids: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transactions_written(
            transaction_id=transaction_id,
            row_ids=row_ids,
            correlation_id=correlation_id,
        ))

    async def log_transaction_edited(
        self,
        transaction_id: str,
        field: str,
        old_value: str,
        new_value: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_edited(
            transaction_id=transaction_id,
            field=field,
            old_value=old_value,
            new_value=new_value,
            correlation_id=correlation_id,
        ))

    async def log_transaction_deleted(
        self,
        transaction_id: str,
        reverted_bill_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            reverted_bill_id=reverted_bill_id,
            correlation_id=correlation_id,
        ))

    async def log_bill_paid(
        self,
        bill_id: str,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.bill_paid(
            bill_id=bill_id,
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        ))

    async def log_bill_reverted(
        self,
        bill_id: str,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.bill_reverted(
            bill_id=bill_id,
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        ))

    async def log_balances_recomputed(self, account_count: int, row_count: int) -> None:
        await self.log(AuditEventBuilder.balances_recomputed(
            account_count=account_count,
            row_count=row_count,
        ))

    async def log_lock_timeout(
        self,
        operation: str,
        timeout_seconds: float,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.lock_timeout(
            operation=operation,
            timeout_seconds=timeout_seconds,
            correlation_id=correlation_id,
        ))

    async def log_configuration_error(
        self,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.configuration_error(
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this when an inbound chat event arrives.
    Pass it through all subsequent operations.
    """
    return uuid4()
