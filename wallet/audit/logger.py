"""
Audit Logger

DESIGN DECISION: Every money movement and every refusal is logged.
This provides:
1. Complete traceability
2. Debugging capability
3. A record of which fraud rules fired and for whom

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from wallet.ledger.errors import LedgerError, RateLimitExceededError
from wallet.models.audit import AuditEvent, AuditEventBuilder
from wallet.models.transaction import Transaction, TransferReceipt
from wallet.services.storage import AuditStorageInterface


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
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_actor_registered(
        self,
        actor_id: str,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.actor_registered(
            actor_id=actor_id,
            name=name,
            correlation_id=correlation_id,
        ))

    async def log_actor_signed_in(
        self,
        actor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.actor_signed_in(
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_actor_signed_out(
        self,
        actor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.actor_signed_out(
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_sign_in_failed(
        self,
        email: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.sign_in_failed(
            email=email,
            correlation_id=correlation_id,
        ))

    async def log_deposit(
        self,
        entry: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a committed deposit."""
        await self.log(AuditEventBuilder.deposit_committed(entry, correlation_id))

    async def log_withdrawal(
        self,
        entry: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a committed withdrawal."""
        await self.log(AuditEventBuilder.withdrawal_committed(entry, correlation_id))

    async def log_transfer(
        self,
        receipt: TransferReceipt,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a committed transfer (one event for both entries)."""
        await self.log(AuditEventBuilder.transfer_committed(receipt, correlation_id))

    async def log_rejection(
        self,
        actor_id: str,
        operation: str,
        error: LedgerError,
        amount: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Log a refused ledger operation.

        Rate-limit refusals get their own event type so fraud rules
        can be reviewed separately from ordinary input mistakes.
        """
        if isinstance(error, RateLimitExceededError):
            event = AuditEventBuilder.rate_limit_denied(
                actor_id=actor_id,
                operation=operation,
                reason=error.reason.value,
                amount=amount or "",
                correlation_id=correlation_id,
            )
        else:
            event = AuditEventBuilder.operation_rejected(
                actor_id=actor_id,
                operation=operation,
                error_code=error.code.value,
                error_message=error.message,
                details={"amount": amount} if amount else None,
                correlation_id=correlation_id,
            )
        await self.log(event)

    async def log_commit_failed(
        self,
        actor_id: str,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.commit_failed(
            actor_id=actor_id,
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_ledger_loaded(
        self,
        entry_count: int,
        backend: str,
    ) -> None:
        await self.log(AuditEventBuilder.ledger_loaded(entry_count, backend))

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

    Use this at the start of a new user action (e.g., a transfer).
    Pass it through all subsequent operations.
    """
    return uuid4()
