"""
Audit Models for Personal Wallet

Every money movement and every refused attempt is logged for audit purposes.
This provides:
1. Complete traceability of all operations
2. Debugging information when things go wrong
3. A record of which fraud rules fired and when

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from wallet.models.transaction import Transaction, TransferReceipt, utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Identity
    ACTOR_REGISTERED = "actor_registered"
    ACTOR_SIGNED_IN = "actor_signed_in"
    ACTOR_SIGNED_OUT = "actor_signed_out"
    SIGN_IN_FAILED = "sign_in_failed"

    # Ledger commits
    DEPOSIT_COMMITTED = "deposit_committed"
    WITHDRAWAL_COMMITTED = "withdrawal_committed"
    TRANSFER_COMMITTED = "transfer_committed"

    # Refusals and failures
    OPERATION_REJECTED = "operation_rejected"
    RATE_LIMIT_DENIED = "rate_limit_denied"
    COMMIT_FAILED = "commit_failed"

    # System events
    LEDGER_LOADED = "ledger_loaded"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
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
        description="Type of entity (e.g., 'transaction', 'transfer', 'actor')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    actor_id: Optional[str] = Field(
        default=None,
        description="Actor on whose behalf the action ran"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one user action)"
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

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         actor_id, correlation_id, description, details_json, error_code,
         error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            self.actor_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_code or "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.deposit_committed(entry, correlation_id)
        event = AuditEventBuilder.operation_rejected(actor_id, "withdraw", code, msg, correlation_id)
    """

    @staticmethod
    def actor_registered(
        actor_id: str,
        name: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACTOR_REGISTERED,
            entity_type="actor",
            entity_id=actor_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Actor registered: {name}",
            is_user_action=True,
        )

    @staticmethod
    def actor_signed_in(
        actor_id: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACTOR_SIGNED_IN,
            entity_type="actor",
            entity_id=actor_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description="Actor signed in",
            is_user_action=True,
        )

    @staticmethod
    def actor_signed_out(
        actor_id: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACTOR_SIGNED_OUT,
            entity_type="actor",
            entity_id=actor_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description="Actor signed out",
            is_user_action=True,
        )

    @staticmethod
    def sign_in_failed(
        email: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGN_IN_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="actor",
            correlation_id=correlation_id,
            description="Sign-in failed: invalid credentials",
            details={"email": email},
            is_user_action=True,
        )

    @staticmethod
    def deposit_committed(
        entry: Transaction,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEPOSIT_COMMITTED,
            entity_type="transaction",
            entity_id=str(entry.id),
            actor_id=entry.actor_id,
            correlation_id=correlation_id,
            description=f"Deposit of {entry.amount} committed",
            details=entry.to_log_dict(),
            is_user_action=True,
        )

    @staticmethod
    def withdrawal_committed(
        entry: Transaction,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WITHDRAWAL_COMMITTED,
            entity_type="transaction",
            entity_id=str(entry.id),
            actor_id=entry.actor_id,
            correlation_id=correlation_id,
            description=f"Withdrawal of {entry.amount} committed",
            details=entry.to_log_dict(),
            is_user_action=True,
        )

    @staticmethod
    def transfer_committed(
        receipt: TransferReceipt,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        out_entry, in_entry = receipt
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_COMMITTED,
            entity_type="transfer",
            entity_id=str(out_entry.transfer_id),
            actor_id=out_entry.actor_id,
            correlation_id=correlation_id,
            description=f"Transfer of {out_entry.amount} to {in_entry.actor_id} committed",
            details={
                "out_entry_id": str(out_entry.id),
                "in_entry_id": str(in_entry.id),
                "recipient_id": in_entry.actor_id,
                "amount": str(out_entry.amount),
                "timestamp": out_entry.timestamp.isoformat(),
            },
            is_user_action=True,
        )

    @staticmethod
    def operation_rejected(
        actor_id: str,
        operation: str,
        error_code: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="operation",
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"{operation.capitalize()} rejected: {error_code}",
            details={"operation": operation, **(details or {})},
            error_code=error_code,
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def rate_limit_denied(
        actor_id: str,
        operation: str,
        reason: str,
        amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATE_LIMIT_DENIED,
            severity=AuditSeverity.WARNING,
            entity_type="operation",
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"{operation.capitalize()} blocked by rate limit: {reason}",
            details={
                "operation": operation,
                "reason": reason,
                "amount": amount,
            },
            error_code="rate_limit_exceeded",
            is_user_action=True,
        )

    @staticmethod
    def commit_failed(
        actor_id: str,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMIT_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="operation",
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"{operation.capitalize()} could not be committed to storage",
            details={"operation": operation},
            error_message=error_message,
        )

    @staticmethod
    def ledger_loaded(
        entry_count: int,
        backend: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_LOADED,
            entity_type="ledger",
            description=f"Ledger loaded {entry_count} entries from {backend}",
            details={
                "entry_count": entry_count,
                "backend": backend,
            },
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
