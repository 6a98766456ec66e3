"""
Data Models Package

This package contains all Pydantic models used in the Personal Wallet system.
All data flowing through the system must conform to these schemas.
"""

from wallet.models.transaction import (
    HistoryQuery,
    HistorySummary,
    Transaction,
    TransactionKind,
    TransferReceipt,
    as_utc,
    derive_balance,
    utcnow,
)
from wallet.models.limits import (
    DenialReason,
    LimitCategory,
    RateLimitDecision,
    RateLimits,
)
from wallet.models.actor import ActorProfile, ActorRecord
from wallet.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "HistoryQuery",
    "HistorySummary",
    "Transaction",
    "TransactionKind",
    "TransferReceipt",
    "as_utc",
    "derive_balance",
    "utcnow",
    # Limit models
    "DenialReason",
    "LimitCategory",
    "RateLimitDecision",
    "RateLimits",
    # Actor models
    "ActorProfile",
    "ActorRecord",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
