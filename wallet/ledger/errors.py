"""
Ledger Errors

Every refused ledger operation raises exactly one of these.
The first five are the money rules; the last two reject requests
that could never become an entry.
They are recoverable: the caller shows the message and carries on.
A raised LedgerError guarantees the log was not touched.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from wallet.models.limits import DenialReason


class LedgerErrorCode(str, Enum):
    """Stable, machine-readable error categories."""
    INVALID_AMOUNT = "invalid_amount"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    SELF_TRANSFER_FORBIDDEN = "self_transfer_forbidden"
    UNKNOWN_COUNTERPARTY = "unknown_counterparty"
    INVALID_NOTE = "invalid_note"
    INVALID_ACTOR = "invalid_actor"


class LedgerError(Exception):
    """Base exception for refused ledger operations."""

    code: LedgerErrorCode

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"code": self.code.value, "message": self.message}


class InvalidAmountError(LedgerError):
    """Amount is zero, negative or not a number."""

    code = LedgerErrorCode.INVALID_AMOUNT

    def __init__(self, amount: object):
        self.amount = amount
        super().__init__(f"Amount must be a positive number, got {amount!r}")


class InsufficientFundsError(LedgerError):
    """The operation would drive the balance below zero."""

    code = LedgerErrorCode.INSUFFICIENT_FUNDS

    def __init__(self, requested: Decimal, available: Decimal):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient funds: requested {requested}, available {available}"
        )


class RateLimitExceededError(LedgerError):
    """A fraud-prevention limit refused the operation."""

    code = LedgerErrorCode.RATE_LIMIT_EXCEEDED

    def __init__(self, reason: DenialReason, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message or f"Rate limit exceeded: {reason.value}")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "reason": self.reason.value}


class SelfTransferForbiddenError(LedgerError):
    """Sender and recipient are the same actor."""

    code = LedgerErrorCode.SELF_TRANSFER_FORBIDDEN

    def __init__(self, actor_id: str):
        self.actor_id = actor_id
        super().__init__("You cannot transfer money to yourself")


class UnknownCounterpartyError(LedgerError):
    """The recipient is not a recognized actor."""

    code = LedgerErrorCode.UNKNOWN_COUNTERPARTY

    def __init__(self, counterparty_id: str):
        self.counterparty_id = counterparty_id
        super().__init__(f"Unknown recipient: {counterparty_id}")


class InvalidNoteError(LedgerError):
    """The note is longer than an entry can hold."""

    code = LedgerErrorCode.INVALID_NOTE

    def __init__(self, max_length: int):
        self.max_length = max_length
        super().__init__(f"Note must be at most {max_length} characters")


class InvalidActorError(LedgerError):
    """The acting actor id is missing or blank."""

    code = LedgerErrorCode.INVALID_ACTOR

    def __init__(self, actor_id: object):
        self.actor_id = actor_id
        super().__init__(f"Invalid actor id: {actor_id!r}")
