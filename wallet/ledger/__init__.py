"""Ledger package: the accounting engine and its fraud-prevention limiter."""

from wallet.ledger.errors import (
    InsufficientFundsError,
    InvalidActorError,
    InvalidAmountError,
    InvalidNoteError,
    LedgerError,
    LedgerErrorCode,
    RateLimitExceededError,
    SelfTransferForbiddenError,
    UnknownCounterpartyError,
)
from wallet.ledger.ledger import Ledger, parse_amount
from wallet.ledger.rate_limiter import RateLimiter

__all__ = [
    "InsufficientFundsError",
    "InvalidActorError",
    "InvalidAmountError",
    "InvalidNoteError",
    "Ledger",
    "LedgerError",
    "LedgerErrorCode",
    "RateLimitExceededError",
    "RateLimiter",
    "SelfTransferForbiddenError",
    "UnknownCounterpartyError",
    "parse_amount",
]
