"""
Rate Limit Models

The thresholds the RateLimiter enforces and the decision it returns.
Thresholds come from configuration (see wallet.config.settings);
these models only carry them.
"""

from datetime import timedelta, tzinfo
from decimal import Decimal
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field


class LimitCategory(str, Enum):
    """Which balance-decreasing operation is being evaluated."""
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"


class DenialReason(str, Enum):
    """
    Why the limiter refused.

    Listed in the order the checks run, so a given history
    always produces the same reason.
    """
    AMOUNT_CAP_EXCEEDED = "amount_cap_exceeded"
    VELOCITY_EXCEEDED = "velocity_exceeded"
    DAILY_WITHDRAWAL_CAP_EXCEEDED = "daily_withdrawal_cap_exceeded"
    DAILY_TRANSFER_CAP_EXCEEDED = "daily_transfer_cap_exceeded"


class RateLimits(BaseModel):
    """Immutable set of thresholds handed to the ledger at construction."""
    model_config = ConfigDict(frozen=True)

    max_transactions_per_window: int = Field(default=5, ge=1)
    window_seconds: int = Field(default=60, ge=1)
    max_amount_per_transaction: Decimal = Field(default=Decimal("10000"), gt=0)
    max_daily_withdrawal: Decimal = Field(default=Decimal("5000"), gt=0)
    max_daily_transfer: Decimal = Field(default=Decimal("5000"), gt=0)
    timezone: str = Field(
        default="UTC",
        description="Timezone whose local midnight resets the daily caps"
    )

    @property
    def window(self) -> timedelta:
        return timedelta(seconds=self.window_seconds)

    @property
    def tz(self) -> tzinfo:
        return ZoneInfo(self.timezone)


class RateLimitDecision(BaseModel):
    """Allow, or deny with a reason."""
    model_config = ConfigDict(frozen=True)

    allowed: bool
    reason: Optional[DenialReason] = None
    message: str = ""

    @classmethod
    def allow(cls) -> 'RateLimitDecision':
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenialReason, message: str) -> 'RateLimitDecision':
        return cls(allowed=False, reason=reason, message=message)
