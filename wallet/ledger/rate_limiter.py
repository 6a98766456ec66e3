"""
Fraud-Prevention Rate Limiter

DESIGN DECISION: The limiter is a pure function of
(actor, amount, category, history, now, limits).
It never reads the wall clock, never stores anything and never
writes to the log. The Ledger alone decides whether to commit.

Checks run in a fixed order so that the reported reason is
reproducible for a given history snapshot:
1. Per-transaction amount cap
2. Transactions in the trailing window
3. Daily withdrawal total (withdrawals only)
4. Daily transfer-out total (transfers only)
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from wallet.models.limits import (
    DenialReason,
    LimitCategory,
    RateLimitDecision,
    RateLimits,
)
from wallet.models.transaction import Transaction, TransactionKind, as_utc


class RateLimiter:
    """
    Evaluates a balance-decreasing request against recent history.

    Only the requesting actor's entries are considered; a transfer's
    recipient is never checked.
    """

    def __init__(self, limits: Optional[RateLimits] = None):
        self._limits = limits or RateLimits()

    @property
    def limits(self) -> RateLimits:
        return self._limits

    def start_of_day(self, now: datetime) -> datetime:
        """Local midnight of the day containing `now`, as UTC."""
        local_now = as_utc(now).astimezone(self._limits.tz)
        local_midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
        return local_midnight.astimezone(timezone.utc)

    def evaluate(
        self,
        actor_id: str,
        amount: Decimal,
        category: LimitCategory,
        history: Iterable[Transaction],
        now: datetime,
    ) -> RateLimitDecision:
        """
        Decide whether the actor may move `amount` right now.

        Args:
            actor_id: The actor asking to move money
            amount: Requested amount (already validated as positive)
            category: WITHDRAWAL or TRANSFER
            history: Ledger entries to consider; entries of other actors are ignored
            now: The evaluation instant

        Returns:
            RateLimitDecision, allowed or denied with a reason
        """
        limits = self._limits
        now = as_utc(now)
        own = [entry for entry in history if entry.actor_id == actor_id]

        # 1. Single-transaction cap
        if amount > limits.max_amount_per_transaction:
            return RateLimitDecision.deny(
                DenialReason.AMOUNT_CAP_EXCEEDED,
                f"Amount {amount} exceeds the per-transaction limit of "
                f"{limits.max_amount_per_transaction}",
            )

        # 2. Velocity: entries strictly inside the trailing window
        window_start = now - limits.window
        recent_count = sum(1 for entry in own if entry.timestamp > window_start)
        if recent_count >= limits.max_transactions_per_window:
            return RateLimitDecision.deny(
                DenialReason.VELOCITY_EXCEEDED,
                f"Too many transactions: at most {limits.max_transactions_per_window} "
                f"per {limits.window_seconds} seconds",
            )

        day_start = self.start_of_day(now)

        # 3. Daily withdrawal cap
        if category == LimitCategory.WITHDRAWAL:
            withdrawn_today = self._total_since(own, TransactionKind.WITHDRAWAL, day_start)
            if withdrawn_today + amount > limits.max_daily_withdrawal:
                return RateLimitDecision.deny(
                    DenialReason.DAILY_WITHDRAWAL_CAP_EXCEEDED,
                    f"Daily withdrawal limit of {limits.max_daily_withdrawal} would be "
                    f"exceeded ({withdrawn_today} already withdrawn today)",
                )

        # 4. Daily transfer cap
        if category == LimitCategory.TRANSFER:
            sent_today = self._total_since(own, TransactionKind.TRANSFER_OUT, day_start)
            if sent_today + amount > limits.max_daily_transfer:
                return RateLimitDecision.deny(
                    DenialReason.DAILY_TRANSFER_CAP_EXCEEDED,
                    f"Daily transfer limit of {limits.max_daily_transfer} would be "
                    f"exceeded ({sent_today} already sent today)",
                )

        return RateLimitDecision.allow()

    @staticmethod
    def _total_since(
        entries: list[Transaction],
        kind: TransactionKind,
        since: datetime,
    ) -> Decimal:
        return sum(
            (e.amount for e in entries if e.kind == kind and e.timestamp >= since),
            Decimal("0"),
        )
