"""Unit tests for the fraud-prevention rate limiter."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from wallet.ledger.rate_limiter import RateLimiter
from wallet.models.limits import DenialReason, LimitCategory, RateLimits
from wallet.models.transaction import Transaction, TransactionKind

from conftest import T0


def entry(kind: TransactionKind, amount: str, at: datetime, actor_id: str = "alice") -> Transaction:
    extra = {}
    if kind.is_transfer:
        extra = {"counterparty_id": "other", "transfer_id": uuid4()}
    return Transaction(actor_id=actor_id, kind=kind, amount=Decimal(amount), timestamp=at, **extra)


class TestAmountCap:
    """Per-transaction amount cap."""

    def test_amount_over_cap_is_denied(self):
        """Test that an oversized request is denied before anything else."""
        limiter = RateLimiter(RateLimits(max_amount_per_transaction=Decimal("100")))
        decision = limiter.evaluate("alice", Decimal("100.01"), LimitCategory.WITHDRAWAL, [], T0)
        assert decision.allowed is False
        assert decision.reason == DenialReason.AMOUNT_CAP_EXCEEDED

    def test_amount_at_cap_is_allowed(self):
        """Test that the cap itself is inclusive."""
        limiter = RateLimiter(RateLimits(max_amount_per_transaction=Decimal("100")))
        decision = limiter.evaluate("alice", Decimal("100"), LimitCategory.TRANSFER, [], T0)
        assert decision.allowed is True

    def test_amount_cap_reported_before_velocity(self):
        """Test check order when several limits would fire."""
        limiter = RateLimiter(RateLimits(max_amount_per_transaction=Decimal("10")))
        history = [entry(TransactionKind.DEPOSIT, "1", T0) for _ in range(10)]
        decision = limiter.evaluate("alice", Decimal("50"), LimitCategory.WITHDRAWAL, history, T0)
        assert decision.reason == DenialReason.AMOUNT_CAP_EXCEEDED


class TestVelocity:
    """Transactions in the trailing window."""

    def test_fifth_allowed_sixth_denied(self):
        """Test that four prior entries allow a fifth and five deny a sixth."""
        limiter = RateLimiter()
        four = [entry(TransactionKind.WITHDRAWAL, "1", T0 + timedelta(seconds=i)) for i in range(4)]
        now = T0 + timedelta(seconds=10)
        assert limiter.evaluate("alice", Decimal("1"), LimitCategory.WITHDRAWAL, four, now).allowed

        five = four + [entry(TransactionKind.WITHDRAWAL, "1", T0 + timedelta(seconds=5))]
        decision = limiter.evaluate("alice", Decimal("1"), LimitCategory.WITHDRAWAL, five, now)
        assert decision.allowed is False
        assert decision.reason == DenialReason.VELOCITY_EXCEEDED

    def test_window_start_is_exclusive(self):
        """Test that an entry exactly window_seconds old no longer counts."""
        limiter = RateLimiter()
        history = [entry(TransactionKind.WITHDRAWAL, "1", T0) for _ in range(5)]
        decision = limiter.evaluate(
            "alice", Decimal("1"), LimitCategory.WITHDRAWAL, history, T0 + timedelta(seconds=60)
        )
        assert decision.allowed is True

    def test_deposits_and_incoming_transfers_count(self):
        """Test that every entry kind of the actor counts toward velocity."""
        limiter = RateLimiter()
        history = [
            entry(TransactionKind.DEPOSIT, "1", T0),
            entry(TransactionKind.DEPOSIT, "1", T0),
            entry(TransactionKind.TRANSFER_IN, "1", T0),
            entry(TransactionKind.TRANSFER_IN, "1", T0),
            entry(TransactionKind.WITHDRAWAL, "1", T0),
        ]
        decision = limiter.evaluate("alice", Decimal("1"), LimitCategory.TRANSFER, history, T0)
        assert decision.reason == DenialReason.VELOCITY_EXCEEDED

    def test_other_actors_are_ignored(self):
        """Test that only the requesting actor's entries are considered."""
        limiter = RateLimiter()
        history = [entry(TransactionKind.WITHDRAWAL, "1", T0, actor_id="bob") for _ in range(10)]
        assert limiter.evaluate("alice", Decimal("1"), LimitCategory.WITHDRAWAL, history, T0).allowed


class TestDailyCaps:
    """Cumulative per-day caps."""

    def test_daily_withdrawal_cap(self):
        """Test that today's withdrawals plus the request cannot pass the cap."""
        limiter = RateLimiter(RateLimits(max_daily_withdrawal=Decimal("500")))
        history = [entry(TransactionKind.WITHDRAWAL, "400", T0 - timedelta(hours=2))]

        assert limiter.evaluate("alice", Decimal("100"), LimitCategory.WITHDRAWAL, history, T0).allowed
        decision = limiter.evaluate("alice", Decimal("100.01"), LimitCategory.WITHDRAWAL, history, T0)
        assert decision.reason == DenialReason.DAILY_WITHDRAWAL_CAP_EXCEEDED

    def test_yesterday_does_not_count(self):
        """Test that the daily total resets at midnight."""
        limiter = RateLimiter(RateLimits(max_daily_withdrawal=Decimal("500")))
        yesterday = datetime(2024, 3, 14, 23, 59, tzinfo=timezone.utc)
        history = [entry(TransactionKind.WITHDRAWAL, "500", yesterday)]
        assert limiter.evaluate("alice", Decimal("500"), LimitCategory.WITHDRAWAL, history, T0).allowed

    def test_transfers_do_not_count_toward_withdrawal_cap(self):
        """Test that each daily cap only sums its own kind."""
        limiter = RateLimiter(RateLimits(
            max_daily_withdrawal=Decimal("500"),
            max_daily_transfer=Decimal("500"),
        ))
        history = [entry(TransactionKind.TRANSFER_OUT, "500", T0 - timedelta(hours=1))]
        assert limiter.evaluate("alice", Decimal("500"), LimitCategory.WITHDRAWAL, history, T0).allowed

        decision = limiter.evaluate("alice", Decimal("1"), LimitCategory.TRANSFER, history, T0)
        assert decision.reason == DenialReason.DAILY_TRANSFER_CAP_EXCEEDED

    def test_configured_timezone_moves_midnight(self):
        """Test that the day boundary follows the configured timezone."""
        limiter = RateLimiter(RateLimits(
            max_daily_withdrawal=Decimal("500"),
            timezone="America/New_York",
        ))
        # 03:00 UTC on the 15th is still the 14th in New York (UTC-4 in March)
        earlier = datetime(2024, 3, 15, 3, 0, tzinfo=timezone.utc)
        now = datetime(2024, 3, 15, 5, 0, tzinfo=timezone.utc)
        history = [entry(TransactionKind.WITHDRAWAL, "500", earlier)]
        assert limiter.evaluate("alice", Decimal("1"), LimitCategory.WITHDRAWAL, history, now).allowed

    def test_start_of_day_in_utc(self):
        """Test start_of_day for the default timezone."""
        limiter = RateLimiter()
        assert limiter.start_of_day(T0) == datetime(2024, 3, 15, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "category",
    [LimitCategory.WITHDRAWAL, LimitCategory.TRANSFER],
)
def test_same_inputs_same_decision(category: LimitCategory) -> None:
    limiter = RateLimiter()
    history = [entry(TransactionKind.WITHDRAWAL, "1", T0) for _ in range(5)]
    first = limiter.evaluate("alice", Decimal("1"), category, history, T0)
    second = limiter.evaluate("alice", Decimal("1"), category, history, T0)
    assert first == second
