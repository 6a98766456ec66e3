"""Tests for the Ledger: balances, commits, limits and concurrency."""

import asyncio
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from wallet.ledger import (
    InsufficientFundsError,
    InvalidActorError,
    InvalidAmountError,
    InvalidNoteError,
    Ledger,
    LedgerErrorCode,
    RateLimitExceededError,
    SelfTransferForbiddenError,
    UnknownCounterpartyError,
    parse_amount,
)
from wallet.models.limits import DenialReason, RateLimits
from wallet.models.transaction import MAX_NOTE_LENGTH, TransactionKind, derive_balance
from wallet.services.storage import InMemoryTransactionStorage, StorageError

from conftest import T0


class FlakyStorage(InMemoryTransactionStorage):
    """In-memory storage that can be told to fail the next appends."""

    def __init__(self):
        super().__init__()
        self.fail = False

    async def append_entries(self, entries):
        if self.fail:
            raise StorageError("disk full")
        await super().append_entries(entries)


class GatedStorage(InMemoryTransactionStorage):
    """In-memory storage whose appends wait until released."""

    def __init__(self):
        super().__init__()
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def append_entries(self, entries):
        self.started.set()
        await self.release.wait()
        await super().append_entries(entries)


class TestParseAmount:
    """Tests for amount parsing."""

    def test_accepts_common_inputs(self):
        """Test str, int, float and Decimal inputs."""
        assert parse_amount("12.50") == Decimal("12.50")
        assert parse_amount(3) == Decimal("3")
        assert parse_amount(0.1) == Decimal("0.1")
        assert parse_amount(Decimal("7")) == Decimal("7")

    @pytest.mark.parametrize("amount", [0, -1, "0", "-0.01", "abc", "", "NaN", "Infinity", True, None])
    def test_rejects_invalid(self, amount):
        """Test that non-positive or non-numeric amounts raise InvalidAmountError."""
        with pytest.raises(InvalidAmountError):
            parse_amount(amount)

    @pytest.mark.parametrize("amount", ["0.001", "10.005", "6E-28", Decimal("0.0000000000000000000000000006")])
    def test_rejects_fractions_of_a_cent(self, amount):
        """Test that amounts finer than one cent are refused, not rounded."""
        with pytest.raises(InvalidAmountError):
            parse_amount(amount)

    def test_accepts_whole_cents_in_any_notation(self):
        """Test that trailing zeros and exponents are fine when the value is whole cents."""
        assert parse_amount("1.500") == Decimal("1.5")
        assert parse_amount("1E+2") == Decimal("100")


class TestBasicOperations:
    """Tests for deposit, withdraw and reads."""

    def test_unknown_actor_has_zero_balance(self, ledger):
        """Test that a fresh actor has balance 0 and no history."""
        assert ledger.balance_of("nobody") == Decimal("0")
        assert ledger.history_of("nobody") == []

    @pytest.mark.asyncio
    async def test_deposit_increases_balance(self, ledger, alice):
        """Test a single deposit."""
        entry = await ledger.deposit(alice.id, "100", note="salary")
        assert entry.kind == TransactionKind.DEPOSIT
        assert entry.note == "salary"
        assert entry.timestamp == T0
        assert ledger.balance_of(alice.id) == Decimal("100")

    @pytest.mark.asyncio
    async def test_withdraw_decreases_balance(self, ledger, alice):
        """Test a withdrawal after a deposit."""
        await ledger.deposit(alice.id, "100")
        entry = await ledger.withdraw(alice.id, "40")
        assert entry.kind == TransactionKind.WITHDRAWAL
        assert ledger.balance_of(alice.id) == Decimal("60")

    @pytest.mark.asyncio
    async def test_withdraw_entire_balance(self, ledger, alice):
        """Test that amount == balance is allowed."""
        await ledger.deposit(alice.id, "50")
        await ledger.withdraw(alice.id, "50")
        assert ledger.balance_of(alice.id) == Decimal("0")

    @pytest.mark.asyncio
    async def test_withdraw_more_than_balance(self, ledger, alice):
        """Test that overdrawing raises and leaves the log untouched."""
        await ledger.deposit(alice.id, "10")
        with pytest.raises(InsufficientFundsError) as exc_info:
            await ledger.withdraw(alice.id, "10.01")
        assert exc_info.value.code == LedgerErrorCode.INSUFFICIENT_FUNDS
        assert exc_info.value.available == Decimal("10")
        assert len(ledger.entries()) == 1

    @pytest.mark.asyncio
    async def test_invalid_amount_adds_nothing(self, ledger, alice):
        """Test that a rejected amount never reaches the log."""
        for call in (ledger.deposit, ledger.withdraw):
            with pytest.raises(InvalidAmountError):
                await call(alice.id, "-5")
        assert ledger.entries() == ()

    @pytest.mark.asyncio
    async def test_balance_stays_exact_after_sub_cent_attempt(self, ledger, alice):
        """Test that withdrawing the shown balance leaves exactly zero."""
        await ledger.deposit(alice.id, "1")
        with pytest.raises(InvalidAmountError):
            await ledger.deposit(alice.id, "0.0000000000000000000000000006")

        await ledger.withdraw(alice.id, ledger.balance_of(alice.id))
        assert ledger.balance_of(alice.id) == Decimal("0")
        assert derive_balance(ledger.entries(), alice.id) == Decimal("0")

    @pytest.mark.asyncio
    async def test_long_note_is_refused(self, ledger, alice, bob):
        """Test that an oversized note raises a ledger error and adds nothing."""
        note = "x" * (MAX_NOTE_LENGTH + 1)
        with pytest.raises(InvalidNoteError) as exc_info:
            await ledger.deposit(alice.id, "10", note=note)
        assert exc_info.value.code == LedgerErrorCode.INVALID_NOTE

        await ledger.deposit(alice.id, "10", note="x" * MAX_NOTE_LENGTH)
        for call in (ledger.withdraw(alice.id, "1", note=note), ledger.transfer(alice.id, bob.id, "1", note=note)):
            with pytest.raises(InvalidNoteError):
                await call
        assert len(ledger.entries()) == 1

    @pytest.mark.asyncio
    async def test_blank_note_is_dropped(self, ledger, alice):
        """Test that a whitespace-only note is stored as no note."""
        entry = await ledger.deposit(alice.id, "10", note="   ")
        assert entry.note is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("actor_id", ["", "   ", None])
    async def test_blank_actor_is_refused(self, ledger, bob, actor_id):
        """Test that a missing actor id raises a ledger error and adds nothing."""
        for call in (
            ledger.deposit(actor_id, "10"),
            ledger.withdraw(actor_id, "10"),
            ledger.transfer(actor_id, bob.id, "10"),
        ):
            with pytest.raises(InvalidActorError) as exc_info:
                await call
            assert exc_info.value.code == LedgerErrorCode.INVALID_ACTOR
        assert ledger.entries() == ()

    @pytest.mark.asyncio
    async def test_history_is_most_recent_first(self, ledger, alice, clock):
        """Test history ordering."""
        first = await ledger.deposit(alice.id, "1")
        clock.advance(seconds=1)
        second = await ledger.deposit(alice.id, "2")
        assert [e.id for e in ledger.history_of(alice.id)] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_history_ties_keep_insertion_order(self, ledger, alice):
        """Test that entries with equal timestamps stay in insertion order."""
        first = await ledger.deposit(alice.id, "1")
        second = await ledger.deposit(alice.id, "2")
        assert first.timestamp == second.timestamp
        assert [e.id for e in ledger.history_of(alice.id)] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_commit_timestamp_never_goes_backwards(self, ledger, alice):
        """Test that an earlier 'now' is clamped to the last entry's timestamp."""
        await ledger.deposit(alice.id, "1", now=T0)
        entry = await ledger.deposit(alice.id, "1", now=T0 - timedelta(hours=1))
        assert entry.timestamp == T0


class TestTransfers:
    """Tests for transfers between actors."""

    @pytest.mark.asyncio
    async def test_transfer_moves_funds(self, ledger, alice, bob):
        """Test that a transfer debits the sender and credits the recipient."""
        await ledger.deposit(alice.id, "100")
        receipt = await ledger.transfer(alice.id, bob.id, "30", note="lunch")

        assert ledger.balance_of(alice.id) == Decimal("70")
        assert ledger.balance_of(bob.id) == Decimal("30")
        assert receipt.out_entry.kind == TransactionKind.TRANSFER_OUT
        assert receipt.in_entry.kind == TransactionKind.TRANSFER_IN
        assert receipt.out_entry.counterparty_id == bob.id
        assert receipt.in_entry.counterparty_id == alice.id

    @pytest.mark.asyncio
    async def test_transfer_entries_are_paired(self, ledger, clock, alice, bob):
        """Test that both halves share id, amount and timestamp."""
        await ledger.deposit(alice.id, "100")
        clock.advance(seconds=1)
        out_entry, in_entry = await ledger.transfer(alice.id, bob.id, "25")

        assert out_entry.transfer_id == in_entry.transfer_id
        assert out_entry.amount == in_entry.amount == Decimal("25")
        assert out_entry.timestamp == in_entry.timestamp
        assert [e.id for e in ledger.history_of(bob.id)] == [in_entry.id]
        assert ledger.history_of(alice.id)[0].id == out_entry.id

    @pytest.mark.asyncio
    async def test_self_transfer_forbidden(self, ledger, alice):
        """Test that sender == recipient is refused."""
        await ledger.deposit(alice.id, "100")
        with pytest.raises(SelfTransferForbiddenError) as exc_info:
            await ledger.transfer(alice.id, alice.id, "10")
        assert exc_info.value.message == "You cannot transfer money to yourself"
        assert len(ledger.entries()) == 1

    @pytest.mark.asyncio
    async def test_unknown_counterparty(self, ledger, alice):
        """Test that an unregistered recipient is refused."""
        await ledger.deposit(alice.id, "100")
        with pytest.raises(UnknownCounterpartyError):
            await ledger.transfer(alice.id, "ghost", "10")
        assert len(ledger.entries()) == 1

    @pytest.mark.asyncio
    async def test_failed_transfer_adds_no_entries(self, ledger, alice, bob):
        """Test that an insufficient-funds transfer touches neither side."""
        await ledger.deposit(alice.id, "10")
        with pytest.raises(InsufficientFundsError):
            await ledger.transfer(alice.id, bob.id, "11")
        assert ledger.history_of(bob.id) == []
        assert ledger.balance_of(alice.id) == Decimal("10")

    @pytest.mark.asyncio
    async def test_recipient_limits_not_checked(self, ledger, alice, bob, clock):
        """Test that a recipient over the velocity cap can still receive."""
        await ledger.deposit(alice.id, "100")
        for _ in range(5):
            await ledger.deposit(bob.id, "1")
        await ledger.transfer(alice.id, bob.id, "10")
        assert ledger.balance_of(bob.id) == Decimal("15")


class TestScenarios:
    """End-to-end sequences."""

    @pytest.mark.asyncio
    async def test_deposit_withdraw_transfer_overdraw(self, ledger, alice, bob):
        """Test deposit 100, withdraw 30, send 50, withdraw 25 fails with balance 20."""
        await ledger.deposit(alice.id, "100")
        await ledger.withdraw(alice.id, "30")
        await ledger.transfer(alice.id, bob.id, "50")

        with pytest.raises(InsufficientFundsError):
            await ledger.withdraw(alice.id, "25")

        assert ledger.balance_of(alice.id) == Decimal("20")
        assert ledger.balance_of(bob.id) == Decimal("50")

    @pytest.mark.asyncio
    async def test_sixth_withdrawal_in_a_minute_is_denied(self, ledger, alice, clock):
        """Test that five withdrawals succeed and the sixth is rate limited."""
        await ledger.deposit(alice.id, "100")
        clock.advance(seconds=61)

        for _ in range(5):
            clock.advance(seconds=1)
            await ledger.withdraw(alice.id, "1")

        clock.advance(seconds=1)
        with pytest.raises(RateLimitExceededError) as exc_info:
            await ledger.withdraw(alice.id, "1")

        assert exc_info.value.reason == DenialReason.VELOCITY_EXCEEDED
        assert ledger.balance_of(alice.id) == Decimal("95")
        assert len(ledger.history_of(alice.id)) == 6

    @pytest.mark.asyncio
    async def test_velocity_recovers_after_window(self, ledger, alice, clock):
        """Test that the window slides."""
        await ledger.deposit(alice.id, "100")
        for _ in range(4):
            await ledger.withdraw(alice.id, "1")
        with pytest.raises(RateLimitExceededError):
            await ledger.withdraw(alice.id, "1")

        clock.advance(seconds=60)
        await ledger.withdraw(alice.id, "1")
        assert ledger.balance_of(alice.id) == Decimal("95")

    @pytest.mark.asyncio
    async def test_rate_limit_checked_before_funds(self, ledger, alice, bob):
        """Test that an oversized transfer reports the limit, not the balance."""
        with pytest.raises(RateLimitExceededError) as exc_info:
            await ledger.transfer(alice.id, bob.id, "10000.01")
        assert exc_info.value.reason == DenialReason.AMOUNT_CAP_EXCEEDED

    @pytest.mark.asyncio
    async def test_daily_transfer_cap(self, directory, alice, bob, clock):
        """Test that the cumulative transfer cap applies across calls."""
        ledger = Ledger(
            directory,
            limits=RateLimits(max_daily_transfer=Decimal("100")),
            clock=clock,
        )
        await ledger.deposit(alice.id, "500")
        await ledger.transfer(alice.id, bob.id, "60")
        with pytest.raises(RateLimitExceededError) as exc_info:
            await ledger.transfer(alice.id, bob.id, "41")
        assert exc_info.value.reason == DenialReason.DAILY_TRANSFER_CAP_EXCEEDED
        await ledger.transfer(alice.id, bob.id, "40")
        assert ledger.balance_of(bob.id) == Decimal("100")


class TestInvariants:
    """Conservation, reconciliation and atomicity."""

    @pytest.mark.asyncio
    async def test_transfers_conserve_value(self, ledger, alice, bob, carol, clock):
        """Test that transfers never create or destroy money."""
        await ledger.deposit(alice.id, "100")
        await ledger.deposit(bob.id, "50")
        clock.advance(seconds=61)
        await ledger.transfer(alice.id, bob.id, "30")
        await ledger.transfer(bob.id, carol.id, "45")
        await ledger.transfer(carol.id, alice.id, "5")

        total = sum(ledger.balance_of(a.id) for a in (alice, bob, carol))
        assert total == Decimal("150")

    @pytest.mark.asyncio
    async def test_accumulator_matches_fold(self, ledger, alice, bob):
        """Test that running balances equal a full replay of the log."""
        await ledger.deposit(alice.id, "100")
        await ledger.withdraw(alice.id, "12.5")
        await ledger.transfer(alice.id, bob.id, "20")

        assert ledger.reconcile() is True
        for actor in (alice, bob):
            assert ledger.balance_of(actor.id) == derive_balance(ledger.entries(), actor.id)

    @pytest.mark.asyncio
    async def test_storage_failure_leaves_state_unchanged(self, directory, alice, bob, clock):
        """Test that a failed commit publishes nothing."""
        storage = FlakyStorage()
        ledger = Ledger(directory, storage=storage, clock=clock)
        await ledger.deposit(alice.id, "100")

        storage.fail = True
        with pytest.raises(StorageError):
            await ledger.transfer(alice.id, bob.id, "40")

        assert ledger.balance_of(alice.id) == Decimal("100")
        assert ledger.balance_of(bob.id) == Decimal("0")
        assert len(ledger.entries()) == 1
        assert len(await storage.load_all()) == 1

    @pytest.mark.asyncio
    async def test_cancelled_write_publishes_nothing(self, directory, alice, clock):
        """Test that a write cancelled inside storage leaves the log unchanged."""
        storage = InMemoryTransactionStorage()
        ledger = Ledger(directory, storage=storage, clock=clock)
        await ledger.deposit(alice.id, "100")

        storage.append_entries = AsyncMock(side_effect=asyncio.CancelledError())
        with pytest.raises(asyncio.CancelledError):
            await ledger.withdraw(alice.id, "40")

        assert ledger.balance_of(alice.id) == Decimal("100")
        assert len(ledger.entries()) == 1

    @pytest.mark.asyncio
    async def test_cancelled_caller_still_matches_storage(self, directory, alice, clock):
        """Test that cancelling a caller mid-write keeps memory and storage in step."""
        storage = GatedStorage()
        ledger = Ledger(directory, storage=storage, clock=clock)

        task = asyncio.create_task(ledger.deposit(alice.id, "10"))
        await storage.started.wait()
        task.cancel()
        await asyncio.sleep(0)
        storage.release.set()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert list(ledger.entries()) == await storage.load_all()
        assert ledger.balance_of(alice.id) == Decimal("10")

        await ledger.deposit(alice.id, "5")
        assert ledger.balance_of(alice.id) == Decimal("15")

    @pytest.mark.asyncio
    async def test_load_rebuilds_balances(self, directory, alice, bob, clock):
        """Test that a new ledger over the same storage sees the same state."""
        storage = InMemoryTransactionStorage()
        first = Ledger(directory, storage=storage, clock=clock)
        await first.deposit(alice.id, "80")
        await first.transfer(alice.id, bob.id, "30")

        second = Ledger(directory, storage=storage, clock=clock)
        assert await second.load() == 3
        assert second.balance_of(alice.id) == Decimal("50")
        assert second.balance_of(bob.id) == Decimal("30")
        assert second.reconcile() is True


class TestConcurrency:
    """Concurrent mutations through one ledger."""

    @pytest.mark.asyncio
    async def test_concurrent_transfers_never_overdraw(self, directory, alice, bob, clock):
        """Test that racing transfers cannot spend the same funds twice."""
        ledger = Ledger(
            directory,
            limits=RateLimits(max_transactions_per_window=1000),
            clock=clock,
        )
        await ledger.deposit(alice.id, "100")

        results = await asyncio.gather(
            *(ledger.transfer(alice.id, bob.id, "10") for _ in range(20)),
            return_exceptions=True,
        )

        succeeded = [r for r in results if not isinstance(r, Exception)]
        failed = [r for r in results if isinstance(r, InsufficientFundsError)]
        assert len(succeeded) == 10
        assert len(failed) == 10
        assert ledger.balance_of(alice.id) == Decimal("0")
        assert ledger.balance_of(bob.id) == Decimal("100")
        assert ledger.reconcile() is True

    @pytest.mark.asyncio
    async def test_concurrent_withdrawals_respect_velocity(self, ledger, alice, clock):
        """Test that the velocity cap holds under concurrency."""
        await ledger.deposit(alice.id, "100")
        clock.advance(seconds=61)

        results = await asyncio.gather(
            *(ledger.withdraw(alice.id, "1") for _ in range(8)),
            return_exceptions=True,
        )

        denied = [r for r in results if isinstance(r, RateLimitExceededError)]
        assert len(denied) == 3
        assert ledger.balance_of(alice.id) == Decimal("95")
