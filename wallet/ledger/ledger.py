"""
The Ledger

Owns the transaction log and is the only thing allowed to append to it.

CORE GUARANTEES:
1. Balances are derived from the log, never set directly.
   The per-actor accumulator is rebuilt inside the same commit
   that appends, and reconcile() proves it equals a full replay.
2. Every mutating call goes through one lock:
   evaluate limits -> check funds -> persist -> publish.
3. A transfer is ONE commit: both entries are persisted in one storage
   call and published in one reference swap. Readers see both or neither.
4. A refused or failed call leaves the log untouched.

Reads (balance_of, history_of) never take the lock; they work on the
immutable snapshot that was current when they started.
"""

import asyncio
from datetime import datetime
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, NamedTuple, Optional
from uuid import uuid4

import structlog

from wallet.identity.interface import ActorDirectory
from wallet.ledger.errors import (
    InsufficientFundsError,
    InvalidActorError,
    InvalidAmountError,
    InvalidNoteError,
    RateLimitExceededError,
    SelfTransferForbiddenError,
    UnknownCounterpartyError,
)
from wallet.ledger.rate_limiter import RateLimiter
from wallet.models.limits import LimitCategory, RateLimits
from wallet.models.transaction import (
    MAX_NOTE_LENGTH,
    Transaction,
    TransactionKind,
    TransferReceipt,
    as_utc,
    derive_balance,
    utcnow,
)
from wallet.services.storage.in_memory import InMemoryTransactionStorage
from wallet.services.storage.interface import TransactionStorageInterface


logger = structlog.get_logger(__name__)

ZERO = Decimal("0")

# Smallest unit of the currency; finer amounts are refused
AMOUNT_SCALE = Decimal("0.01")

AmountLike = Decimal | int | float | str


class _Snapshot(NamedTuple):
    """Everything a reader needs, replaced as a whole on every commit."""
    entries: tuple[Transaction, ...]
    by_actor: Mapping[str, tuple[Transaction, ...]]
    balances: Mapping[str, Decimal]

    @classmethod
    def empty(cls) -> '_Snapshot':
        return cls((), MappingProxyType({}), MappingProxyType({}))

    def extended(self, new_entries: Iterable[Transaction]) -> '_Snapshot':
        entries = list(self.entries)
        touched: dict[str, list[Transaction]] = {}
        balances = dict(self.balances)
        for entry in new_entries:
            entries.append(entry)
            touched.setdefault(entry.actor_id, []).append(entry)
            balances[entry.actor_id] = balances.get(entry.actor_id, ZERO) + entry.signed_amount

        by_actor = dict(self.by_actor)
        for actor_id, added in touched.items():
            by_actor[actor_id] = by_actor.get(actor_id, ()) + tuple(added)
        return _Snapshot(tuple(entries), MappingProxyType(by_actor), MappingProxyType(balances))

    @property
    def last_timestamp(self) -> Optional[datetime]:
        return self.entries[-1].timestamp if self.entries else None


def parse_amount(amount: AmountLike) -> Decimal:
    """
    Turn caller input into a positive, finite Decimal of whole cents.

    Floats go through str() so 0.1 becomes Decimal("0.1").
    Amounts finer than AMOUNT_SCALE are refused, not rounded.

    Raises:
        InvalidAmountError: For anything that is not a positive finite number
            in whole cents
    """
    if isinstance(amount, bool):
        raise InvalidAmountError(amount)
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmountError(amount)
    if not value.is_finite() or value <= ZERO:
        raise InvalidAmountError(amount)
    try:
        if value != value.quantize(AMOUNT_SCALE):
            raise InvalidAmountError(amount)
    except InvalidOperation:
        raise InvalidAmountError(amount)
    return value


def clean_note(note: Optional[str]) -> Optional[str]:
    """
    Strip a note, mapping blank to None.

    Raises:
        InvalidNoteError: If the note is longer than an entry can hold
    """
    if note is None:
        return None
    note = str(note).strip()
    if len(note) > MAX_NOTE_LENGTH:
        raise InvalidNoteError(MAX_NOTE_LENGTH)
    return note or None


def _require_actor_id(actor_id: str) -> None:
    if not isinstance(actor_id, str) or not actor_id.strip():
        raise InvalidActorError(actor_id)


class Ledger:
    """
    Single authoritative ledger for one process.

    Usage:
        ledger = Ledger(directory=identity_directory, limits=settings.rate_limits.to_limits())
        await ledger.load()
        await ledger.deposit(actor_id, "100")
        ledger.balance_of(actor_id)
    """

    def __init__(
        self,
        directory: ActorDirectory,
        storage: Optional[TransactionStorageInterface] = None,
        limits: Optional[RateLimits] = None,
        rate_limiter: Optional[RateLimiter] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            directory: Used to check that transfer recipients exist
            storage: Where commits are persisted (in-memory if None)
            limits: Rate-limit thresholds (defaults if None)
            rate_limiter: Pre-built limiter; overrides `limits`
            clock: Source of "now" when a call does not pass one
        """
        self._directory = directory
        self._storage = storage or InMemoryTransactionStorage()
        self._limiter = rate_limiter or RateLimiter(limits)
        self._clock = clock or utcnow
        self._lock = asyncio.Lock()
        self._state = _Snapshot.empty()

    @property
    def limits(self) -> RateLimits:
        return self._limiter.limits

    @property
    def storage(self) -> TransactionStorageInterface:
        return self._storage

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def load(self) -> int:
        """
        Replace the in-memory state with everything in storage.

        Returns the number of entries loaded.
        """
        async with self._lock:
            entries = await self._storage.load_all()
            self._state = _Snapshot.empty().extended(entries)
        logger.info(
            "ledger_loaded",
            backend=self._storage.backend_name,
            entry_count=len(entries),
        )
        return len(entries)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def balance_of(self, actor_id: str) -> Decimal:
        """Current balance; 0 for an actor with no history."""
        return self._state.balances.get(actor_id, ZERO)

    def history_of(self, actor_id: str) -> list[Transaction]:
        """All of the actor's entries, most recent first, ties in insertion order."""
        entries = self._state.by_actor.get(actor_id, ())
        return sorted(entries, key=lambda e: e.timestamp, reverse=True)

    def entries(self) -> tuple[Transaction, ...]:
        """The full log in insertion order."""
        return self._state.entries

    def actor_ids(self) -> list[str]:
        """Every actor that appears in the log."""
        return list(self._state.by_actor)

    def reconcile(self) -> bool:
        """
        Replay the full log and compare with the running balances.

        True when every actor's accumulated balance equals the pure fold.
        """
        state = self._state
        for actor_id, balance in state.balances.items():
            if derive_balance(state.entries, actor_id) != balance:
                logger.error(
                    "ledger_balance_drift",
                    actor_id=actor_id,
                    accumulated=str(balance),
                    derived=str(derive_balance(state.entries, actor_id)),
                )
                return False
        return True

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def deposit(
        self,
        actor_id: str,
        amount: AmountLike,
        note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Transaction:
        """
        Add funds. Inbound money is never rate limited.

        Raises:
            InvalidAmountError: amount <= 0, not a number, or finer than a cent
            InvalidActorError: actor_id is blank
            InvalidNoteError: note is too long
        """
        value = parse_amount(amount)
        _require_actor_id(actor_id)
        note = clean_note(note)
        async with self._lock:
            timestamp = self._commit_time(now)
            entry = Transaction(
                actor_id=actor_id,
                kind=TransactionKind.DEPOSIT,
                amount=value,
                timestamp=timestamp,
                note=note,
            )
            await self._commit([entry])
        return entry

    async def withdraw(
        self,
        actor_id: str,
        amount: AmountLike,
        note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Transaction:
        """
        Remove funds.

        Raises:
            InvalidAmountError: amount <= 0, not a number, or finer than a cent
            InvalidActorError: actor_id is blank
            InvalidNoteError: note is too long
            RateLimitExceededError: a fraud-prevention limit refused it
            InsufficientFundsError: amount exceeds the balance
        """
        value = parse_amount(amount)
        _require_actor_id(actor_id)
        note = clean_note(note)
        async with self._lock:
            now = self._evaluation_time(now)
            self._check_limits(actor_id, value, LimitCategory.WITHDRAWAL, now)
            self._check_funds(actor_id, value)
            entry = Transaction(
                actor_id=actor_id,
                kind=TransactionKind.WITHDRAWAL,
                amount=value,
                timestamp=self._commit_time(now),
                note=note,
            )
            await self._commit([entry])
        return entry

    async def transfer(
        self,
        actor_id: str,
        counterparty_id: str,
        amount: AmountLike,
        note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> TransferReceipt:
        """
        Move funds from `actor_id` to `counterparty_id` in one commit.

        Only the sender's limits are checked.

        Raises:
            InvalidAmountError: amount <= 0, not a number, or finer than a cent
            InvalidActorError: actor_id is blank
            InvalidNoteError: note is too long
            SelfTransferForbiddenError: sender == recipient
            UnknownCounterpartyError: recipient is not a known actor
            RateLimitExceededError: a fraud-prevention limit refused it
            InsufficientFundsError: amount exceeds the sender's balance
        """
        value = parse_amount(amount)
        _require_actor_id(actor_id)
        note = clean_note(note)
        if counterparty_id == actor_id:
            raise SelfTransferForbiddenError(actor_id)
        if not counterparty_id or self._directory.resolve_actor(counterparty_id) is None:
            raise UnknownCounterpartyError(counterparty_id)

        async with self._lock:
            now = self._evaluation_time(now)
            self._check_limits(actor_id, value, LimitCategory.TRANSFER, now)
            self._check_funds(actor_id, value)

            timestamp = self._commit_time(now)
            transfer_id = uuid4()
            out_entry = Transaction(
                actor_id=actor_id,
                kind=TransactionKind.TRANSFER_OUT,
                amount=value,
                counterparty_id=counterparty_id,
                transfer_id=transfer_id,
                timestamp=timestamp,
                note=note,
            )
            in_entry = Transaction(
                actor_id=counterparty_id,
                kind=TransactionKind.TRANSFER_IN,
                amount=value,
                counterparty_id=actor_id,
                transfer_id=transfer_id,
                timestamp=timestamp,
                note=note,
            )
            await self._commit([out_entry, in_entry])
        return TransferReceipt(out_entry, in_entry)

    # -------------------------------------------------------------------------
    # Internals (callers hold self._lock)
    # -------------------------------------------------------------------------

    def _evaluation_time(self, now: Optional[datetime]) -> datetime:
        return as_utc(now) if now is not None else self._clock()

    def _commit_time(self, now: Optional[datetime]) -> datetime:
        """Commit timestamp, never earlier than the last entry in the log."""
        timestamp = self._evaluation_time(now)
        last = self._state.last_timestamp
        if last is not None and timestamp < last:
            return last
        return timestamp

    def _check_limits(
        self,
        actor_id: str,
        amount: Decimal,
        category: LimitCategory,
        now: datetime,
    ) -> None:
        history = self._state.by_actor.get(actor_id, ())
        decision = self._limiter.evaluate(actor_id, amount, category, history, now)
        if not decision.allowed:
            logger.info(
                "rate_limit_denied",
                actor_id=actor_id,
                category=category.value,
                reason=decision.reason.value,
                amount=str(amount),
            )
            raise RateLimitExceededError(decision.reason, decision.message)

    def _check_funds(self, actor_id: str, amount: Decimal) -> None:
        available = self.balance_of(actor_id)
        if amount > available:
            raise InsufficientFundsError(requested=amount, available=available)

    async def _commit(self, entries: list[Transaction]) -> None:
        """
        Persist then publish one commit.

        If storage raises, nothing is published and the error propagates.
        If the caller is cancelled mid-write, the write still runs to the
        end and is published when it succeeds, so memory matches storage.
        The cancellation is re-raised either way.
        """
        write = asyncio.ensure_future(self._storage.append_entries(entries))
        try:
            await asyncio.shield(write)
        except asyncio.CancelledError:
            if not write.done():
                await asyncio.wait([write])
            if write.cancelled() or write.exception() is not None:
                logger.error(
                    "ledger_commit_cancelled",
                    backend=self._storage.backend_name,
                    entry_count=len(entries),
                    written=False,
                )
            else:
                logger.warning(
                    "ledger_commit_cancelled",
                    backend=self._storage.backend_name,
                    entry_count=len(entries),
                    written=True,
                )
                self._publish(entries)
            raise
        except Exception as e:
            logger.error(
                "ledger_commit_failed",
                backend=self._storage.backend_name,
                entry_count=len(entries),
                error=str(e),
            )
            raise
        self._publish(entries)

    def _publish(self, entries: list[Transaction]) -> None:
        self._state = self._state.extended(entries)
        for entry in entries:
            logger.debug("ledger_entry_committed", **entry.to_log_dict())
