"""
Core Ledger Models for Personal Wallet

A Transaction is the only unit of state in the ledger.
Balances are NEVER stored; they are always derived from these records.

DESIGN DECISION: Transactions are frozen Pydantic models.
Once created they cannot be edited, which keeps the log append-only
all the way down to the object level.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import NamedTuple, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


MAX_NOTE_LENGTH = 500


def utcnow() -> datetime:
    """Current instant as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class TransactionKind(str, Enum):
    """
    The four kinds of ledger entry.

    Credits (deposit, transfer_in) raise the balance,
    debits (withdrawal, transfer_out) lower it.
    """
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"

    @property
    def is_credit(self) -> bool:
        return self in (TransactionKind.DEPOSIT, TransactionKind.TRANSFER_IN)

    @property
    def is_transfer(self) -> bool:
        return self in (TransactionKind.TRANSFER_IN, TransactionKind.TRANSFER_OUT)


# =============================================================================
# CORE TRANSACTION MODEL
# =============================================================================

class Transaction(BaseModel):
    """
    One immutable ledger entry.

    CRITICAL: Only the Ledger creates these, and only inside a commit.
    Transfer entries always come in pairs that share transfer_id,
    amount and timestamp.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique entry ID, never reused"
    )
    actor_id: str = Field(
        ...,
        min_length=1,
        description="Actor whose balance this entry affects"
    )
    kind: TransactionKind
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Strictly positive amount"
    )
    counterparty_id: Optional[str] = Field(
        default=None,
        description="The other actor of a transfer"
    )
    transfer_id: Optional[UUID] = Field(
        default=None,
        description="Shared by both halves of one logical transfer"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the entry was committed (UTC)"
    )
    note: Optional[str] = Field(
        default=None,
        max_length=MAX_NOTE_LENGTH,
        description="Free-text annotation"
    )

    @field_validator('amount')
    @classmethod
    def reject_non_finite(cls, v: Decimal) -> Decimal:
        if not v.is_finite():
            raise ValueError("Amount must be a finite number")
        return v

    @field_validator('timestamp')
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return as_utc(v)

    @field_validator('note')
    @classmethod
    def empty_note_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @model_validator(mode='after')
    def validate_transfer_fields(self) -> 'Transaction':
        """Counterparty and transfer_id belong to transfer entries only."""
        if self.kind.is_transfer:
            if not self.counterparty_id:
                raise ValueError("Transfer entries require a counterparty")
            if self.transfer_id is None:
                raise ValueError("Transfer entries require a transfer_id")
            if self.counterparty_id == self.actor_id:
                raise ValueError("Transfer counterparty must differ from the actor")
        else:
            if self.counterparty_id is not None:
                raise ValueError(f"{self.kind.value} entries cannot have a counterparty")
            if self.transfer_id is not None:
                raise ValueError(f"{self.kind.value} entries cannot have a transfer_id")
        return self

    @property
    def signed_amount(self) -> Decimal:
        """Effect of this entry on its actor's balance."""
        return self.amount if self.kind.is_credit else -self.amount

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "transaction_id": str(self.id),
            "actor_id": self.actor_id,
            "kind": self.kind.value,
            "amount": str(self.amount),
            "counterparty_id": self.counterparty_id,
            "transfer_id": str(self.transfer_id) if self.transfer_id else None,
            "timestamp": self.timestamp.isoformat(),
        }


class TransferReceipt(NamedTuple):
    """Both halves of a committed transfer."""
    out_entry: Transaction
    in_entry: Transaction


def derive_balance(entries, actor_id: str) -> Decimal:
    """
    Pure fold of the log into one actor's balance.

    balance = deposits + transfers in - withdrawals - transfers out
    """
    return sum(
        (entry.signed_amount for entry in entries if entry.actor_id == actor_id),
        Decimal("0"),
    )


# =============================================================================
# QUERY MODELS
# =============================================================================

class HistoryQuery(BaseModel):
    """
    Filters for browsing one actor's history.

    All filters are optional and combine with AND.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    kinds: list[TransactionKind] = Field(
        default_factory=list,
        description="Keep only these kinds (empty = all kinds)"
    )
    date_from: Optional[date] = Field(
        default=None,
        description="Keep entries on or after this day"
    )
    date_to: Optional[date] = Field(
        default=None,
        description="Keep entries on or before this day (whole day included)"
    )
    search_term: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Matched against the note and the counterparty's name"
    )
    limit: Optional[int] = Field(
        default=None,
        ge=1,
        le=1000,
    )

    @model_validator(mode='after')
    def validate_date_range(self) -> 'HistoryQuery':
        if self.date_from and self.date_to and self.date_to < self.date_from:
            raise ValueError("date_to cannot be before date_from")
        return self


class HistorySummary(BaseModel):
    """Aggregate view of one actor's ledger, for dashboards."""

    actor_id: str
    balance: Decimal
    transaction_count: int = Field(ge=0)
    totals_by_kind: dict[TransactionKind, Decimal] = Field(default_factory=dict)
    recent: list[Transaction] = Field(default_factory=list)

    @property
    def total_in(self) -> Decimal:
        return sum(
            (total for kind, total in self.totals_by_kind.items() if kind.is_credit),
            Decimal("0"),
        )

    @property
    def total_out(self) -> Decimal:
        return sum(
            (total for kind, total in self.totals_by_kind.items() if not kind.is_credit),
            Decimal("0"),
        )
