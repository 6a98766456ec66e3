"""
History Query Engine

DESIGN DECISION: Queries are read-only views over the ledger snapshot.
They never touch storage and never change state; every number shown
to a user comes from ledger.history_of() / ledger.balance_of().

Day boundaries are interpreted in the same timezone the rate limiter
uses for its daily caps, so "today" means the same thing everywhere.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from wallet.identity.interface import ActorDirectory
from wallet.ledger.ledger import Ledger
from wallet.models.transaction import (
    HistoryQuery,
    HistorySummary,
    Transaction,
    TransactionKind,
)


class QueryExecutionError(Exception):
    """Error during query execution."""
    pass


class HistoryQueryExecutor:
    """
    Filters and summarizes one actor's history.

    GUARANTEES:
    - Only returns entries that exist in the ledger
    - Result order is the ledger's history order (most recent first)
    - An empty result is a valid answer, not an error
    """

    def __init__(self, ledger: Ledger, directory: ActorDirectory):
        self._ledger = ledger
        self._directory = directory

    def search(self, actor_id: str, query: Optional[HistoryQuery] = None) -> list[Transaction]:
        """Apply the query filters to the actor's history."""
        query = query or HistoryQuery()
        if not actor_id:
            raise QueryExecutionError("An actor id is required")

        kinds = set(query.kinds)
        term = (query.search_term or "").lower()
        results: list[Transaction] = []

        for entry in self._ledger.history_of(actor_id):
            if kinds and entry.kind not in kinds:
                continue
            if not self._in_date_range(entry, query.date_from, query.date_to):
                continue
            if term and not self._matches_term(entry, term):
                continue
            results.append(entry)
            if query.limit and len(results) >= query.limit:
                break

        return results

    def summarize(self, actor_id: str, recent_count: int = 5) -> HistorySummary:
        """Totals per kind, count, balance and the most recent entries."""
        history = self._ledger.history_of(actor_id)

        totals: dict[TransactionKind, Decimal] = {}
        for entry in history:
            totals[entry.kind] = totals.get(entry.kind, Decimal("0")) + entry.amount

        return HistorySummary(
            actor_id=actor_id,
            balance=self._ledger.balance_of(actor_id),
            transaction_count=len(history),
            totals_by_kind=totals,
            recent=history[:max(recent_count, 0)],
        )

    def counterparty_name(self, entry: Transaction) -> Optional[str]:
        """Display name of the other side of a transfer, if known."""
        if not entry.counterparty_id:
            return None
        profile = self._directory.resolve_actor(entry.counterparty_id)
        return profile.name if profile else None

    def _local_date(self, timestamp: datetime) -> date:
        return timestamp.astimezone(self._ledger.limits.tz).date()

    def _in_date_range(
        self,
        entry: Transaction,
        date_from: Optional[date],
        date_to: Optional[date],
    ) -> bool:
        if date_from is None and date_to is None:
            return True
        day = self._local_date(entry.timestamp)
        if date_from and day < date_from:
            return False
        # Comparing calendar days keeps the whole date_to day
        if date_to and day > date_to:
            return False
        return True

    def _matches_term(self, entry: Transaction, term: str) -> bool:
        if entry.note and term in entry.note.lower():
            return True
        name = self.counterparty_name(entry)
        return bool(name and term in name.lower())
