"""
In-Memory Storage Implementation

Used for tests, demos, and whenever no persistent backend is configured.
Nothing survives a process restart.
"""

from typing import Sequence
from uuid import UUID

from wallet.models.actor import ActorRecord
from wallet.models.audit import AuditEvent
from wallet.models.transaction import Transaction
from wallet.services.storage.interface import (
    ActorStorageInterface,
    AuditStorageInterface,
    TransactionStorageInterface,
)


class InMemoryTransactionStorage(TransactionStorageInterface):
    """Keeps the transaction log in a Python list."""

    backend_name = "memory"

    def __init__(self, entries: Sequence[Transaction] = ()):
        self._entries: list[Transaction] = list(entries)

    async def append_entries(self, entries: Sequence[Transaction]) -> None:
        # A single list.extend is the whole commit
        self._entries.extend(entries)

    async def load_all(self) -> list[Transaction]:
        return list(self._entries)


class InMemoryActorStorage(ActorStorageInterface):
    """Keeps registered actors in a Python list."""

    def __init__(self, records: Sequence[ActorRecord] = ()):
        self._records: list[ActorRecord] = list(records)

    async def append_actor(self, record: ActorRecord) -> None:
        self._records.append(record)

    async def load_all(self) -> list[ActorRecord]:
        return list(self._records)


class InMemoryAuditStorage(AuditStorageInterface):
    """Keeps audit events in a Python list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
