"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the ledger in memory for tests and demos
2. Persist to a local JSON-lines file or Google Sheets
3. Keep ledger logic decoupled from storage implementation

The transaction log and the actor registry each need exactly two
operations: append (one commit, or one new actor) and load everything
back. There is no update and no delete; both are append-only.
"""

from abc import ABC, abstractmethod
from typing import Sequence
from uuid import UUID

from wallet.models.actor import ActorRecord
from wallet.models.audit import AuditEvent
from wallet.models.transaction import Transaction


class TransactionStorageInterface(ABC):
    """
    Abstract interface for the persisted transaction log.

    Any storage implementation must treat one append_entries call as
    one commit unit: either every entry in the batch is recorded or none is.
    """

    #: Short name shown in logs and on the settings page
    backend_name: str = "unknown"

    @abstractmethod
    async def append_entries(self, entries: Sequence[Transaction]) -> None:
        """
        Durably record one commit worth of entries.

        Args:
            entries: The entries of one ledger commit, in insertion order

        Raises:
            StorageError: If the batch could not be recorded.
                          Nothing from the batch may remain recorded.
        """
        pass

    @abstractmethod
    async def load_all(self) -> list[Transaction]:
        """
        Load every recorded entry in insertion order.

        Returns:
            All entries, oldest first

        Raises:
            StorageError: If the log cannot be read
        """
        pass


class ActorStorageInterface(ABC):
    """
    Abstract interface for registered actors.

    Append-only like the transaction log: an actor is written once,
    when it registers, and read back in full at startup.
    """

    @abstractmethod
    async def append_actor(self, record: ActorRecord) -> None:
        """
        Durably record one newly registered actor.

        Raises:
            StorageError: If the record could not be written
        """
        pass

    @abstractmethod
    async def load_all(self) -> list[ActorRecord]:
        """
        Load every registered actor, oldest first.

        Raises:
            StorageError: If the records cannot be read
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one user action).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class CorruptLogError(StorageError):
    """A recorded entry or actor could not be parsed back."""
    pass
