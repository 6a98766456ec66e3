"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the
transaction log, the actor registry and the audit log. In-memory,
JSON-lines file and Google Sheets backends are interchangeable behind
the same interfaces.
"""

from wallet.services.storage.interface import (
    ActorStorageInterface,
    AuditStorageInterface,
    CorruptLogError,
    StorageConnectionError,
    StorageError,
    TransactionStorageInterface,
)
from wallet.services.storage.in_memory import (
    InMemoryActorStorage,
    InMemoryAuditStorage,
    InMemoryTransactionStorage,
)
from wallet.services.storage.jsonl_file import (
    JsonlActorStorage,
    JsonlTransactionStorage,
)
from wallet.services.storage.google_sheets import (
    GoogleSheetsActorStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
)

__all__ = [
    # Interfaces
    "ActorStorageInterface",
    "AuditStorageInterface",
    "TransactionStorageInterface",
    # Exceptions
    "CorruptLogError",
    "StorageConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryActorStorage",
    "InMemoryAuditStorage",
    "InMemoryTransactionStorage",
    # File implementation
    "JsonlActorStorage",
    "JsonlTransactionStorage",
    # Google Sheets implementation
    "GoogleSheetsActorStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStorage",
]
