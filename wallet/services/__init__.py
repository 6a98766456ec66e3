"""Services package."""

from wallet.services.storage import (
    ActorStorageInterface,
    AuditStorageInterface,
    CorruptLogError,
    GoogleSheetsActorStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    InMemoryActorStorage,
    InMemoryAuditStorage,
    InMemoryTransactionStorage,
    JsonlActorStorage,
    JsonlTransactionStorage,
    StorageConnectionError,
    StorageError,
    TransactionStorageInterface,
)

__all__ = [
    # Storage interfaces
    "ActorStorageInterface",
    "AuditStorageInterface",
    "TransactionStorageInterface",
    # Storage exceptions
    "CorruptLogError",
    "StorageConnectionError",
    "StorageError",
    # Storage implementations
    "GoogleSheetsActorStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStorage",
    "InMemoryActorStorage",
    "InMemoryAuditStorage",
    "InMemoryTransactionStorage",
    "JsonlActorStorage",
    "JsonlTransactionStorage",
]
