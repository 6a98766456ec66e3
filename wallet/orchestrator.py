"""
Main Orchestrator for Personal Wallet

This module ties together all the components and defines the
end-to-end flows for:
1. Authentication (register / sign in / sign out)
2. Money movement (deposit / withdraw / transfer for the signed-in actor)
3. Reading (balance, history, summary, recipient search)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing moves without a signed-in actor
- Every committed or refused operation is audited
- Ledger errors reach the caller unchanged so the UI can show them

The ledger itself knows nothing about sessions or audit events;
this is the layer that adds them.
"""

from decimal import Decimal
from typing import NamedTuple, Optional
from uuid import UUID

import structlog

from wallet.audit import AuditLogger, create_correlation_id
from wallet.config import get_settings
from wallet.identity import (
    IdentityError,
    IdentityProvider,
    IdentitySession,
    InMemoryIdentityDirectory,
)
from wallet.ledger import Ledger, LedgerError
from wallet.ledger.ledger import AmountLike
from wallet.models.actor import ActorProfile
from wallet.models.limits import RateLimits
from wallet.models.transaction import (
    HistoryQuery,
    HistorySummary,
    Transaction,
    TransferReceipt,
)
from wallet.queries import HistoryQueryExecutor
from wallet.services.storage import (
    ActorStorageInterface,
    AuditStorageInterface,
    GoogleSheetsActorStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    InMemoryActorStorage,
    InMemoryAuditStorage,
    InMemoryTransactionStorage,
    JsonlActorStorage,
    JsonlTransactionStorage,
    StorageError,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)


class NotAuthenticatedError(Exception):
    """Raised when a wallet operation is attempted with nobody signed in."""

    def __init__(self):
        super().__init__("Please sign in first")


class AuthFlow:
    """
    Orchestrates registration and sign-in for one session.

    Identity errors are audited and re-raised for the UI to display.
    New actors are written to `actor_storage`, when given, so they
    survive a restart.
    """

    def __init__(
        self,
        session: IdentitySession,
        audit_logger: Optional[AuditLogger] = None,
        actor_storage: Optional[ActorStorageInterface] = None,
    ):
        self._session = session
        self._audit_logger = audit_logger
        self._actor_storage = actor_storage

    @property
    def session(self) -> IdentitySession:
        return self._session

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        correlation_id: Optional[UUID] = None,
    ) -> ActorProfile:
        """
        Create an account and sign it in.

        If the account cannot be stored it is removed again and the
        session is signed out.

        Raises:
            IdentityError: Email already registered
            ValueError: Invalid name, email or password
            StorageError: The account could not be stored
        """
        correlation_id = correlation_id or create_correlation_id()
        profile = self._session.register(name, email, password)

        if self._actor_storage:
            directory = self._session.directory
            try:
                await self._actor_storage.append_actor(directory.export_record(profile.id))
            except StorageError as e:
                directory.forget(profile.id)
                self._session.sign_out()
                logger.error("actor_store_failed", actor_id=profile.id, error=str(e))
                if self._audit_logger:
                    await self._audit_logger.log_error(
                        error_type="actor_store_failed",
                        error_message=str(e),
                        details={"actor_id": profile.id},
                        correlation_id=correlation_id,
                    )
                raise

        if self._audit_logger:
            await self._audit_logger.log_actor_registered(
                actor_id=profile.id,
                name=profile.name,
                correlation_id=correlation_id,
            )
        return profile

    async def sign_in(
        self,
        email: str,
        password: str,
        correlation_id: Optional[UUID] = None,
    ) -> ActorProfile:
        correlation_id = correlation_id or create_correlation_id()
        try:
            profile = self._session.sign_in(email, password)
        except IdentityError:
            if self._audit_logger:
                await self._audit_logger.log_sign_in_failed(
                    email=email,
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_actor_signed_in(
                actor_id=profile.id,
                correlation_id=correlation_id,
            )
        return profile

    async def sign_out(self, correlation_id: Optional[UUID] = None) -> None:
        actor_id = self._session.current_actor_id()
        self._session.sign_out()
        if actor_id and self._audit_logger:
            await self._audit_logger.log_actor_signed_out(
                actor_id=actor_id,
                correlation_id=correlation_id,
            )


class WalletFlow:
    """
    Orchestrates money movement for whoever is signed in.

    Flow for every mutation:
    1. Resolve the current actor (NotAuthenticatedError if none)
    2. Call the ledger (which checks amount, limits and funds)
    3. Audit the outcome: committed, rejected, or commit failed
    4. Return the entry or re-raise the error
    """

    def __init__(
        self,
        ledger: Ledger,
        identity: IdentityProvider,
        audit_logger: Optional[AuditLogger] = None,
        query_executor: Optional[HistoryQueryExecutor] = None,
    ):
        self._ledger = ledger
        self._identity = identity
        self._audit_logger = audit_logger
        self._queries = query_executor or HistoryQueryExecutor(ledger, identity)

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def queries(self) -> HistoryQueryExecutor:
        return self._queries

    def _require_actor(self) -> str:
        actor_id = self._identity.current_actor_id()
        if not actor_id:
            raise NotAuthenticatedError()
        return actor_id

    async def _audit_failure(
        self,
        actor_id: str,
        operation: str,
        amount: AmountLike,
        error: Exception,
        correlation_id: UUID,
    ) -> None:
        if not self._audit_logger:
            return
        if isinstance(error, LedgerError):
            await self._audit_logger.log_rejection(
                actor_id=actor_id,
                operation=operation,
                error=error,
                amount=str(amount),
                correlation_id=correlation_id,
            )
        else:
            await self._audit_logger.log_commit_failed(
                actor_id=actor_id,
                operation=operation,
                error_message=str(error),
                correlation_id=correlation_id,
            )

    async def deposit(
        self,
        amount: AmountLike,
        note: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        actor_id = self._require_actor()
        correlation_id = correlation_id or create_correlation_id()
        try:
            entry = await self._ledger.deposit(actor_id, amount, note=note)
        except (LedgerError, StorageError) as e:
            await self._audit_failure(actor_id, "deposit", amount, e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_deposit(entry, correlation_id)
        return entry

    async def withdraw(
        self,
        amount: AmountLike,
        note: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        actor_id = self._require_actor()
        correlation_id = correlation_id or create_correlation_id()
        try:
            entry = await self._ledger.withdraw(actor_id, amount, note=note)
        except (LedgerError, StorageError) as e:
            await self._audit_failure(actor_id, "withdrawal", amount, e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_withdrawal(entry, correlation_id)
        return entry

    async def transfer(
        self,
        counterparty_id: str,
        amount: AmountLike,
        note: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> TransferReceipt:
        actor_id = self._require_actor()
        correlation_id = correlation_id or create_correlation_id()
        try:
            receipt = await self._ledger.transfer(
                actor_id, counterparty_id, amount, note=note
            )
        except (LedgerError, StorageError) as e:
            await self._audit_failure(actor_id, "transfer", amount, e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_transfer(receipt, correlation_id)
        return receipt

    def balance(self) -> Decimal:
        return self._ledger.balance_of(self._require_actor())

    def history(self, query: Optional[HistoryQuery] = None) -> list[Transaction]:
        """The current actor's history, optionally filtered."""
        actor_id = self._require_actor()
        if query is None:
            return self._ledger.history_of(actor_id)
        return self._queries.search(actor_id, query)

    def summary(self, recent_count: int = 5) -> HistorySummary:
        return self._queries.summarize(self._require_actor(), recent_count)

    def search_recipients(self, text: str) -> list[ActorProfile]:
        """Other actors whose name or email contains `text`."""
        actor_id = self._require_actor()
        return [
            actor for actor in self._identity.find_actors_by_name_fragment(text)
            if actor.id != actor_id
        ]


class AppComponents(NamedTuple):
    """Process-wide objects shared by every session."""
    directory: InMemoryIdentityDirectory
    ledger: Ledger
    audit_logger: AuditLogger
    sheets_client: Optional[GoogleSheetsClient]
    actor_storage: Optional[ActorStorageInterface] = None

    def new_session(self) -> tuple[AuthFlow, WalletFlow]:
        """Flows bound to a fresh, signed-out session."""
        session = IdentitySession(self.directory)
        auth_flow = AuthFlow(session, self.audit_logger, self.actor_storage)
        wallet_flow = WalletFlow(
            ledger=self.ledger,
            identity=session,
            audit_logger=self.audit_logger,
        )
        return auth_flow, wallet_flow


class _Storage(NamedTuple):
    transactions: TransactionStorageInterface
    actors: ActorStorageInterface
    audit: AuditStorageInterface
    sheets_client: Optional[GoogleSheetsClient]


def _create_storage(backend: str) -> _Storage:
    if backend == "google_sheets":
        sheets_client = GoogleSheetsClient()
        return _Storage(
            GoogleSheetsTransactionStorage(sheets_client),
            GoogleSheetsActorStorage(sheets_client),
            GoogleSheetsAuditStorage(sheets_client),
            sheets_client,
        )
    if backend == "jsonl":
        ledger_settings = get_settings().ledger
        return _Storage(
            JsonlTransactionStorage(ledger_settings.jsonl_file),
            JsonlActorStorage(ledger_settings.actors_jsonl_file),
            InMemoryAuditStorage(),
            None,
        )
    return _Storage(
        InMemoryTransactionStorage(),
        InMemoryActorStorage(),
        InMemoryAuditStorage(),
        None,
    )


async def _load(
    storage: _Storage,
    limits: RateLimits,
) -> tuple[InMemoryIdentityDirectory, Ledger, int]:
    """Restore actors first, then replay the ledger against them."""
    directory = InMemoryIdentityDirectory()
    actor_count = directory.restore(await storage.actors.load_all())
    ledger = Ledger(directory, storage=storage.transactions, limits=limits)
    entry_count = await ledger.load()
    logger.info("actors_restored", actor_count=actor_count)
    return directory, ledger, entry_count


async def create_app_components(
    backend: Optional[str] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        backend: "memory", "jsonl" or "google_sheets".
                 Defaults to the LEDGER_STORAGE_BACKEND setting.

    Registered actors and the ledger are loaded from the same backend.
    If the configured backend cannot be set up or loaded, falls back
    to in-memory storage so the app still starts.

    Returns:
        AppComponents with a loaded ledger
    """
    settings = get_settings()
    backend = backend or settings.ledger.storage_backend
    limits = settings.rate_limits.to_limits()

    storage_error = None
    try:
        storage = _create_storage(backend)
        directory, ledger, entry_count = await _load(storage, limits)
    except Exception as e:
        # Storage not configured - continue without it
        logger.warning("storage_unavailable", backend=backend, error=str(e))
        storage_error = str(e)
        storage = _create_storage("memory")
        directory, ledger, entry_count = await _load(storage, limits)

    audit_logger = AuditLogger(storage.audit)
    if storage_error:
        await audit_logger.log_error(
            error_type="storage_unavailable",
            error_message=storage_error,
            details={"backend": backend},
        )
    await audit_logger.log_ledger_loaded(entry_count, storage.transactions.backend_name)

    return AppComponents(
        directory=directory,
        ledger=ledger,
        audit_logger=audit_logger,
        sheets_client=storage.sheets_client,
        actor_storage=storage.actors,
    )
