"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a persistent backend because:
1. Users can look at their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No multi-row transactions; we rely on a single append_rows call
  per commit so a transfer's two rows land in one API request
- Limited query capabilities (we load everything and filter in Python)
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from wallet.config import get_settings
from wallet.models.actor import ActorProfile, ActorRecord
from wallet.models.audit import AuditEvent, AuditEventType, AuditSeverity
from wallet.models.transaction import Transaction, TransactionKind
from wallet.services.storage.interface import (
    ActorStorageInterface,
    AuditStorageInterface,
    CorruptLogError,
    StorageConnectionError,
    StorageError,
    TransactionStorageInterface,
)


# Column mappings for Transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "actor_id",
    "kind",
    "amount",
    "counterparty_id",
    "transfer_id",
    "timestamp",
    "note",
]

# Column mappings for Actors sheet
ACTOR_COLUMNS = [
    "id",
    "name",
    "email",
    "created_at",
    "password_salt",
    "password_hash",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "actor_id",
    "correlation_id",
    "description",
    "details_json",
    "error_code",
    "error_message",
    "is_user_action",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for connecting.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the Transactions worksheet."""
        return self._get_or_create_sheet(
            self._settings.transactions_sheet_name,
            TRANSACTION_COLUMNS,
            rows=1000,
        )

    def get_actors_sheet(self) -> gspread.Worksheet:
        """Get or create the Actors worksheet."""
        return self._get_or_create_sheet(
            self._settings.actors_sheet_name,
            ACTOR_COLUMNS,
            rows=500,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """
    Google Sheets implementation of the transaction log.

    One entry per row, appended in insertion order.
    """

    backend_name = "google_sheets"

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _entry_to_row(entry: Transaction) -> list:
        """Convert a Transaction to a spreadsheet row."""
        return [
            str(entry.id),
            entry.actor_id,
            entry.kind.value,
            str(entry.amount),
            entry.counterparty_id or "",
            str(entry.transfer_id) if entry.transfer_id else "",
            entry.timestamp.isoformat(),
            entry.note or "",
        ]

    @staticmethod
    def _row_to_entry(row: list) -> Transaction:
        """Convert a spreadsheet row to a Transaction."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return Transaction(
            id=UUID(safe_get(0)),
            actor_id=safe_get(1),
            kind=TransactionKind(safe_get(2)),
            amount=Decimal(safe_get(3)),
            counterparty_id=safe_get(4) or None,
            transfer_id=UUID(safe_get(5)) if safe_get(5) else None,
            timestamp=datetime.fromisoformat(safe_get(6)),
            note=safe_get(7) or None,
        )

    async def append_entries(self, entries: Sequence[Transaction]) -> None:
        """Append one commit with a single append_rows request."""
        # Not retried: a repeated request could record the commit twice
        if not entries:
            return
        try:
            sheet = self._client.get_transactions_sheet()
            sheet.append_rows(
                [self._entry_to_row(entry) for entry in entries],
                value_input_option="RAW",
            )
        except Exception as e:
            raise StorageError(f"Failed to append transactions: {e}")

    async def load_all(self) -> list[Transaction]:
        """Load every row (excluding header) as a Transaction."""
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to load transactions: {e}")

        entries = []
        for row_number, row in enumerate(all_rows, start=2):
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                entries.append(self._row_to_entry(row))
            except Exception as e:
                raise CorruptLogError(f"Unreadable transaction in row {row_number}: {e}")
        return entries


class GoogleSheetsActorStorage(ActorStorageInterface):
    """
    Google Sheets implementation of the actor registry.

    One actor per row, written once at registration.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _record_to_row(record: ActorRecord) -> list:
        profile = record.profile
        return [
            profile.id,
            profile.name,
            profile.email,
            profile.created_at.isoformat(),
            record.password_salt,
            record.password_hash,
        ]

    @staticmethod
    def _row_to_record(row: list) -> ActorRecord:
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return ActorRecord(
            profile=ActorProfile(
                id=safe_get(0),
                name=safe_get(1),
                email=safe_get(2),
                created_at=datetime.fromisoformat(safe_get(3)),
            ),
            password_salt=safe_get(4),
            password_hash=safe_get(5),
        )

    async def append_actor(self, record: ActorRecord) -> None:
        # Not retried, same as commits: a repeat would register the actor twice
        try:
            sheet = self._client.get_actors_sheet()
            sheet.append_row(self._record_to_row(record), value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to append actor: {e}")

    async def load_all(self) -> list[ActorRecord]:
        try:
            sheet = self._client.get_actors_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to load actors: {e}")

        records = []
        for row_number, row in enumerate(all_rows, start=2):
            if not row or not row[0]:
                continue
            try:
                records.append(self._row_to_record(row))
            except Exception as e:
                raise CorruptLogError(f"Unreadable actor in row {row_number}: {e}")
        return records


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            actor_id=safe_get(6) or None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_code=safe_get(10) or None,
            error_message=safe_get(11) or None,
            is_user_action=safe_get(12).lower() == "true",
        )

    def _load_events(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue  # Skip malformed rows
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        events = [
            e for e in self._load_events()
            if e.correlation_id == correlation_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        events = [
            e for e in self._load_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events, newest first."""
        events = self._load_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
