"""
JSON-Lines File Storage Implementation

DESIGN DECISION: One line per COMMIT, not per entry.
A transfer's two entries are written as a single line, so on disk a
transfer is either fully present or fully absent:
- A failed write is rolled back by truncating to the previous size
- A line cut short by a crash is dropped on load (only ever the last line)
  and cut from the file before anything new is appended

Registered actors live in a second file with the same rules, one
actor per line.

TRADEOFFS:
- Whole-file scan on load (fine for a personal ledger)
- Single process only; no file locking across processes
"""

import json
import os
from pathlib import Path
from typing import Sequence
from uuid import uuid4

import structlog
from pydantic import ValidationError

from wallet.models.actor import ActorRecord
from wallet.models.transaction import Transaction
from wallet.services.storage.interface import (
    ActorStorageInterface,
    CorruptLogError,
    StorageError,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)

_UNREADABLE = (
    UnicodeDecodeError,
    json.JSONDecodeError,
    KeyError,
    TypeError,
    ValidationError,
)


def _append_line(path: Path, line: str) -> None:
    """Append one line, rolling the file back on any failure."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            size_before = f.tell()
            try:
                f.write(line)
                f.flush()
                os.fsync(f.fileno())
            except OSError:
                f.truncate(size_before)
                raise
    except OSError as e:
        raise StorageError(f"Failed to append to {path}: {e}")


def _read_complete_lines(path: Path) -> list[bytes]:
    """
    Every complete line of the file.

    An incomplete final line is logged and cut from the file.
    """
    if not path.exists():
        return []

    try:
        raw = path.read_bytes()
    except OSError as e:
        raise StorageError(f"Failed to read {path}: {e}")

    lines = raw.split(b"\n")
    # A well-formed file ends with "\n", leaving an empty final element.
    # Anything else in that slot is a write cut short by a crash.
    tail = lines.pop()
    if tail:
        logger.warning(
            "jsonl_truncated_commit_discarded",
            path=str(path),
            length=len(tail),
        )
        try:
            with open(path, "r+b") as f:
                f.truncate(len(raw) - len(tail))
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise StorageError(f"Failed to repair {path}: {e}")

    return lines


class JsonlTransactionStorage(TransactionStorageInterface):
    """Append-only transaction log in a local file."""

    backend_name = "jsonl"

    def __init__(self, path: Path | str):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _commit_to_line(self, entries: Sequence[Transaction]) -> str:
        record = {
            "commit_id": str(uuid4()),
            "entries": [entry.model_dump(mode="json") for entry in entries],
        }
        return json.dumps(record, separators=(",", ":")) + "\n"

    async def append_entries(self, entries: Sequence[Transaction]) -> None:
        """Write one commit as one line, rolling back on any failure."""
        if not entries:
            return
        _append_line(self._path, self._commit_to_line(entries))

    async def load_all(self) -> list[Transaction]:
        """Replay every complete commit line, oldest first."""
        entries: list[Transaction] = []
        for line_number, line in enumerate(_read_complete_lines(self._path), start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line.decode("utf-8"))
                entries.extend(
                    Transaction.model_validate(item) for item in record["entries"]
                )
            except _UNREADABLE as e:
                raise CorruptLogError(
                    f"Unreadable commit at {self._path}:{line_number}: {e}"
                )

        return entries


class JsonlActorStorage(ActorStorageInterface):
    """Registered actors in a local file, one per line."""

    def __init__(self, path: Path | str):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def append_actor(self, record: ActorRecord) -> None:
        line = json.dumps(record.model_dump(mode="json"), separators=(",", ":")) + "\n"
        _append_line(self._path, line)

    async def load_all(self) -> list[ActorRecord]:
        records: list[ActorRecord] = []
        for line_number, line in enumerate(_read_complete_lines(self._path), start=1):
            if not line.strip():
                continue
            try:
                records.append(ActorRecord.model_validate_json(line))
            except _UNREADABLE as e:
                raise CorruptLogError(
                    f"Unreadable actor at {self._path}:{line_number}: {e}"
                )
        return records
