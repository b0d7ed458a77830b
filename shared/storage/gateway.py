"""Collection-style record storage backed by SQLite or process memory.

Both backends expose the same five operations over named collections
(``participants`` and ``messages``):

    insert(kind, record)          -> record id
    find_all(kind)                -> [record, ...] in insertion order
    find_one(kind, predicate)     -> record | None
    update_by_id(kind, id, patch) -> bool (False when absent)
    delete_by_id(kind, id)        -> bool (False when absent)

Every operation is atomic for a single record. There are no multi-record
transactions. Backend failures surface as ``StorageError``.
"""

from __future__ import annotations

import copy
import json
import sqlite3
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from shared.chat.errors import StorageError
from shared.logging.logger import get_logger

log = get_logger("shared.storage.gateway")

DEFAULT_DB_PATH = Path("data/batepapo.db")

Record = Dict[str, Any]
Predicate = Callable[[Record], bool]


def _new_id() -> str:
    return uuid4().hex


class StorageGateway:
    """Interface shared by the storage backends."""

    def insert(self, kind: str, record: Record) -> str:
        raise NotImplementedError

    def find_all(self, kind: str) -> List[Record]:
        raise NotImplementedError

    def find_one(self, kind: str, predicate: Predicate) -> Optional[Record]:
        for record in self.find_all(kind):
            if predicate(record):
                return record
        return None

    def find_by_id(self, kind: str, record_id: str) -> Optional[Record]:
        return self.find_one(kind, lambda r: r.get("_id") == record_id)

    def update_by_id(self, kind: str, record_id: str, patch: Record) -> bool:
        raise NotImplementedError

    def delete_by_id(self, kind: str, record_id: str) -> bool:
        raise NotImplementedError

    def close(self) -> None:
        pass


class SqliteStorageGateway(StorageGateway):
    def __init__(self, db_path: Path | str = DEFAULT_DB_PATH, timeout: float = 5.0) -> None:
        self._db_path = Path(db_path)
        self._timeout = timeout
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()
        log.info(f"SQLite storage ready at {self._db_path}")

    # ------------------------------------------------------------------
    # SQLite setup
    # ------------------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        # Autocommit mode; writes open their own IMMEDIATE transaction.
        conn = sqlite3.connect(self._db_path, timeout=self._timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        try:
            conn = self._connect()
            try:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS records (
                        seq INTEGER PRIMARY KEY AUTOINCREMENT,
                        record_id TEXT UNIQUE NOT NULL,
                        kind TEXT NOT NULL,
                        body_json TEXT NOT NULL
                    )
                    """
                )
                conn.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_records_kind_seq
                    ON records(kind, seq)
                    """
                )
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to initialise storage: {exc}") from exc

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> Record:
        record = json.loads(row["body_json"])
        record["_id"] = row["record_id"]
        return record

    @staticmethod
    def _body(record: Record) -> str:
        body = {k: v for k, v in record.items() if k != "_id"}
        return json.dumps(body)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def insert(self, kind: str, record: Record) -> str:
        record_id = _new_id()
        try:
            conn = self._connect()
            try:
                conn.execute(
                    "INSERT INTO records (record_id, kind, body_json) VALUES (?, ?, ?)",
                    (record_id, kind, self._body(record)),
                )
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise StorageError(f"insert into {kind} failed: {exc}") from exc
        return record_id

    def find_all(self, kind: str) -> List[Record]:
        try:
            conn = self._connect()
            try:
                rows = conn.execute(
                    "SELECT record_id, body_json FROM records WHERE kind = ? ORDER BY seq ASC",
                    (kind,),
                ).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise StorageError(f"find on {kind} failed: {exc}") from exc
        return [self._row_to_record(row) for row in rows]

    def find_by_id(self, kind: str, record_id: str) -> Optional[Record]:
        try:
            conn = self._connect()
            try:
                row = conn.execute(
                    "SELECT record_id, body_json FROM records WHERE kind = ? AND record_id = ?",
                    (kind, record_id),
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise StorageError(f"find on {kind} failed: {exc}") from exc
        return self._row_to_record(row) if row else None

    def update_by_id(self, kind: str, record_id: str, patch: Record) -> bool:
        try:
            conn = self._connect()
            try:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    row = conn.execute(
                        "SELECT record_id, body_json FROM records WHERE kind = ? AND record_id = ?",
                        (kind, record_id),
                    ).fetchone()
                    if row is None:
                        conn.execute("ROLLBACK")
                        return False
                    record = self._row_to_record(row)
                    record.update(patch)
                    conn.execute(
                        "UPDATE records SET body_json = ? WHERE record_id = ?",
                        (self._body(record), record_id),
                    )
                    conn.execute("COMMIT")
                except sqlite3.Error:
                    conn.execute("ROLLBACK")
                    raise
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise StorageError(f"update on {kind} failed: {exc}") from exc
        return True

    def delete_by_id(self, kind: str, record_id: str) -> bool:
        try:
            conn = self._connect()
            try:
                cur = conn.execute(
                    "DELETE FROM records WHERE kind = ? AND record_id = ?",
                    (kind, record_id),
                )
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise StorageError(f"delete on {kind} failed: {exc}") from exc
        return cur.rowcount > 0


class MemoryStorageGateway(StorageGateway):
    """Process-local backend; records are copied in and out."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._collections: Dict[str, Dict[str, Record]] = {}

    def insert(self, kind: str, record: Record) -> str:
        record_id = _new_id()
        stored = copy.deepcopy(record)
        stored["_id"] = record_id
        with self._lock:
            self._collections.setdefault(kind, {})[record_id] = stored
        return record_id

    def find_all(self, kind: str) -> List[Record]:
        with self._lock:
            records = list(self._collections.get(kind, {}).values())
            return copy.deepcopy(records)

    def update_by_id(self, kind: str, record_id: str, patch: Record) -> bool:
        with self._lock:
            record = self._collections.get(kind, {}).get(record_id)
            if record is None:
                return False
            record.update({k: copy.deepcopy(v) for k, v in patch.items() if k != "_id"})
            return True

    def delete_by_id(self, kind: str, record_id: str) -> bool:
        with self._lock:
            return self._collections.get(kind, {}).pop(record_id, None) is not None


def create_gateway(backend: str = "sqlite", db_path: Path | str = DEFAULT_DB_PATH) -> StorageGateway:
    backend = (backend or "sqlite").lower().strip()
    if backend == "memory":
        log.info("Using in-memory storage (records are lost on exit)")
        return MemoryStorageGateway()
    if backend == "sqlite":
        return SqliteStorageGateway(db_path)
    raise ValueError(f"Unsupported storage backend: {backend}")


__all__ = [
    "DEFAULT_DB_PATH",
    "StorageGateway",
    "SqliteStorageGateway",
    "MemoryStorageGateway",
    "create_gateway",
]
