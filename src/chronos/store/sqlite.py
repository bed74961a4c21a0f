"""Durable key/value record store backed by sqlite."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

from ..errors import PersistenceError, StoreConnectionError

logger = logging.getLogger(__name__)


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _json_dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


class RecordStore(ABC):
    """A single named collection of records keyed by one field.

    open() raises StoreConnectionError when the store is unreachable; the
    record operations raise PersistenceError when their transaction fails.
    """

    @abstractmethod
    def open(self) -> None:
        """Ensure the store and its collection exist. Idempotent."""

    @abstractmethod
    def put(self, record: dict[str, Any]) -> None:
        """Insert or replace the record with the same key."""

    @abstractmethod
    def get_all(self) -> list[dict[str, Any]]:
        """Every record, in insertion order."""

    @abstractmethod
    def get(self, key: str) -> Optional[dict[str, Any]]:
        """One record by key, or None."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a record. Unknown keys are ignored."""


class SqliteRecordStore(RecordStore):
    """RecordStore over a sqlite file.

    Scalar fields are kept as a JSON document; the one binary field is kept
    in a BLOB column next to it. Every operation runs in its own connection
    and transaction.
    """

    def __init__(
        self,
        db_path: Path,
        collection: str = "capsules",
        key_field: str = "id",
        blob_field: str = "media_blob",
    ):
        if not collection.isidentifier():
            raise ValueError(f"Invalid collection name: {collection!r}")
        self.db_path = db_path
        self.collection = collection
        self.key_field = key_field
        self.blob_field = blob_field
        self._lock = threading.Lock()
        self._opened = False

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def open(self) -> None:
        if self._opened:
            return
        with self._lock:
            if self._opened:
                return
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = self._connect()
                try:
                    conn.executescript(
                        f"""
                        CREATE TABLE IF NOT EXISTS {self.collection}(
                          key TEXT PRIMARY KEY,
                          doc_json TEXT NOT NULL,
                          blob BLOB,
                          updated_at TEXT NOT NULL
                        );
                        """
                    )
                    conn.commit()
                finally:
                    conn.close()
            except (OSError, sqlite3.Error) as e:
                raise StoreConnectionError(f"Cannot open store at {self.db_path}: {e}") from e
            self._opened = True
            logger.debug(f"Opened store {self.db_path} ({self.collection})")

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        self.open()
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise StoreConnectionError(f"Cannot connect to store at {self.db_path}: {e}") from e
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            raise PersistenceError(f"Transaction on '{self.collection}' failed: {e}") from e
        finally:
            conn.close()

    def put(self, record: dict[str, Any]) -> None:
        key = record.get(self.key_field)
        if not key:
            raise PersistenceError(f"Record has no '{self.key_field}'")

        doc = {k: v for k, v in record.items() if k != self.blob_field}
        blob = record.get(self.blob_field)
        try:
            doc_json = _json_dumps(doc)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Record {key} is not serializable: {e}") from e

        with self._transaction() as conn:
            conn.execute(
                f"INSERT INTO {self.collection}(key, doc_json, blob, updated_at) VALUES(?, ?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET doc_json=excluded.doc_json, blob=excluded.blob, "
                "updated_at=excluded.updated_at",
                (str(key), doc_json, blob, _iso_now()),
            )

    def get_all(self) -> list[dict[str, Any]]:
        with self._transaction() as conn:
            rows = conn.execute(
                f"SELECT key, doc_json, blob FROM {self.collection} ORDER BY rowid ASC"
            ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def get(self, key: str) -> Optional[dict[str, Any]]:
        with self._transaction() as conn:
            row = conn.execute(
                f"SELECT key, doc_json, blob FROM {self.collection} WHERE key = ?",
                (key,),
            ).fetchone()
        return self._row_to_record(row) if row is not None else None

    def delete(self, key: str) -> None:
        with self._transaction() as conn:
            conn.execute(f"DELETE FROM {self.collection} WHERE key = ?", (key,))

    def _row_to_record(self, row: sqlite3.Row) -> dict[str, Any]:
        try:
            record = json.loads(str(row["doc_json"]))
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Corrupt record {row['key']}: {e}") from e
        blob = row["blob"]
        record[self.blob_field] = bytes(blob) if blob is not None else None
        return record
