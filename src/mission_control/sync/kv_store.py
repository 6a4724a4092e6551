# src/mission_control/sync/kv_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from ..core.errors import StorageFailure
from ..core.ports import JsonRecord

logger = logging.getLogger(__name__)

# Record field -> indexed column.
_ORDER_COLUMNS = {"enqueuedAt": "enqueued_at"}


class SqliteKeyValueStore:
    """
    SQLite-backed durable key-value store for ledger records.

    One row per idempotency key; the full record is kept as JSON, enqueued_at
    is mirrored into an indexed column for ordered listing. Overwrites use an
    upsert so the row keeps its rowid, which breaks enqueued_at ties in
    first-insertion order.

    Thread-safety:
    - each method opens its own SQLite connection
    Every sqlite3 error, and every row that no longer decodes, surfaces as
    StorageFailure.
    """

    def __init__(self, db_path: str | Path = "ledger.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._ready = False
        try:
            self._ensure_schema()
            logger.info("Ledger store ready db=%s pending=%s", self._db_path, self.count())
        except StorageFailure:
            # Stay constructible; every call retries the schema and raises.
            logger.exception("Ledger store not available db=%s", self._db_path)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    @contextlib.contextmanager
    def _connect(self, op: str) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise StorageFailure(f"cannot open ledger db {self._db_path}: {e}", op=op) from e
        try:
            yield conn
        except sqlite3.Error as e:
            raise StorageFailure(f"ledger {op} failed: {e}", op=op) from e
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        if self._ready:
            return
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageFailure(f"cannot create ledger dir: {e}", op="init") from e

        with self._connect("init") as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS mutations (
                    idempotency_key TEXT PRIMARY KEY,
                    enqueued_at REAL NOT NULL,
                    record TEXT NOT NULL
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_mutations_enqueued ON mutations(enqueued_at)")
            conn.commit()
        self._ready = True

    @staticmethod
    def _decode(raw: str) -> JsonRecord | None:
        try:
            val = json.loads(raw)
        except (TypeError, ValueError):
            return None
        return val if isinstance(val, dict) else None

    # ---- public API ----

    def get(self, key: str) -> JsonRecord | None:
        self._ensure_schema()
        with self._connect("get") as conn:
            row = conn.execute("SELECT record FROM mutations WHERE idempotency_key = ?", (key,)).fetchone()
        if row is None:
            return None
        record = self._decode(row["record"])
        if record is None:
            raise StorageFailure(f"corrupt ledger row key={key}", op="get")
        return record

    def put(self, key: str, record: JsonRecord) -> None:
        self._ensure_schema()
        enqueued_at: Any = record.get("enqueuedAt")
        if enqueued_at is None:
            raise ValueError("record.enqueuedAt is required")
        payload = json.dumps(record, ensure_ascii=False)

        with self._connect("put") as conn:
            conn.execute(
                """
                INSERT INTO mutations(idempotency_key, enqueued_at, record)
                VALUES (?, ?, ?)
                ON CONFLICT(idempotency_key) DO UPDATE SET
                    enqueued_at = excluded.enqueued_at,
                    record = excluded.record
                """,
                (key, float(enqueued_at), payload),
            )
            conn.commit()

    def delete(self, key: str) -> None:
        self._ensure_schema()
        with self._connect("delete") as conn:
            conn.execute("DELETE FROM mutations WHERE idempotency_key = ?", (key,))
            conn.commit()

    def list_ordered_by(self, field: str) -> list[JsonRecord]:
        column = _ORDER_COLUMNS.get(field)
        if column is None:
            raise ValueError(f"no ordering index for field {field!r}")

        self._ensure_schema()
        with self._connect("list") as conn:
            rows = conn.execute(
                f"SELECT idempotency_key, record FROM mutations ORDER BY {column} ASC, rowid ASC"
            ).fetchall()

        out: list[JsonRecord] = []
        for row in rows:
            record = self._decode(row["record"])
            if record is None:
                raise StorageFailure(f"corrupt ledger row key={row['idempotency_key']}", op="list")
            out.append(record)
        return out

    def count(self) -> int:
        self._ensure_schema()
        with self._connect("count") as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM mutations").fetchone()
        return int(n)
