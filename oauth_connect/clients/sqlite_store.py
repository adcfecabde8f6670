"""SQLite-backed record storage shared by every process serving the flow."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

_BUSY_TIMEOUT_SECONDS = 5.0


class SQLiteStore:
    """Key-value store using a normalized table keyed by (pk, sk).

    Each write replaces the whole JSON document for its key in one statement,
    so readers never observe a partially written record.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self._db_path,
            timeout=_BUSY_TIMEOUT_SECONDS,
            check_same_thread=False,
            isolation_level=None,
        )
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        conn = self._connect()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_records (
                    pk TEXT NOT NULL,
                    sk TEXT NOT NULL,
                    data TEXT NOT NULL,
                    PRIMARY KEY (pk, sk)
                )
                """
            )
        finally:
            conn.close()

    def put_item(self, item: Dict[str, Any]) -> None:
        pk = item.get("pk")
        sk = item.get("sk")
        if not pk or not sk:
            raise ValueError("Item must include 'pk' and 'sk' keys")

        data_json = json.dumps(item)
        conn = self._connect()
        try:
            conn.execute(
                """
                INSERT INTO kv_records (pk, sk, data)
                VALUES (?, ?, ?)
                ON CONFLICT(pk, sk) DO UPDATE SET data = excluded.data
                """,
                (pk, sk, data_json),
            )
        finally:
            conn.close()

    def get_item(
        self, *, partition_key: str, sort_key: str
    ) -> Optional[Dict[str, Any]]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT data FROM kv_records WHERE pk = ? AND sk = ?",
                (partition_key, sort_key),
            ).fetchone()
        finally:
            conn.close()
        if not row:
            return None
        return json.loads(row["data"])

    def delete_item(self, *, partition_key: str, sort_key: str) -> None:
        conn = self._connect()
        try:
            conn.execute(
                "DELETE FROM kv_records WHERE pk = ? AND sk = ?",
                (partition_key, sort_key),
            )
        finally:
            conn.close()

    def list_items_with_prefix(
        self, *, partition_key: str, sort_key_prefix: str
    ) -> list[Dict[str, Any]]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT data FROM kv_records WHERE pk = ? AND sk LIKE ?",
                (partition_key, f"{sort_key_prefix}%"),
            ).fetchall()
        finally:
            conn.close()
        return [json.loads(row["data"]) for row in rows]

    def claim_item(
        self, *, partition_key: str, sort_key: str, claimed_at: str
    ) -> Tuple[Optional[Dict[str, Any]], bool]:
        """Mark an item as claimed exactly once.

        Returns ``(item, claimed)``. ``item`` is None when the key does not
        exist; ``claimed`` is True only for the single caller that flipped the
        item from unclaimed to claimed. The read and the write happen under one
        ``BEGIN IMMEDIATE`` transaction, so concurrent callers across threads
        and processes serialize on the database write lock.
        """
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT data FROM kv_records WHERE pk = ? AND sk = ?",
                (partition_key, sort_key),
            ).fetchone()
            if not row:
                conn.execute("COMMIT")
                return None, False

            item = json.loads(row["data"])
            if item.get("claimed_at"):
                conn.execute("COMMIT")
                return item, False

            item["claimed_at"] = claimed_at
            conn.execute(
                "UPDATE kv_records SET data = ? WHERE pk = ? AND sk = ?",
                (json.dumps(item), partition_key, sort_key),
            )
            conn.execute("COMMIT")
            return item, True
        except sqlite3.Error:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()


__all__ = ["SQLiteStore"]
