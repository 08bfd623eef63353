"""SQLite-backed document store for per-user integration records."""

from __future__ import annotations

import json
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any, Dict, Optional


class SQLiteStore:
    """Simple document store using a normalized table keyed by (pk, sk)."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    @staticmethod
    def _keys(user_id: str, integration: str) -> tuple[str, str]:
        return f"user#{user_id}", f"integration#{integration}"

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False, timeout=10.0)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with closing(self._connect()) as conn, conn:
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

    def get_document(self, user_id: str, integration: str) -> Optional[Dict[str, Any]]:
        pk, sk = self._keys(user_id, integration)
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT data FROM kv_records WHERE pk = ? AND sk = ?",
                (pk, sk),
            ).fetchone()
        if not row:
            return None
        return json.loads(row["data"])

    def merge_document(
        self, user_id: str, integration: str, fields: Dict[str, Any]
    ) -> None:
        """Update only ``fields``, creating the document when it does not exist."""
        pk, sk = self._keys(user_id, integration)
        with closing(self._connect()) as conn:
            # Write lock up front so concurrent merges serialize instead of
            # losing each other's fields.
            conn.execute("BEGIN IMMEDIATE")
            try:
                row = conn.execute(
                    "SELECT data FROM kv_records WHERE pk = ? AND sk = ?",
                    (pk, sk),
                ).fetchone()
                document = json.loads(row["data"]) if row else {}
                document.update(fields)
                conn.execute(
                    """
                    INSERT INTO kv_records (pk, sk, data)
                    VALUES (?, ?, ?)
                    ON CONFLICT(pk, sk) DO UPDATE SET data = excluded.data
                    """,
                    (pk, sk, json.dumps(document)),
                )
            except Exception:
                conn.rollback()
                raise
            conn.commit()


__all__ = ["SQLiteStore"]
