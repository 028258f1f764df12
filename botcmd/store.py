from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from botcmd.errors import StoreFailure
from botcmd.security import DocumentCipher


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class KeyValueStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def put(self, key: str, document: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemoryKeyValueStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def put(self, key: str, document: str) -> None:
        self._data[key] = document

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


class SqliteKeyValueStore:
    """Documents keyed by string in a single sqlite table.

    When a cipher is given, documents are encrypted before they are written and
    decrypted on read, so API keys saved through /setenv are not kept in clear text.
    Writes are plain upserts: the last write for a key wins.
    """

    def __init__(self, db_path: str | Path, cipher: DocumentCipher | None = None) -> None:
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._cipher = cipher
        self._logger = logging.getLogger("store")
        self._init_schema()

    def _init_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_documents (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                encrypted INTEGER NOT NULL DEFAULT 0,
                updated_at TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    async def get(self, key: str) -> str | None:
        try:
            cur = self._conn.cursor()
            cur.execute("SELECT value, encrypted FROM kv_documents WHERE key = ?", (key,))
            row = cur.fetchone()
        except sqlite3.Error as exc:
            self._logger.exception("store read failed key=%s", key)
            raise StoreFailure(f"cannot read {key}: {exc}") from exc
        if not row:
            return None
        if not row["encrypted"]:
            return row["value"]
        if self._cipher is None:
            raise StoreFailure(f"{key} is encrypted but no encryption key is configured")
        return self._cipher.decrypt(row["value"])

    async def put(self, key: str, document: str) -> None:
        value = self._cipher.encrypt(document) if self._cipher else document
        try:
            cur = self._conn.cursor()
            cur.execute(
                """
                INSERT INTO kv_documents (key, value, encrypted, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value=excluded.value,
                    encrypted=excluded.encrypted,
                    updated_at=excluded.updated_at
                """,
                (key, value, 1 if self._cipher else 0, _utc_now()),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            self._logger.exception("store write failed key=%s", key)
            raise StoreFailure(f"cannot write {key}: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            cur = self._conn.cursor()
            cur.execute("DELETE FROM kv_documents WHERE key = ?", (key,))
            self._conn.commit()
        except sqlite3.Error as exc:
            self._logger.exception("store delete failed key=%s", key)
            raise StoreFailure(f"cannot delete {key}: {exc}") from exc

    def close(self) -> None:
        self._conn.close()
