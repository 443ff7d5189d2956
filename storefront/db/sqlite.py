from __future__ import annotations

import os
import sqlite3
from typing import Dict, Optional, Protocol

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    scope TEXT NOT NULL,
    key   TEXT NOT NULL,
    value TEXT NOT NULL,
    PRIMARY KEY (scope, key)
);
"""


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def clear(self) -> None: ...


def _connect(db_path: str) -> sqlite3.Connection:
    folder = os.path.dirname(db_path)
    if folder:
        os.makedirs(folder, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str) -> None:
    conn = _connect(db_path)
    try:
        conn.executescript(SCHEMA)
        conn.commit()
    finally:
        conn.close()


class SqliteStorage:
    """Durable client-local storage; one scope per chat."""

    def __init__(self, db_path: str, scope: str):
        self.db_path = db_path
        self.scope = scope
        init_db(db_path)

    def get(self, key: str) -> Optional[str]:
        conn = _connect(self.db_path)
        try:
            row = conn.execute(
                "SELECT value FROM kv WHERE scope=? AND key=?",
                (self.scope, key),
            ).fetchone()
            return row["value"] if row else None
        finally:
            conn.close()

    def set(self, key: str, value: str) -> None:
        conn = _connect(self.db_path)
        try:
            conn.execute(
                "INSERT INTO kv(scope, key, value) VALUES(?,?,?) "
                "ON CONFLICT(scope, key) DO UPDATE SET value=excluded.value",
                (self.scope, key, value),
            )
            conn.commit()
        finally:
            conn.close()

    def clear(self) -> None:
        conn = _connect(self.db_path)
        try:
            conn.execute("DELETE FROM kv WHERE scope=?", (self.scope,))
            conn.commit()
        finally:
            conn.close()


class MemoryStorage:
    def __init__(self, data: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(data or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def clear(self) -> None:
        self.data.clear()
