"""SQLite persistence for permissions, plugin state, aliases and plugin key/value data."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class Database:
    def __init__(self, db_path: str | Path) -> None:
        path = Path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self._path = path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode = WAL")
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._init_schema()
        logger.info("Database opened: %s", path)

    @property
    def path(self) -> Path:
        return self._path

    def _init_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS permissions (
                user_id INTEGER PRIMARY KEY,
                is_sudo INTEGER NOT NULL DEFAULT 0,
                is_whitelist INTEGER NOT NULL DEFAULT 0,
                created_at INTEGER NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS plugins (
                name TEXT PRIMARY KEY,
                version TEXT,
                enabled INTEGER NOT NULL DEFAULT 1,
                config TEXT,
                installed_at INTEGER NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at INTEGER NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS aliases (
                alias TEXT PRIMARY KEY,
                command TEXT NOT NULL,
                created_at INTEGER NOT NULL
            )
            """
        )
        self._conn.commit()

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        with self._lock:
            cur = self._conn.execute(sql, params)
            self._conn.commit()
            return cur

    def _fetchone(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        with self._lock:
            return self._conn.execute(sql, params).fetchone()

    def _fetchall(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    # -- Permissions ----------------------------------------------------------

    def add_sudo(self, user_id: int) -> None:
        self._execute(
            """
            INSERT INTO permissions (user_id, is_sudo, created_at) VALUES (?, 1, ?)
            ON CONFLICT(user_id) DO UPDATE SET is_sudo = 1
            """,
            (user_id, _now_ms()),
        )

    def remove_sudo(self, user_id: int) -> None:
        self._execute("UPDATE permissions SET is_sudo = 0 WHERE user_id = ?", (user_id,))

    def is_sudo(self, user_id: int) -> bool:
        row = self._fetchone("SELECT is_sudo FROM permissions WHERE user_id = ?", (user_id,))
        return bool(row and row["is_sudo"])

    def get_sudo_list(self) -> list[int]:
        rows = self._fetchall(
            "SELECT user_id FROM permissions WHERE is_sudo = 1 ORDER BY created_at"
        )
        return [row["user_id"] for row in rows]

    # -- Plugins --------------------------------------------------------------

    def save_plugin(self, name: str, version: str) -> None:
        """Record an installed plugin. Saving marks it enabled."""
        self._execute(
            """
            INSERT INTO plugins (name, version, enabled, installed_at) VALUES (?, ?, 1, ?)
            ON CONFLICT(name) DO UPDATE SET version = excluded.version, enabled = 1
            """,
            (name, version, _now_ms()),
        )

    def remove_plugin(self, name: str) -> None:
        self._execute("DELETE FROM plugins WHERE name = ?", (name,))

    def is_plugin_enabled(self, name: str) -> bool:
        row = self._fetchone("SELECT enabled FROM plugins WHERE name = ?", (name,))
        return bool(row and row["enabled"])

    def enable_plugin(self, name: str) -> None:
        self._execute(
            """
            INSERT INTO plugins (name, enabled, installed_at) VALUES (?, 1, ?)
            ON CONFLICT(name) DO UPDATE SET enabled = 1
            """,
            (name, _now_ms()),
        )

    def disable_plugin(self, name: str) -> None:
        self._execute("UPDATE plugins SET enabled = 0 WHERE name = ?", (name,))

    def get_all_plugins(self) -> list[dict[str, Any]]:
        rows = self._fetchall(
            "SELECT name, version, enabled, installed_at FROM plugins ORDER BY name"
        )
        return [
            {
                "name": row["name"],
                "version": row["version"],
                "enabled": bool(row["enabled"]),
                "installed_at": row["installed_at"],
            }
            for row in rows
        ]

    # -- Key/value ------------------------------------------------------------

    def set(self, key: str, value: Any) -> None:
        self._execute(
            """
            INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (key, json.dumps(value, ensure_ascii=False), _now_ms()),
        )

    def get(self, key: str, default: Any = None) -> Any:
        row = self._fetchone("SELECT value FROM kv_store WHERE key = ?", (key,))
        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except (TypeError, json.JSONDecodeError):
            logger.warning("Corrupt kv_store value for key %s", key)
            return default

    def delete(self, key: str) -> None:
        self._execute("DELETE FROM kv_store WHERE key = ?", (key,))

    # -- Aliases --------------------------------------------------------------

    def set_alias(self, alias: str, command: str) -> None:
        self._execute(
            """
            INSERT INTO aliases (alias, command, created_at) VALUES (?, ?, ?)
            ON CONFLICT(alias) DO UPDATE SET command = excluded.command
            """,
            (alias, command, _now_ms()),
        )

    def remove_alias(self, alias: str) -> None:
        self._execute("DELETE FROM aliases WHERE alias = ?", (alias,))

    def get_alias(self, alias: str) -> str | None:
        row = self._fetchone("SELECT command FROM aliases WHERE alias = ?", (alias,))
        return row["command"] if row else None

    def get_all_aliases(self) -> dict[str, str]:
        rows = self._fetchall("SELECT alias, command FROM aliases ORDER BY alias")
        return {row["alias"]: row["command"] for row in rows}

    def close(self) -> None:
        with self._lock:
            self._conn.close()
        logger.info("Database closed")
