"""
Workspace Store: SQLite-backed key/value persistence.

Holds saved workspace snapshots under a storage key, plus editor settings that
override environment configuration.

Schema:
  storage: key, value, updated_at
  settings: key, value, updated_at
"""

import logging
import os
import sqlite3
import time
from typing import Dict, Optional

from .exceptions import StorageError


DB_PATH_ENV = 'BLOCK_EDITOR_DB_PATH'
DEFAULT_DB_NAME = 'block_editor.db'


def resolve_db_path() -> str:
    """Resolve the database path from env → default.

    Priority:
        1. BLOCK_EDITOR_DB_PATH environment variable
        2. ``block_editor.db`` in the current working directory
    """
    env_path = os.environ.get(DB_PATH_ENV, '').strip()
    if env_path:
        return env_path
    return os.path.join(os.getcwd(), DEFAULT_DB_NAME)


class WorkspaceStore:
    """Keyed blob store for workspace snapshots and settings."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or resolve_db_path()
        self.logger = logging.getLogger(__name__)

    def _get_db(self) -> sqlite3.Connection:
        """Return a connection to the store, creating tables if needed."""
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.executescript('''
            CREATE TABLE IF NOT EXISTS storage (
                key           TEXT PRIMARY KEY,
                value         TEXT NOT NULL,
                updated_at    REAL NOT NULL
            );

            CREATE TABLE IF NOT EXISTS settings (
                key           TEXT PRIMARY KEY,
                value         TEXT NOT NULL,
                updated_at    REAL NOT NULL
            );
        ''')
        conn.commit()
        return conn

    def _execute(self, key: str, sql: str, params: tuple, fetch: bool = False):
        try:
            conn = self._get_db()
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Cannot open workspace store at {self.db_path}: {e}", key,
                               {'db_path': self.db_path})
        try:
            cursor = conn.execute(sql, params)
            if fetch:
                return cursor.fetchone()
            conn.commit()
            return cursor.rowcount
        except sqlite3.Error as e:
            raise StorageError(f"Workspace store operation failed: {e}", key, {'db_path': self.db_path})
        finally:
            conn.close()

    # -- Blobs -----------------------------------------------------------

    def save(self, key: str, value: str):
        """Write a blob, replacing any previous value under the key."""
        self._execute(key, '''
            INSERT INTO storage (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
        ''', (key, value, time.time()))
        self.logger.info("Saved %d characters under %r", len(value), key)

    def load(self, key: str) -> Optional[str]:
        """Read a blob, None when nothing was saved under the key."""
        row = self._execute(key, 'SELECT value FROM storage WHERE key = ?', (key,), fetch=True)
        return row['value'] if row else None

    def delete(self, key: str) -> bool:
        return self._execute(key, 'DELETE FROM storage WHERE key = ?', (key,)) > 0

    # -- Settings --------------------------------------------------------

    def get_setting(self, key: str) -> Optional[str]:
        row = self._execute(key, 'SELECT value FROM settings WHERE key = ?', (key,), fetch=True)
        return row['value'] if row else None

    def set_setting(self, key: str, value: str):
        self._execute(key, '''
            INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
        ''', (key, str(value), time.time()))

    def delete_setting(self, key: str) -> bool:
        return self._execute(key, 'DELETE FROM settings WHERE key = ?', (key,)) > 0

    def get_all_settings(self) -> Dict[str, str]:
        try:
            conn = self._get_db()
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Cannot open workspace store at {self.db_path}: {e}")
        try:
            rows = conn.execute('SELECT key, value FROM settings ORDER BY key').fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Workspace store operation failed: {e}")
        finally:
            conn.close()
        return {row['key']: row['value'] for row in rows}
