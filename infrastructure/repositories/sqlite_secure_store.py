import os
import sqlite3
import logging
from datetime import datetime
from typing import Optional

log = logging.getLogger(__name__)


class SQLiteSecureStore:
    """Key-value store for credentials that must survive process restarts."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    def _conn(self):
        return sqlite3.connect(self.db_path)

    def _get_current_version(self, conn) -> int:
        row = conn.execute("SELECT version FROM schema_info").fetchone()
        if row:
            return row[0]
        return 0

    def _migrate_v1(self, conn):
        """Baseline schema (v1)."""
        conn.execute("""
            CREATE TABLE IF NOT EXISTS secure_items (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

    def init_store(self):
        MIGRATIONS = [self._migrate_v1]

        with self._conn() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_info (
                    version INTEGER NOT NULL
                )
            """)
            current_version = self._get_current_version(conn)

            has_version_row = conn.execute("SELECT COUNT(*) FROM schema_info").fetchone()[0] > 0
            if not has_version_row:
                conn.execute("INSERT INTO schema_info (version) VALUES (?)", (current_version,))

            for i in range(current_version, len(MIGRATIONS)):
                target_version = i + 1
                try:
                    MIGRATIONS[i](conn)
                    conn.execute("UPDATE schema_info SET version = ?", (target_version,))
                except sqlite3.Error as e:
                    raise RuntimeError(f"Secure store migration to v{target_version} failed: {e}") from e

            conn.commit()

        # Tokens live here; keep the file private to the current user.
        try:
            os.chmod(self.db_path, 0o600)
        except OSError as e:
            log.warning(f"Could not restrict permissions on {self.db_path}: {e}")

    def get_secure_item(self, key: str) -> Optional[str]:
        with self._conn() as conn:
            row = conn.execute("SELECT value FROM secure_items WHERE key = ?", (key,)).fetchone()
            return row[0] if row else None

    def set_secure_item(self, key: str, value: str):
        with self._conn() as conn:
            conn.execute("""
                INSERT INTO secure_items (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                value = excluded.value, updated_at = excluded.updated_at
            """, (key, value, datetime.utcnow().isoformat()))
            conn.commit()

    def delete_secure_item(self, key: str):
        with self._conn() as conn:
            conn.execute("DELETE FROM secure_items WHERE key = ?", (key,))
            conn.commit()
