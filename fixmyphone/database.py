"""SQLite database for cache stores and the offline submission queue."""

import json
import sqlite3
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .models import QueuedSubmission


class DatabaseError(Exception):
    """Raised when a database operation fails."""

    pass


# Global lock for thread-safe database access.
# SQLite allows concurrent reads but only one writer at a time.
# This lock ensures safe access from multiple threads (proxy handlers, sync).
_db_lock = threading.Lock()


def init_db(db_path: str) -> sqlite3.Connection:
    """Initialize the database and create tables if they don't exist.

    Args:
        db_path: Path to the SQLite database file, or ":memory:".

    Returns:
        Database connection with WAL mode enabled.

    Raises:
        DatabaseError: If database initialization fails.
    """
    try:
        if db_path != ":memory:":
            parent_dir = Path(db_path).parent
            if not parent_dir.exists():
                parent_dir.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row

        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")

        conn.execute("""
            CREATE TABLE IF NOT EXISTS cache_stores (
                name TEXT PRIMARY KEY,
                created_at TEXT NOT NULL
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS cache_entries (
                cache_name TEXT NOT NULL REFERENCES cache_stores(name) ON DELETE CASCADE,
                method TEXT NOT NULL,
                url TEXT NOT NULL,
                status INTEGER NOT NULL,
                status_text TEXT NOT NULL DEFAULT '',
                headers TEXT NOT NULL,
                body BLOB NOT NULL,
                stored_at TEXT NOT NULL,
                PRIMARY KEY (cache_name, method, url)
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS offline_submissions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                data TEXT NOT NULL,
                queued_at TEXT NOT NULL
            )
        """)

        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_cache_entries_url
            ON cache_entries(method, url)
        """)

        conn.commit()
        return conn

    except sqlite3.Error as e:
        raise DatabaseError(f"Failed to initialize database: {e}") from e
    except OSError as e:
        raise DatabaseError(f"Failed to create database directory: {e}") from e


def enqueue_submission(conn: sqlite3.Connection, data: dict[str, Any]) -> int:
    """Queue a repair submission for the next background sync.

    Args:
        conn: Database connection.
        data: JSON-serializable submission payload.

    Returns:
        The queue id of the new submission.

    Raises:
        DatabaseError: If the insert fails.
    """
    try:
        payload = json.dumps(data)
    except (TypeError, ValueError) as e:
        raise DatabaseError(f"Submission is not JSON serializable: {e}") from e

    try:
        with _db_lock:
            cursor = conn.execute(
                "INSERT INTO offline_submissions (data, queued_at) VALUES (?, ?)",
                (payload, datetime.now(UTC).isoformat()),
            )
            conn.commit()
            return int(cursor.lastrowid)
    except sqlite3.Error as e:
        raise DatabaseError(f"Failed to queue submission: {e}") from e


def list_submissions(conn: sqlite3.Connection) -> list[QueuedSubmission]:
    """Return queued submissions in the order they were queued."""
    try:
        cursor = conn.execute("SELECT id, data, queued_at FROM offline_submissions ORDER BY id")
        return [
            QueuedSubmission(
                id=row["id"],
                data=json.loads(row["data"]),
                queued_at=datetime.fromisoformat(row["queued_at"]),
            )
            for row in cursor.fetchall()
        ]
    except sqlite3.Error as e:
        raise DatabaseError(f"Failed to list submissions: {e}") from e


def remove_submission(conn: sqlite3.Connection, submission_id: int) -> bool:
    """Remove a submission from the queue.

    Returns:
        True if a row was removed, False if the id was not queued.
    """
    try:
        with _db_lock:
            cursor = conn.execute("DELETE FROM offline_submissions WHERE id = ?", (submission_id,))
            conn.commit()
            return cursor.rowcount > 0
    except sqlite3.Error as e:
        raise DatabaseError(f"Failed to remove submission {submission_id}: {e}") from e


class SubmissionStore:
    """Offline submission queue exposed through a list/remove interface."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def add(self, data: dict[str, Any]) -> int:
        return enqueue_submission(self._conn, data)

    def list(self) -> list[QueuedSubmission]:
        return list_submissions(self._conn)

    def remove(self, submission_id: int) -> bool:
        return remove_submission(self._conn, submission_id)
