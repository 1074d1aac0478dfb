"""Named, versioned cache stores keyed by request method and URL.

Each store maps (method, URL) to a stored response. Stores live in the
SQLite database so cached resources survive proxy restarts, the same way a
browser keeps its cache storage across page loads.
"""

import json
import logging
import sqlite3
from collections.abc import Callable, Iterable
from datetime import UTC, datetime

from .database import DatabaseError, _db_lock
from .models import Request, Response

logger = logging.getLogger(__name__)


class CacheError(Exception):
    """Raised when a batch of resources cannot be added to a cache store."""

    pass


def _row_to_response(row: sqlite3.Row) -> Response:
    return Response(
        status=row["status"],
        headers=json.loads(row["headers"]),
        body=bytes(row["body"]),
        status_text=row["status_text"],
    )


class Cache:
    """A single named cache store."""

    def __init__(self, conn: sqlite3.Connection, name: str) -> None:
        self._conn = conn
        self.name = name

    def __repr__(self) -> str:
        return f"Cache({self.name!r})"

    def _write(self, entries: list[tuple[Request, Response]]) -> None:
        """Write all entries in a single transaction."""
        now = datetime.now(UTC).isoformat()
        try:
            with _db_lock:
                with self._conn:
                    self._conn.execute(
                        "INSERT OR IGNORE INTO cache_stores (name, created_at) VALUES (?, ?)",
                        (self.name, now),
                    )
                    self._conn.executemany(
                        """
                        INSERT OR REPLACE INTO cache_entries
                            (cache_name, method, url, status, status_text, headers, body, stored_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        [
                            (
                                self.name,
                                request.method.upper(),
                                request.url,
                                response.status,
                                response.status_text,
                                json.dumps(response.headers),
                                sqlite3.Binary(response.body),
                                now,
                            )
                            for request, response in entries
                        ],
                    )
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to write to cache '{self.name}': {e}") from e

    def put(self, request: Request, response: Response) -> None:
        """Store a response, replacing any previous entry for the same request.

        Raises:
            ValueError: If the request is not a GET request.
        """
        if request.method.upper() != "GET":
            raise ValueError(f"Only GET requests can be cached, got {request.method}")
        self._write([(request, response)])

    def match(self, request: Request) -> Response | None:
        """Return the stored response for an exact method and URL match."""
        try:
            cursor = self._conn.execute(
                """
                SELECT status, status_text, headers, body FROM cache_entries
                WHERE cache_name = ? AND method = ? AND url = ?
                """,
                (self.name, request.method.upper(), request.url),
            )
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to read from cache '{self.name}': {e}") from e
        return _row_to_response(row) if row is not None else None

    def delete(self, request: Request) -> bool:
        try:
            with _db_lock:
                cursor = self._conn.execute(
                    "DELETE FROM cache_entries WHERE cache_name = ? AND method = ? AND url = ?",
                    (self.name, request.method.upper(), request.url),
                )
                self._conn.commit()
                return cursor.rowcount > 0
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to delete from cache '{self.name}': {e}") from e

    def keys(self) -> list[str]:
        """Return the URLs stored in this cache, oldest first."""
        try:
            cursor = self._conn.execute(
                "SELECT url FROM cache_entries WHERE cache_name = ? ORDER BY rowid",
                (self.name,),
            )
            return [row["url"] for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to list entries of cache '{self.name}': {e}") from e

    def add_all(self, requests: Iterable[Request], fetch: Callable[[Request], Response]) -> None:
        """Fetch every request and store the responses atomically.

        Nothing is written unless every fetch succeeds with an ok status.

        Raises:
            CacheError: If any request fails or returns a non-ok status.
        """
        fetched: list[tuple[Request, Response]] = []
        for request in requests:
            try:
                response = fetch(request)
            except Exception as e:
                raise CacheError(f"Failed to fetch {request.url}: {e}") from e
            if not response.ok:
                raise CacheError(f"Failed to fetch {request.url}: HTTP {response.status}")
            fetched.append((request, response))

        self._write(fetched)


class CacheStorage:
    """All cache stores of one origin."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def open(self, name: str) -> Cache:
        """Return the named cache, creating the store if it does not exist."""
        try:
            with _db_lock:
                self._conn.execute(
                    "INSERT OR IGNORE INTO cache_stores (name, created_at) VALUES (?, ?)",
                    (name, datetime.now(UTC).isoformat()),
                )
                self._conn.commit()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to open cache '{name}': {e}") from e
        return Cache(self._conn, name)

    def has(self, name: str) -> bool:
        try:
            cursor = self._conn.execute("SELECT 1 FROM cache_stores WHERE name = ?", (name,))
            return cursor.fetchone() is not None
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to look up cache '{name}': {e}") from e

    def keys(self) -> list[str]:
        """Return cache store names in creation order."""
        try:
            cursor = self._conn.execute("SELECT name FROM cache_stores ORDER BY rowid")
            return [row["name"] for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to list caches: {e}") from e

    def delete(self, name: str) -> bool:
        """Delete a cache store and all of its entries.

        Returns:
            True if the store existed, False otherwise.
        """
        try:
            with _db_lock:
                with self._conn:
                    self._conn.execute("DELETE FROM cache_entries WHERE cache_name = ?", (name,))
                    cursor = self._conn.execute("DELETE FROM cache_stores WHERE name = ?", (name,))
                    deleted = cursor.rowcount > 0
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to delete cache '{name}': {e}") from e

        if deleted:
            logger.debug("Deleted cache store %s", name)
        return deleted

    def match(self, request: Request) -> Response | None:
        """Search every store, oldest first, for an exact method and URL match."""
        try:
            cursor = self._conn.execute(
                """
                SELECT e.status, e.status_text, e.headers, e.body
                FROM cache_entries e JOIN cache_stores s ON s.name = e.cache_name
                WHERE e.method = ? AND e.url = ?
                ORDER BY s.rowid
                LIMIT 1
                """,
                (request.method.upper(), request.url),
            )
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to search caches: {e}") from e
        return _row_to_response(row) if row is not None else None
