"""
SQLite record store and simple migration system.

This module provides :class:`RecordStore`, the only component that
talks to the database.  Services receive a store instance instead of
reaching for a module-wide connection; the store keeps a bounded pool
of ``sqlite3`` connections and hands one out per statement through
:meth:`RecordStore.connection`.  Statements are executed in a worker
thread so that ``async`` service methods never block the event loop.

Low level failures are re-raised as :class:`StorageError` carrying a
machine readable ``kind`` (``"unique-violation"``,
``"foreign-key-violation"``, ...) and the constraint columns, which
services translate into domain errors.

The migration mechanism stores applied migration versions in the
``migrations`` table and executes new migrations in order.
"""

import asyncio
import logging
import os
import queue
import re
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from .config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "unique-violation"
FOREIGN_KEY_VIOLATION = "foreign-key-violation"
NOT_NULL_VIOLATION = "not-null-violation"
CHECK_VIOLATION = "check-violation"
OUT_OF_RANGE = "out-of-range"
OTHER = "other"

_CONSTRAINT_KINDS = {
    "UNIQUE": UNIQUE_VIOLATION,
    "PRIMARY KEY": UNIQUE_VIOLATION,
    "FOREIGN KEY": FOREIGN_KEY_VIOLATION,
    "NOT NULL": NOT_NULL_VIOLATION,
    "CHECK": CHECK_VIOLATION,
}

_CONSTRAINT_RE = re.compile(r"^(UNIQUE|PRIMARY KEY|FOREIGN KEY|NOT NULL|CHECK) constraint failed(?::\s*(.*))?$")


class StorageError(Exception):
    """A statement was rejected by the database.

    Attributes
    ----------
    kind : str
        One of the module level kinds (constraint kinds,
        ``"out-of-range"``), or ``"other"``.
    columns : tuple of str
        Column names named by the constraint, without table prefix.
        Empty when SQLite does not report them (foreign keys).
    """

    def __init__(self, kind: str, message: str, columns: Tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.kind = kind
        self.columns = columns


def classify_error(exc: Exception) -> StorageError:
    """Translate a ``sqlite3`` (or parameter binding) exception into a :class:`StorageError`."""
    message = str(exc)
    if isinstance(exc, OverflowError):
        # An integer parameter outside SQLite's 64-bit range; no row can match it.
        return StorageError(OUT_OF_RANGE, message)
    if isinstance(exc, sqlite3.IntegrityError):
        match = _CONSTRAINT_RE.match(message)
        if match:
            kind = _CONSTRAINT_KINDS[match.group(1)]
            detail = match.group(2) or ""
            columns: Tuple[str, ...] = ()
            if kind in (UNIQUE_VIOLATION, NOT_NULL_VIOLATION):
                columns = tuple(
                    part.strip().rsplit(".", 1)[-1]
                    for part in detail.split(",")
                    if part.strip()
                )
            return StorageError(kind, message, columns)
    return StorageError(OTHER, message)


@dataclass
class QueryResult:
    """Rows returned by a statement and the number of rows it affected."""

    rows: List[Dict[str, Any]] = field(default_factory=list)
    affected_count: int = 0

    def first(self) -> Optional[Dict[str, Any]]:
        return self.rows[0] if self.rows else None


class RecordStore:
    """Pooled access to a SQLite database.

    Parameters
    ----------
    database : str
        Path to the database file or ``":memory:"``.  An in-memory
        database exists only inside a single connection, so the pool is
        limited to one connection in that case.
    pool_size : int
        Maximum number of connections open at the same time.  Callers
        beyond that wait for a connection to be released.
    timeout : float
        Seconds to wait for a database lock held by another writer.
    """

    def __init__(self, database: str, pool_size: int = 10, timeout: float = 30.0) -> None:
        if pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        self.database = database
        self.timeout = timeout
        self.pool_size = 1 if database == ":memory:" else pool_size
        self._slots = threading.BoundedSemaphore(self.pool_size)
        self._idle: "queue.LifoQueue[sqlite3.Connection]" = queue.LifoQueue()
        self._all: List[sqlite3.Connection] = []
        self._lock = threading.Lock()
        self._closed = False

    def _connect(self) -> sqlite3.Connection:
        # isolation_level=None puts the connection in autocommit mode:
        # every statement is its own transaction.
        conn = sqlite3.connect(
            self.database,
            timeout=self.timeout,
            check_same_thread=False,
            isolation_level=None,
        )
        conn.row_factory = sqlite3.Row
        # Foreign keys are off by default in SQLite and must be enabled
        # per connection, otherwise REFERENCES clauses are ignored.
        conn.execute("PRAGMA foreign_keys = ON")
        with self._lock:
            self._all.append(conn)
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Borrow a pooled connection for the duration of the block."""
        if self._closed:
            raise StorageError(OTHER, "record store is closed")
        self._slots.acquire()
        try:
            try:
                conn = self._idle.get_nowait()
            except queue.Empty:
                conn = self._connect()
            try:
                yield conn
            finally:
                if conn.in_transaction:
                    conn.rollback()
                self._idle.put(conn)
        finally:
            self._slots.release()

    def execute_sync(self, sql: str, args: Sequence[Any] = ()) -> QueryResult:
        """Execute one statement on a pooled connection (blocking)."""
        try:
            with self.connection() as conn:
                cursor = conn.execute(sql, tuple(args))
                try:
                    if cursor.description is not None:
                        rows = [dict(row) for row in cursor.fetchall()]
                        return QueryResult(rows=rows, affected_count=len(rows))
                    return QueryResult(affected_count=max(cursor.rowcount, 0))
                finally:
                    cursor.close()
        except (sqlite3.Error, OverflowError) as exc:
            raise classify_error(exc) from exc

    async def execute(self, sql: str, args: Sequence[Any] = ()) -> QueryResult:
        """Execute one statement in a worker thread."""
        return await asyncio.to_thread(self.execute_sync, sql, tuple(args))

    def executescript(self, script: str) -> None:
        try:
            with self.connection() as conn:
                conn.executescript(script)
        except (sqlite3.Error, OverflowError) as exc:
            raise classify_error(exc) from exc

    def close(self) -> None:
        """Close every connection opened by this store."""
        self._closed = True
        with self._lock:
            connections, self._all = self._all, []
        for conn in connections:
            conn.close()


MIGRATIONS: List[Tuple[int, str]] = [
    # Migration 1: Initial schema
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            email TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
        );

        CREATE TABLE IF NOT EXISTS projects (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            description TEXT,
            user_id INTEGER NOT NULL,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
            UNIQUE (user_id, name),
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            project_id INTEGER NOT NULL,
            title TEXT NOT NULL,
            assigned_to INTEGER,
            status TEXT NOT NULL DEFAULT 'todo'
                CHECK (status IN ('todo', 'in_progress', 'done')),
            priority TEXT NOT NULL DEFAULT 'medium'
                CHECK (priority IN ('low', 'medium', 'high')),
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
            FOREIGN KEY(project_id) REFERENCES projects(id) ON DELETE CASCADE,
            FOREIGN KEY(assigned_to) REFERENCES users(id) ON DELETE SET NULL
        );
        """,
    ),
    # Migration 2: Indexes backing the collection reads
    (
        2,
        """
        CREATE INDEX IF NOT EXISTS idx_tasks_project ON tasks(project_id, created_at);
        CREATE INDEX IF NOT EXISTS idx_tasks_assignee ON tasks(assigned_to, created_at);
        """,
    ),
]


def init_db(store: RecordStore) -> None:
    """Initialise the database and apply pending migrations.

    Creates the ``migrations`` table if it does not exist, checks the
    current schema version, and applies any new migrations defined in
    ``MIGRATIONS``.  To add a migration, append it with an incremented
    version number.
    """
    if store.database != ":memory:":
        store.execute_sync("PRAGMA journal_mode = WAL")
    store.execute_sync(
        """
        CREATE TABLE IF NOT EXISTS migrations (
            version INTEGER PRIMARY KEY,
            applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
        )
        """
    )
    row = store.execute_sync("SELECT MAX(version) AS version FROM migrations").first()
    current = row["version"] if row and row["version"] is not None else 0
    for version, script in MIGRATIONS:
        if version <= current:
            continue
        logger.info("Applying migration %s", version)
        store.executescript(
            "BEGIN;\n"
            + script
            + f"\nINSERT INTO migrations (version) VALUES ({int(version)});\nCOMMIT;"
        )


def get_database_path(database_url: str) -> str:
    """Resolve ``database_url`` to a filesystem path.

    Absolute paths and ``:memory:`` are returned unchanged; relative
    paths are resolved against the project root (the directory that
    contains the ``project_tracker`` package).
    """
    if database_url == ":memory:" or os.path.isabs(database_url):
        return database_url
    base_dir = Path(__file__).resolve().parent.parent.parent.parent
    return str((base_dir / database_url).resolve())


def create_store(config: Optional[Settings] = None) -> RecordStore:
    """Build a :class:`RecordStore` from settings and apply migrations."""
    config = config or default_settings
    store = RecordStore(
        get_database_path(config.database_url),
        pool_size=config.db_pool_size,
        timeout=config.db_timeout,
    )
    init_db(store)
    return store
