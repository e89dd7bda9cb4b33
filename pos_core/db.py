from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, Union

from pos_core.errors import (
    DatabaseInitError,
    MigrationError,
    NotInitializedError,
    TransactionError,
)
from pos_core.schema import COLUMN_MIGRATIONS, POST_MIGRATION_INDEXES, SCHEMA_SQL, TABLES

log = logging.getLogger(__name__)

MEMORY = ":memory:"


def _connect(db_path: Union[Path, str]) -> sqlite3.Connection:
    # Autocommit mode: multi-statement writes go through atomic() explicitly.
    conn = sqlite3.connect(str(db_path), check_same_thread=False, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL;")
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


@contextmanager
def atomic(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run the block inside ``BEGIN IMMEDIATE`` ... ``COMMIT``.

    Any exception rolls everything back. SQLite errors are re-raised as
    :class:`TransactionError` with the original chained; anything else
    (not-found, bad input) propagates unchanged.
    """
    try:
        conn.execute("BEGIN IMMEDIATE;")
    except sqlite3.Error as exc:
        raise TransactionError(f"Could not start transaction: {exc}") from exc

    try:
        yield conn
    except sqlite3.Error as exc:
        _rollback(conn)
        log.warning("Transaction rolled back: %s", exc)
        raise TransactionError(str(exc)) from exc
    except BaseException:
        _rollback(conn)
        log.info("Transaction rolled back after application error.")
        raise

    try:
        conn.execute("COMMIT;")
    except sqlite3.Error as exc:
        _rollback(conn)
        raise TransactionError(f"Commit failed: {exc}") from exc


def _rollback(conn: sqlite3.Connection) -> None:
    # SQLite may already have rolled back on its own (e.g. SQLITE_FULL).
    if conn.in_transaction:
        conn.execute("ROLLBACK;")


def column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    rows = conn.execute(f"PRAGMA table_info({table});").fetchall()
    cols = [r["name"] for r in rows]
    return column in cols


def migrate_column(
    conn: sqlite3.Connection,
    table: str,
    column: str,
    definition: str,
    backfill: Optional[str] = None,
) -> bool:
    """Add ``table.column`` if the live schema lacks it, then run ``backfill``.

    Returns True when the column was added. Safe to call on every start.
    """
    if column_exists(conn, table, column):
        return False

    with atomic(conn):
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition};")
        if backfill:
            conn.execute(backfill)

    log.info("Migrated %s.%s (%s).", table, column, definition)
    return True


def ensure_schema(conn: sqlite3.Connection) -> None:
    # Create base schema (for new installs)
    conn.executescript(SCHEMA_SQL)

    # ---- migrations for existing installs ----
    for m in COLUMN_MIGRATIONS:
        try:
            migrate_column(conn, m.table, m.column, m.definition, m.backfill)
        except (TransactionError, sqlite3.Error) as exc:
            if m.required:
                raise MigrationError(f"Migration of {m.table}.{m.column} failed: {exc}") from exc
            log.warning("Skipping optional migration %s.%s: %s", m.table, m.column, exc)

    for idx in POST_MIGRATION_INDEXES:
        try:
            conn.execute(idx.sql)
        except sqlite3.Error as exc:
            if idx.required:
                raise MigrationError(f"Index {idx.name} could not be created: {exc}") from exc
            log.warning("Skipping optional index %s: %s", idx.name, exc)


def drop_tables(conn: sqlite3.Connection) -> None:
    with atomic(conn):
        for t in TABLES:
            conn.execute(f"DROP TABLE IF EXISTS {t};")


def q(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
    cur = conn.execute(sql, tuple(params))
    rows = cur.fetchall()
    cur.close()
    return rows


def x(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> int:
    cur = conn.execute(sql, tuple(params))
    last = cur.lastrowid
    cur.close()
    return int(last or 0)


def xc(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> int:
    """Execute and return the number of affected rows."""
    cur = conn.execute(sql, tuple(params))
    n = cur.rowcount
    cur.close()
    return int(n)


class Database:
    """Owns the single SQLite connection used by every service.

    Construct once at startup, call :meth:`initialize`, then pass the object
    to the service functions. Using it before initialization (or after
    :meth:`close`) raises :class:`NotInitializedError`.
    """

    def __init__(self, db_path: Union[Path, str]) -> None:
        self.db_path = db_path if str(db_path) == MEMORY else Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        # Streamlit sessions share one cached Database; writers take turns.
        self._lock = threading.RLock()

    @property
    def is_initialized(self) -> bool:
        return self._conn is not None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise NotInitializedError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> "Database":
        if self._conn is not None:
            return self

        try:
            if isinstance(self.db_path, Path):
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = _connect(self.db_path)
        except (sqlite3.Error, OSError) as exc:
            log.error("Failed to open database at %s: %s", self.db_path, exc)
            raise DatabaseInitError(f"Cannot open database at {self.db_path}: {exc}") from exc

        try:
            ensure_schema(conn)
        except MigrationError:
            conn.close()
            raise
        except sqlite3.Error as exc:
            conn.close()
            log.error("Failed to prepare schema at %s: %s", self.db_path, exc)
            raise DatabaseInitError(f"Cannot prepare schema at {self.db_path}: {exc}") from exc

        self._conn = conn
        log.info("Database initialized at %s", self.db_path)
        return self

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            log.info("Database at %s closed", self.db_path)

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """``atomic()`` on the shared connection, one writer at a time."""
        with self._lock, atomic(self.conn) as conn:
            yield conn

    def __enter__(self) -> "Database":
        return self.initialize()

    def __exit__(self, *exc_info) -> None:
        self.close()
