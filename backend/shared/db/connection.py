"""SQLite database connection and schema management."""

import contextlib
import os
import sqlite3
from collections.abc import Iterator
from pathlib import Path

import structlog

logger = structlog.get_logger()

_DB_FILE_PERMISSIONS = 0o600

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS plays (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    game_id INTEGER NOT NULL,
    group_id INTEGER,
    created_by_user_id INTEGER NOT NULL,
    played_on TEXT NOT NULL,
    created_at TEXT NOT NULL,
    external_play_id INTEGER,
    comment TEXT,
    game_length_minutes INTEGER,
    is_excluded INTEGER NOT NULL DEFAULT 0,
    leading_play_id INTEGER REFERENCES plays (id) ON DELETE RESTRICT,
    excluded_at TEXT,
    exclusion_reason TEXT,
    CHECK (
        (is_excluded = 0 AND leading_play_id IS NULL AND excluded_at IS NULL AND exclusion_reason IS NULL)
        OR (is_excluded = 1 AND leading_play_id IS NOT NULL)
    )
);

CREATE INDEX IF NOT EXISTS idx_plays_candidates
    ON plays (group_id, game_id, played_on);

CREATE INDEX IF NOT EXISTS idx_plays_leading_play_id
    ON plays (leading_play_id) WHERE leading_play_id IS NOT NULL;

CREATE TABLE IF NOT EXISTS play_participants (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    play_id INTEGER NOT NULL REFERENCES plays (id) ON DELETE CASCADE,
    user_id INTEGER,
    external_username TEXT,
    guest_name TEXT,
    score REAL,
    is_winner INTEGER NOT NULL DEFAULT 0,
    is_new_player INTEGER NOT NULL DEFAULT 0,
    position INTEGER,
    CHECK ((user_id IS NOT NULL) + (external_username IS NOT NULL) + (guest_name IS NOT NULL) = 1)
);

CREATE INDEX IF NOT EXISTS idx_play_participants_play_id
    ON play_participants (play_id);
"""


class Database:
    """SQLite database wrapper with schema management and explicit transactions.

    The connection runs in autocommit mode; ``transaction()`` is the only way
    a multi-statement write becomes atomic.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = str(path)
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Return the active connection or raise if disconnected."""
        if self._conn is None:
            raise RuntimeError("Database is not connected")
        return self._conn

    @property
    def in_transaction(self) -> bool:
        return self.connection.in_transaction

    def connect(self) -> None:
        """Open the database, apply pragmas, create schema, and harden file permissions."""
        parent = Path(self._path).parent
        parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(self._path, check_same_thread=False, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._conn.executescript(_SCHEMA_SQL)

        self._harden_permissions()

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @contextlib.contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the enclosed statements in one transaction.

        BEGIN IMMEDIATE takes the write lock up front, so the reads made
        inside the block cannot be invalidated by another writer before
        the block commits. Any exception rolls back and propagates.
        """
        conn = self.connection
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield
            conn.execute("COMMIT")
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise

    def _harden_permissions(self) -> None:
        """Set restrictive file permissions on POSIX systems (best effort).

        Hardens the main DB file and WAL/SHM sibling files created by WAL mode.
        """
        if os.name != "posix":  # pragma: no cover
            return
        for suffix in ("", "-wal", "-shm"):
            p = Path(self._path + suffix)
            if p.exists():
                try:
                    p.chmod(_DB_FILE_PERMISSIONS)
                except OSError:
                    logger.warning("could not set file permissions", permissions=oct(_DB_FILE_PERMISSIONS), path=str(p))
