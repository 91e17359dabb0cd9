"""
Board storage backend (SQLite).

BoardStore is the explicit resource handle for the relational store: it owns
the schema and hands out one atomic unit of work per operation. Nothing here is
process-global; tests construct one store per temporary database.
"""
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .errors import StorageFailure

logger = logging.getLogger(__name__)


SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS routines (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT,
        color TEXT DEFAULT '#3498db',
        icon TEXT DEFAULT '📌',
        status TEXT NOT NULL DEFAULT 'active'
            CHECK (status IN ('active', 'paused', 'completed')),
        achievable INTEGER NOT NULL DEFAULT 0,
        is_archived INTEGER NOT NULL DEFAULT 0,  -- independent of status
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        archived_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id TEXT PRIMARY KEY,
        routine_id TEXT REFERENCES routines(id) ON DELETE SET NULL,
        title TEXT NOT NULL,
        notes TEXT,
        status TEXT NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'completed')),
        is_archived INTEGER NOT NULL DEFAULT 0,
        column_name TEXT NOT NULL DEFAULT 'today'
            CHECK (column_name IN ('today', 'tomorrow', 'this_week', 'horizon')),
        position INTEGER NOT NULL DEFAULT 0 CHECK (position >= 0),
        due_date TEXT,
        due_time TEXT,
        archived_items TEXT,  -- JSON snapshot, written at archive time
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        completed_at TEXT,
        archived_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS list_items (
        id TEXT PRIMARY KEY,
        task_id TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
        title TEXT NOT NULL,
        completed INTEGER NOT NULL DEFAULT 0,
        position INTEGER NOT NULL DEFAULT 0 CHECK (position >= 0),
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS column_dividers (
        id TEXT PRIMARY KEY,
        column_name TEXT NOT NULL DEFAULT 'today' CHECK (column_name IN ('today')),
        label_above TEXT NOT NULL,
        label_below TEXT NOT NULL,
        position INTEGER NOT NULL DEFAULT 0 CHECK (position >= 0),
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS notes (
        id TEXT PRIMARY KEY,
        title TEXT,
        content TEXT NOT NULL,
        task_id TEXT REFERENCES tasks(id) ON DELETE SET NULL,
        routine_id TEXT REFERENCES routines(id) ON DELETE SET NULL,
        is_archived INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        archived_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS audit_log (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        actor TEXT NOT NULL CHECK (actor IN ('user', 'agent')),
        action TEXT NOT NULL,
        entity_type TEXT NOT NULL,
        entity_id TEXT NOT NULL,
        previous_state TEXT,  -- JSON
        new_state TEXT,       -- JSON
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_tasks_column ON tasks(column_name, is_archived, position)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_routine ON tasks(routine_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_archived ON tasks(is_archived, archived_at)",
    "CREATE INDEX IF NOT EXISTS idx_notes_active ON notes(is_archived, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_list_items_task ON list_items(task_id, position)",
    "CREATE INDEX IF NOT EXISTS idx_column_dividers_position ON column_dividers(column_name, position)",
    "CREATE INDEX IF NOT EXISTS idx_audit_log_entity ON audit_log(entity_type, entity_id, id)",
    "CREATE INDEX IF NOT EXISTS idx_audit_log_actor ON audit_log(actor, id)",
]


def _connect(db_path: str, busy_timeout_ms: int) -> sqlite3.Connection:
    """Open an autocommit connection with FK enforcement; transactions are explicit."""
    conn = sqlite3.connect(db_path, timeout=busy_timeout_ms / 1000.0, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


class BoardStore:
    """SQLite-backed store for board entities."""

    def __init__(self, db_path: str, busy_timeout_ms: int = 5000):
        """Initialize store and create tables if needed."""
        self.db_path = db_path
        self.busy_timeout_ms = busy_timeout_ms
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self):
        """Create tables if they don't exist."""
        conn = _connect(self.db_path, self.busy_timeout_ms)
        try:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("BEGIN IMMEDIATE")
            for statement in SCHEMA:
                conn.execute(statement)
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise StorageFailure(f"Could not initialize schema at {self.db_path}: {e}") from e
        finally:
            conn.close()

    @contextmanager
    def transaction(self, write: bool = True) -> Iterator[sqlite3.Connection]:
        """
        One atomic unit of work.

        Write transactions take the database write lock up front (BEGIN
        IMMEDIATE) so the column read, the renumbering and the audit insert all
        see the same rows. Any exception rolls everything back; sqlite errors
        surface as StorageFailure.
        """
        conn = _connect(self.db_path, self.busy_timeout_ms)
        try:
            conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
            yield conn
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            self._rollback(conn)
            logger.error(f"Transaction rolled back: {e}")
            raise StorageFailure(str(e)) from e
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            conn.close()

    def read(self):
        """Read-only snapshot transaction."""
        return self.transaction(write=False)

    @staticmethod
    def _rollback(conn: sqlite3.Connection):
        if conn.in_transaction:
            try:
                conn.execute("ROLLBACK")
            except sqlite3.Error as e:
                logger.error(f"Rollback failed: {e}")
