"""
SQLite database helper for the timeline engine.
Owns the schema and hands out short-lived connections.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

logger = logging.getLogger(__name__)

SCHEMA_DDL = """
CREATE TABLE IF NOT EXISTS obligations (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sub_obligations (
    id TEXT PRIMARY KEY,
    obligation_id TEXT NOT NULL,
    name TEXT NOT NULL,
    cadence TEXT NOT NULL,
    frequency_config TEXT NOT NULL DEFAULT '{}',
    fields TEXT NOT NULL DEFAULT '[]',
    position INTEGER NOT NULL DEFAULT 0,
    FOREIGN KEY (obligation_id) REFERENCES obligations(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_sub_obligations_obligation
ON sub_obligations(obligation_id, position);

CREATE TABLE IF NOT EXISTS clients (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    branch_id TEXT,
    status TEXT NOT NULL DEFAULT 'active'
);

CREATE TABLE IF NOT EXISTS client_assignments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    client_id TEXT NOT NULL,
    obligation_id TEXT NOT NULL,
    sub_obligation_id TEXT,
    status TEXT NOT NULL DEFAULT 'active',
    FOREIGN KEY (client_id) REFERENCES clients(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_client_assignments_client
ON client_assignments(client_id, status);

CREATE TABLE IF NOT EXISTS timelines (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    client_id TEXT NOT NULL,
    obligation_id TEXT NOT NULL,
    sub_obligation_id TEXT,
    sub_obligation_key TEXT NOT NULL,
    period TEXT NOT NULL,
    branch_id TEXT,
    due_date TEXT NOT NULL,
    start_date TEXT NOT NULL,
    end_date TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'ongoing', 'delayed', 'completed')),
    cadence TEXT NOT NULL,
    frequency_config TEXT NOT NULL,
    sub_obligation TEXT NOT NULL,
    financial_year TEXT NOT NULL,
    fields TEXT NOT NULL DEFAULT '[]',
    timeline_type TEXT NOT NULL DEFAULT 'recurring',
    metadata TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS uq_timelines_materialization_key
ON timelines(client_id, obligation_id, sub_obligation_key, period);

CREATE INDEX IF NOT EXISTS idx_timelines_client_status
ON timelines(client_id, status);

CREATE INDEX IF NOT EXISTS idx_timelines_due_date
ON timelines(due_date, status);
"""


class Database:
    """SQLite database file holding obligation definitions, clients and timelines."""

    def __init__(self, path: Union[str, Path], busy_timeout: float = 30.0):
        """
        Args:
            path: Database file path
            busy_timeout: Seconds a connection waits on a locked database
        """
        self.path = Path(path)
        self.busy_timeout = busy_timeout

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.path), timeout=self.busy_timeout)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """
        Open a connection for one unit of work.

        The block runs in a transaction that commits on success and rolls back
        on error; the connection is closed afterwards. Each caller gets its own
        connection, so threads never share one.
        """
        conn = self._open()
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def init_schema(self) -> None:
        """Create the database file and tables if they do not exist."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._open()
        try:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(SCHEMA_DDL)
            conn.commit()
        finally:
            conn.close()
        logger.info(f"Database schema ready at {self.path}")
