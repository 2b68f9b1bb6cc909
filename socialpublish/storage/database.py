"""
SQLite connection handling and schema migrations.

Connections are short-lived: every operation opens one, runs inside a
transaction and closes it. Async callers go through `Database.run`, which
executes the blocking work on a worker thread.
"""

import asyncio
import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    uuid VARCHAR(36) NOT NULL PRIMARY KEY,
    search_key VARCHAR(255) UNIQUE NOT NULL,
    kind VARCHAR(255) NOT NULL,
    payload TEXT NOT NULL,
    created_at INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS documents_created_at
    ON documents(kind, created_at);

CREATE TABLE IF NOT EXISTS document_tags (
    document_uuid VARCHAR(36) NOT NULL,
    name VARCHAR(255) NOT NULL,
    kind VARCHAR(255) NOT NULL,
    PRIMARY KEY (document_uuid, name, kind)
);

CREATE TABLE IF NOT EXISTS uploads (
    uuid VARCHAR(36) NOT NULL PRIMARY KEY,
    hash VARCHAR(64) NOT NULL,
    originalname VARCHAR(255) NOT NULL,
    mimetype VARCHAR(255),
    size INTEGER,
    altText TEXT,
    imageWidth INTEGER,
    imageHeight INTEGER,
    createdAt INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS uploads_createdAt
    ON uploads(createdAt);
"""


def now_millis() -> int:
    """Current time as epoch milliseconds, the format used in every table."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def from_millis(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


class Database:
    """
    A SQLite database file.

    Args:
        path: Location of the database file; parent directories are created.
    """

    def __init__(self, path: str):
        self.path = path
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection, committing on success and rolling back on error."""
        conn = self.connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def migrate(self) -> None:
        """Create tables and indexes that do not exist yet."""
        with self.transaction() as conn:
            conn.executescript(SCHEMA)
        logger.info("Database ready", extra={"db_path": self.path})

    async def run(self, func: Callable[..., T], *args: Any) -> T:
        """Run a blocking storage call without stalling the event loop."""
        return await asyncio.to_thread(func, *args)
