"""
Database connection and initialization.
"""
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from padel_league.config import default_db_path
from padel_league.errors import StorageFailure

from .schema import all_schema_sql

logger = logging.getLogger(__name__)

_db_path: Path | None = None


def set_db_path(path: str | Path) -> None:
    """Set the database path. Call before first get_connection if not using default."""
    global _db_path
    _db_path = Path(path)


def get_db_path() -> Path:
    """Return the current database path."""
    if _db_path is not None:
        return _db_path
    return default_db_path()


def get_connection(db_path: str | Path | None = None) -> sqlite3.Connection:
    """
    Return a new SQLite connection.
    Use as context manager or ensure close() is called.
    """
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str | Path | None = None) -> None:
    """Create or ensure all tables exist."""
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    try:
        conn.executescript(all_schema_sql())
        conn.commit()
    finally:
        conn.close()
    logger.info("Database ready at %s", path)


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Re-raise sqlite3 errors raised inside the block as StorageFailure."""
    try:
        yield
    except sqlite3.Error as e:
        logger.error("Storage failure during %s: %s", operation, e, exc_info=True)
        raise StorageFailure(f"Storage failure during {operation}: {e}") from e
