"""
DuckDB connection management for partygallery.

The whole gallery lives in one DuckDB file shared by every Streamlit session.
DuckDB connections are not safe to use from several threads at once, so all
access goes through ``DatabaseManager`` which serializes it with a lock.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import duckdb

from ..logging_config import get_logger
from .schema import REQUIRED_COLUMNS, get_schema_statements

logger = get_logger(__name__)


class DatabaseManager:
    """Owns the DuckDB connection and the schema."""

    def __init__(self, db_path: str):
        """
        Args:
            db_path: Path to the DuckDB file, or ``:memory:``
        """
        self.db_path = db_path
        self._connection: duckdb.DuckDBPyConnection | None = None
        self._lock = threading.RLock()

    def connect(self) -> duckdb.DuckDBPyConnection:
        """Get or create the connection."""
        with self._lock:
            if self._connection is None:
                if self.db_path != ":memory:":
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                self._connection = duckdb.connect(self.db_path)
                logger.info("database_connected", db_path=self.db_path)
            return self._connection

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
                logger.info("database_closed", db_path=self.db_path)

    def initialize_schema(self) -> None:
        """
        Create tables and indexes if they don't exist.

        Raises:
            duckdb.Error: If a statement fails
        """
        with self._lock:
            conn = self.connect()
            for statement in get_schema_statements():
                conn.execute(statement)
            logger.info("database_schema_initialized", db_path=self.db_path)

    def verify_schema(self) -> bool:
        """
        Check that every table exists with its required columns.

        Returns:
            True if the schema is complete
        """
        try:
            rows = self.fetchall(
                "SELECT table_name, column_name FROM information_schema.columns WHERE table_schema = 'main'"
            )
        except duckdb.Error as e:
            logger.error("schema_verification_failed", error=str(e))
            return False

        present: dict[str, set[str]] = {}
        for table_name, column_name in rows:
            present.setdefault(table_name, set()).add(column_name)

        for table, columns in REQUIRED_COLUMNS.items():
            missing = columns - present.get(table, set())
            if missing:
                logger.warning("schema_columns_missing", table=table, missing=sorted(missing))
                return False
        return True

    def _run(self, query: str, parameters: tuple | list | None) -> duckdb.DuckDBPyConnection:
        conn = self.connect()
        if parameters:
            return conn.execute(query, parameters)
        return conn.execute(query)

    def execute(self, query: str, parameters: tuple | list | None = None) -> None:
        with self._lock:
            self._run(query, parameters)

    def fetchall(self, query: str, parameters: tuple | list | None = None) -> list[tuple]:
        with self._lock:
            return self._run(query, parameters).fetchall()

    def fetchone(self, query: str, parameters: tuple | list | None = None) -> tuple | None:
        with self._lock:
            return self._run(query, parameters).fetchone()

    @contextmanager
    def transaction(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """
        Run a block atomically.

        The lock is held for the whole block so check-then-write sequences
        (like toggling a like) cannot interleave with other sessions.
        """
        with self._lock:
            conn = self.connect()
            conn.begin()
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            else:
                conn.commit()

    def __enter__(self) -> "DatabaseManager":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def create_database(db_path: str) -> DatabaseManager:
    """
    Open a database and make sure its schema is in place.

    Raises:
        RuntimeError: If the schema cannot be created or verified
    """
    try:
        manager = DatabaseManager(db_path)
        manager.initialize_schema()
        if not manager.verify_schema():
            raise RuntimeError("Schema verification failed after creation")
        return manager
    except duckdb.Error as e:
        logger.error("database_creation_failed", db_path=db_path, error=str(e))
        raise RuntimeError(f"Database creation failed: {e}") from e


_database_manager: DatabaseManager | None = None
_database_lock = threading.Lock()


def get_database_manager(db_path: str | None = None) -> DatabaseManager:
    """
    Get the process-wide database manager, creating it on first use.

    Args:
        db_path: Override for ``GALLERY_DB_PATH`` (first call only)
    """
    global _database_manager
    if _database_manager is None:
        with _database_lock:
            if _database_manager is None:
                from ..config import get_db_path

                _database_manager = create_database(db_path or get_db_path())
    return _database_manager


def reset_database_manager() -> None:
    """Close and forget the process-wide manager."""
    global _database_manager
    with _database_lock:
        if _database_manager is not None:
            _database_manager.close()
            _database_manager = None
