"""
SQLite database provider implementation.
"""

import asyncio
import logging
import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

from .base import DatabaseProvider

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


class _ConnectionOps:
    """Blocking helpers shared by the provider and its transaction handle."""

    def __init__(self, connection: sqlite3.Connection):
        self.connection = connection

    def execute(self, query: str, params: tuple) -> Any:
        cursor = self.connection.execute(query, params)
        return cursor.lastrowid

    def fetch_one(self, query: str, params: tuple) -> Optional[Dict[str, Any]]:
        row = self.connection.execute(query, params).fetchone()
        return dict(row) if row else None

    def fetch_all(self, query: str, params: tuple) -> List[Dict[str, Any]]:
        rows = self.connection.execute(query, params).fetchall()
        return [dict(row) for row in rows] if rows else []

    def fetch_val(self, query: str, params: tuple) -> Any:
        row = self.connection.execute(query, params).fetchone()
        return row[0] if row else None


class SQLiteTransaction:
    """
    Handle yielded by SQLiteProvider.transaction().

    The provider lock is already held for the lifetime of the handle, so these
    methods talk to the connection directly.
    """

    def __init__(self, ops: _ConnectionOps):
        self._ops = ops

    async def _run(self, func, query: str, args: tuple) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, query, tuple(args))

    async def execute(self, query: str, *args) -> Any:
        return await self._run(self._ops.execute, query, args)

    async def fetch_one(self, query: str, *args) -> Optional[Dict[str, Any]]:
        return await self._run(self._ops.fetch_one, query, args)

    async def fetch_all(self, query: str, *args) -> List[Dict[str, Any]]:
        return await self._run(self._ops.fetch_all, query, args)

    async def fetch_val(self, query: str, *args) -> Any:
        return await self._run(self._ops.fetch_val, query, args)


class SQLiteProvider(DatabaseProvider):
    """SQLite database provider implementation."""

    @property
    def provider(self) -> str:
        return "sqlite"

    def __init__(self, database_url: str):
        self.database_url = database_url
        # Extract database path from URL
        if database_url.startswith("sqlite:///"):
            self.db_path = database_url[10:]  # Remove "sqlite:///"
        else:
            self.db_path = database_url

        self._connection: Optional[sqlite3.Connection] = None
        self._ops: Optional[_ConnectionOps] = None
        self._lock = asyncio.Lock()

    def _create_connection(self) -> sqlite3.Connection:
        """Create a new SQLite connection."""
        if self.db_path != MEMORY_PATH:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        connection = sqlite3.connect(
            self.db_path,
            check_same_thread=False,
            timeout=10.0,
            isolation_level=None  # Autocommit; transactions are explicit
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys=ON")
        return connection

    async def connect(self) -> bool:
        """Establish connection to SQLite database."""
        try:
            async with self._lock:
                if self._connection is None:
                    loop = asyncio.get_running_loop()
                    self._connection = await loop.run_in_executor(None, self._create_connection)
                    self._ops = _ConnectionOps(self._connection)
            logger.info(f"Connected to SQLite database: {self.db_path}")
            return True
        except sqlite3.Error as e:
            logger.error(f"SQLite connection error: {e}")
            return False

    async def disconnect(self) -> None:
        """Close database connection."""
        async with self._lock:
            if self._connection:
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, self._connection.close)
                self._connection = None
                self._ops = None
        logger.info("Disconnected from SQLite database")

    async def _ensure_connected(self) -> None:
        if self._connection is None:
            raise ConnectionError("Database not connected")

    async def _run_locked(self, func, query: str, args: tuple) -> Any:
        async with self._lock:
            await self._ensure_connected()
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, func, query, tuple(args))

    async def execute(self, query: str, *args) -> Any:
        """Execute a query and return the last inserted row id."""
        try:
            return await self._run_locked(lambda q, p: self._ops.execute(q, p), query, args)
        except sqlite3.Error as e:
            logger.error(f"SQLite execute error: {e}")
            raise

    async def fetch_one(self, query: str, *args) -> Optional[Dict[str, Any]]:
        """Fetch one row."""
        return await self._run_locked(lambda q, p: self._ops.fetch_one(q, p), query, args)

    async def fetch_all(self, query: str, *args) -> List[Dict[str, Any]]:
        """Fetch all rows."""
        return await self._run_locked(lambda q, p: self._ops.fetch_all(q, p), query, args)

    async def fetch_val(self, query: str, *args) -> Any:
        """Fetch a single value from the first row."""
        return await self._run_locked(lambda q, p: self._ops.fetch_val(q, p), query, args)

    async def execute_script(self, script: str) -> None:
        """Execute multiple SQL statements."""
        async with self._lock:
            await self._ensure_connected()
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._connection.executescript, script)

    @asynccontextmanager
    async def transaction(self):
        """
        Context manager for database transactions.

        The provider lock is held until commit or rollback, so statements from
        other coroutines never interleave with the unit of work.
        """
        async with self._lock:
            await self._ensure_connected()
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._connection.execute, "BEGIN IMMEDIATE")
            try:
                yield SQLiteTransaction(self._ops)
            except BaseException as e:
                await loop.run_in_executor(None, self._connection.execute, "ROLLBACK")
                logger.debug(f"Transaction rolled back: {e!r}")
                raise
            else:
                await loop.run_in_executor(None, self._connection.execute, "COMMIT")
