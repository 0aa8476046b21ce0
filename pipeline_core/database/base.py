from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional


class DatabaseProvider(ABC):
    """Abstract Base Class for a database provider."""

    @property
    @abstractmethod
    def provider(self) -> str:
        """Return the provider type."""
        pass

    @abstractmethod
    async def connect(self) -> bool:
        """Connect to the database."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    @asynccontextmanager
    async def transaction(self):
        """
        Create a database transaction.

        Yields a connection-bound handle exposing the same fetch/execute
        methods. Everything executed through the handle is committed when
        the block exits normally and rolled back when it raises.
        """
        yield None

    @abstractmethod
    async def fetch_one(self, query: str, *args) -> Optional[Dict[str, Any]]:
        """Execute a query and fetch a single row."""
        pass

    @abstractmethod
    async def fetch_all(self, query: str, *args) -> List[Dict[str, Any]]:
        """Execute a query and fetch all rows."""
        pass

    @abstractmethod
    async def fetch_val(self, query: str, *args) -> Any:
        """Execute a query and fetch a single value."""
        pass

    @abstractmethod
    async def execute(self, query: str, *args) -> Any:
        """Execute a command (e.g., INSERT, UPDATE) and return the last row id."""
        pass

    @abstractmethod
    async def execute_script(self, script: str) -> None:
        """Execute multiple SQL statements."""
        pass

    async def is_healthy(self) -> bool:
        """Check that the connection answers a trivial query."""
        try:
            return await self.fetch_val("SELECT 1") == 1
        except Exception:
            return False
