"""
Base service class and the service error hierarchy.
"""

import logging
from abc import ABC
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """
    Base exception for service layer errors.

    Every service error carries a human readable ``message``, an optional
    ``details`` payload and the HTTP status the boundary should answer with.
    """

    status_code: int = 500

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class InvalidInputError(ServiceError):
    """Raised when a payload is malformed (unknown node type, empty script...)."""

    status_code = 400


class NotFoundError(ServiceError):
    """Raised when an id does not resolve under its claimed parent."""

    status_code = 404


class ConflictError(ServiceError):
    """
    Raised on uniqueness violations, concurrent lifecycle transitions and
    structural deletes against an active pipeline.
    """

    status_code = 409


class ValidationFailedError(ServiceError):
    """Raised by start when the pipeline graph is invalid."""

    status_code = 422

    def __init__(self, message: str, result):
        super().__init__(message, details=result.model_dump())
        self.result = result


class ExecutionError(ServiceError):
    """Raised when a processor fails to start or crashes after exhausting retries."""

    status_code = 500


class OperationTimeoutError(ServiceError):
    """Raised when processors do not drain within the stop grace period."""

    status_code = 504


class BaseService(ABC):
    """
    Base class for pipeline core services.
    Provides common functionality like logging, error handling, and database access.
    """

    def __init__(self, db_provider, logger_name: Optional[str] = None):
        """
        Initialize the service with a database provider.

        Args:
            db_provider: Database provider instance
            logger_name: Custom logger name, defaults to class name
        """
        self.db = db_provider
        self.logger = logging.getLogger(logger_name or self.__class__.__name__)

    async def _fetch_one(self, query: str, params: tuple = ()) -> Optional[Dict[str, Any]]:
        """
        Fetch a single row from database.

        Raises:
            ServiceError: If the query fails
        """
        try:
            row = await self.db.fetch_one(query, *params)
            return dict(row) if row else None
        except Exception as e:
            self.logger.error(f"Fetch one failed: {query} - {e}")
            raise ServiceError(f"Database fetch failed: {e}") from e

    async def _fetch_all(self, query: str, params: tuple = ()) -> List[Dict[str, Any]]:
        """
        Fetch all rows from database.

        Raises:
            ServiceError: If the query fails
        """
        try:
            rows = await self.db.fetch_all(query, *params)
            return [dict(row) for row in rows] if rows else []
        except Exception as e:
            self.logger.error(f"Fetch all failed: {query} - {e}")
            raise ServiceError(f"Database fetch failed: {e}") from e

    async def _execute(self, query: str, params: tuple = ()) -> Any:
        """
        Execute a database query (INSERT, UPDATE, DELETE).

        Raises:
            ServiceError: If the query fails
        """
        try:
            return await self.db.execute(query, *params)
        except Exception as e:
            self.logger.error(f"Execute failed: {query} - {e}")
            raise ServiceError(f"Database execute failed: {e}") from e
