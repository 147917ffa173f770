"""
Base Service.

Services orchestrate repositories and implement business rules. The
request-scoped session is the transaction boundary: services flush but
never commit, so a multi-step write either lands completely or not at all.

Usage:
    from accounting.backend.services.base import BaseService

    class LabelService(BaseService):
        def __init__(self, session: AsyncSession) -> None:
            super().__init__(session)
            self.repo = TaskLabelRepository(session)

        async def create(self, company_id: str, name: str) -> TaskLabel:
            if await self.repo.name_taken(company_id, name):
                raise ConflictError("Label already exists")
            return await self._execute_db_operation(
                "create label", self.repo.create(company_id=company_id, name=name),
            )
"""

import enum
from collections.abc import Awaitable
from datetime import date, datetime
from typing import Any, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.core.exceptions import ApplicationError, ConflictError, DatabaseError, ValidationError
from accounting.backend.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Driver messages differ (asyncpg vs sqlite3); match on the common words.
_UNIQUE_MARKERS = ("unique", "duplicate")
_FOREIGN_KEY_MARKERS = ("foreign key",)
_NOT_NULL_MARKERS = ("not null", "not-null")


def _jsonable(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def integrity_error_to_application_error(error: IntegrityError, operation: str) -> ApplicationError:
    """Map a constraint violation onto the error the API should report."""
    message = str(error.orig or error).lower()
    details = {"operation": operation}
    if any(marker in message for marker in _UNIQUE_MARKERS):
        return ConflictError("Resource already exists", details=details)
    if any(marker in message for marker in _FOREIGN_KEY_MARKERS):
        return ValidationError("Referenced resource does not exist", details=details)
    if any(marker in message for marker in _NOT_NULL_MARKERS):
        return ValidationError("A required field is missing", details=details)
    return DatabaseError(f"Database constraint violation: {operation}")


class BaseService:
    """
    Base class for all services.

    Holds the request session and a logger named after the concrete
    service module. Subclasses build their repositories in __init__.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._logger = get_logger(self.__class__.__module__)

    @property
    def session(self) -> AsyncSession:
        return self._session

    async def _execute_db_operation(self, operation: str, coro: Awaitable[T]) -> T:
        """
        Await a repository write, translating SQLAlchemy failures.

        Raises:
            ConflictError: Unique constraint violated
            ValidationError: Foreign key or NOT NULL constraint violated
            DatabaseError: Anything else the database rejected
        """
        try:
            return await coro
        except IntegrityError as e:
            self._logger.warning(
                "Database integrity error",
                extra={"operation": operation, "error": str(e.orig)},
            )
            raise integrity_error_to_application_error(e, operation) from e
        except SQLAlchemyError as e:
            self._logger.error(
                "Database error",
                extra={"operation": operation, "error": str(e)},
            )
            raise DatabaseError(f"Database operation failed: {operation}") from e

    @staticmethod
    def _diff(instance: Any, changes: dict[str, Any]) -> dict[str, dict[str, Any]]:
        """{field: {"old", "new"}} for the fields whose value actually changes."""
        return {
            field: {"old": _jsonable(getattr(instance, field, None)), "new": _jsonable(new_value)}
            for field, new_value in changes.items()
            if getattr(instance, field, None) != new_value
        }

    def _log_operation(self, operation: str, **context: Any) -> None:
        self._logger.info(operation, extra={"service": self.__class__.__name__, **context})

    def _log_debug(self, message: str, **context: Any) -> None:
        self._logger.debug(message, extra={"service": self.__class__.__name__, **context})
