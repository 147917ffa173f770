"""
Base Repository.

Generic data access shared by every aggregate. Repositories flush so that
generated ids and defaults are visible to the caller; committing is left
to whoever owns the session.

Tenant-owned rows are fetched with get_in_company: a row of another
company is indistinguishable from a missing one.
"""

from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import Select, func, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.core.exceptions import NotFoundError
from accounting.backend.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Subclasses set the model and, when the class name reads badly in an
    error message, a human entity name:

        class TimeEntryRepository(BaseRepository[TimeEntry]):
            model = TimeEntry
            entity_name = "Time entry"
    """

    model: type[ModelType]
    entity_name: str | None = None

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _not_found(self, id: str | UUID) -> NotFoundError:
        return NotFoundError(
            f"{self.entity_name or self.model.__name__} not found",
            details={"id": str(id)},
        )

    async def _first(self, stmt: Select) -> ModelType | None:
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def get_by_id_or_none(self, id: str | UUID) -> ModelType | None:
        return await self._first(select(self.model).where(self.model.id == str(id)))

    async def get_by_id(self, id: str | UUID) -> ModelType:
        """
        Raises:
            NotFoundError: If no row has this id
        """
        instance = await self.get_by_id_or_none(id)
        if instance is None:
            raise self._not_found(id)
        return instance

    async def get_in_company(self, id: str | UUID, company_id: str) -> ModelType:
        """
        Raises:
            NotFoundError: If the row is missing or owned by another company
        """
        instance = await self._first(
            select(self.model).where(self.model.id == str(id), self.model.company_id == company_id)
        )
        if instance is None:
            raise self._not_found(id)
        return instance

    async def create(self, **values: Any) -> ModelType:
        instance = self.model(**values)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def update_instance(self, instance: ModelType, **changes: Any) -> ModelType:
        """
        Assign mapped attributes on a loaded row and flush.

        Keys that are not mapped on the model are ignored, so callers may
        pass a schema dump containing request-only fields.
        """
        mapped = inspect(self.model).attrs.keys()
        for key, value in changes.items():
            if key in mapped:
                setattr(instance, key, value)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def delete_instance(self, instance: ModelType) -> None:
        await self.session.delete(instance)
        await self.session.flush()

    async def _paginate(self, stmt: Select, limit: int, offset: int) -> tuple[list[ModelType], int]:
        """One page of `stmt` plus the number of rows it matches overall."""
        total = await self.session.scalar(select(func.count()).select_from(stmt.order_by(None).subquery()))
        rows = await self.session.scalars(stmt.limit(limit).offset(offset))
        return list(rows.all()), total or 0
