"""
Base Repository for CyberHub

Generic async repository with the read/delete operations shared by the
catalog repositories.
"""

from typing import TypeVar, Generic, Optional, Type
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel


ModelType = TypeVar("ModelType", bound=SQLModel)


def as_uuid(value) -> Optional[UUID]:
    """Coerce a string id to UUID; None when it is not a valid UUID."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


class BaseRepository(Generic[ModelType]):
    """
    Generic async repository bound to one model and one session.

    Args:
        model: The SQLModel class to operate on
        session: Async database session
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self._model = model
        self._session = session

    @property
    def session(self) -> AsyncSession:
        """Get the current session."""
        return self._session

    async def get_by_id(self, id: UUID) -> Optional[ModelType]:
        """
        Get a single record by its primary key.

        Args:
            id: UUID primary key

        Returns:
            Model instance or None if not found
        """
        return await self._session.get(self._model, id)

    async def add(self, db_obj: ModelType) -> ModelType:
        """Persist a new model instance and reload server defaults."""
        self._session.add(db_obj)
        await self._session.flush()
        await self._session.refresh(db_obj)
        return db_obj

    async def delete(self, id: UUID) -> bool:
        """
        Delete a record by ID.

        Returns:
            True if deleted, False if not found
        """
        db_obj = await self.get_by_id(id)
        if not db_obj:
            return False

        await self._session.delete(db_obj)
        await self._session.flush()
        return True

    async def count(self) -> int:
        """Get total count of records."""
        stmt = select(func.count()).select_from(self._model)
        result = await self._session.execute(stmt)
        return result.scalar_one()
