"""
Bookmark Repository for CyberHub
"""

from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cyberhub.infrastructure.db.models.bookmark import Bookmark
from cyberhub.infrastructure.db.models.resource import Resource
from cyberhub.infrastructure.db.repositories.base_repository import BaseRepository
from cyberhub.infrastructure.exceptions import DuplicateError


class BookmarkRepository(BaseRepository[Bookmark]):
    """Bookmarks owned by a single user."""

    def __init__(self, session: AsyncSession):
        super().__init__(Bookmark, session)

    async def list_for_user(self, user_id: UUID) -> List[Tuple[Bookmark, Resource]]:
        """Bookmarks with their resources, newest first."""
        stmt = (
            select(Bookmark, Resource)
            .join(Resource, Resource.id == Bookmark.resource_id)
            .where(Bookmark.user_id == user_id)
            .order_by(Bookmark.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return [(bookmark, resource) for bookmark, resource in result.all()]

    async def get_for_user(self, user_id: UUID, resource_id: UUID) -> Optional[Bookmark]:
        stmt = select(Bookmark).where(
            Bookmark.user_id == user_id,
            Bookmark.resource_id == resource_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_for_user(
        self,
        user_id: UUID,
        resource_id: UUID,
        notes: Optional[str] = None,
    ) -> Bookmark:
        """
        Bookmark a resource.

        Raises:
            DuplicateError: the resource is already bookmarked
        """
        if await self.get_for_user(user_id, resource_id):
            raise DuplicateError(
                "Resource already bookmarked",
                operation="create",
                table="bookmarks",
            )

        try:
            return await self.add(
                Bookmark(user_id=user_id, resource_id=resource_id, notes=notes)
            )
        except IntegrityError as e:
            raise DuplicateError(
                "Resource already bookmarked",
                operation="create",
                table="bookmarks",
                original_error=e,
            )

    async def delete_for_user(self, user_id: UUID, resource_id: UUID) -> bool:
        """Remove a bookmark; False if it did not exist."""
        bookmark = await self.get_for_user(user_id, resource_id)
        if not bookmark:
            return False

        await self.session.delete(bookmark)
        await self.session.flush()
        return True
