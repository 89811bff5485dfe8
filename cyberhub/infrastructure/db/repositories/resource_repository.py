"""
Resource Repository for CyberHub

Read side of the resource catalog.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cyberhub.infrastructure.db.models.resource import Resource, ResourceType
from cyberhub.infrastructure.db.repositories.base_repository import BaseRepository


class ResourceRepository(BaseRepository[Resource]):
    """Published-resource queries for the catalog endpoints."""

    def __init__(self, session: AsyncSession):
        super().__init__(Resource, session)

    async def get_published_by_slug(self, slug: str) -> Optional[Resource]:
        """
        Get a published resource by slug.

        Returns:
            Resource or None if missing or unpublished
        """
        stmt = select(Resource).where(
            Resource.slug == slug,
            Resource.is_published.is_(True),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_published(
        self,
        resource_type: Optional[ResourceType] = None,
        is_premium: Optional[bool] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> List[Resource]:
        """
        List published resources, featured first then newest.

        Args:
            resource_type: Only this kind of resource
            is_premium: Only premium (True) or only free (False) resources
            skip: Number of records to skip
            limit: Maximum records to return
        """
        stmt = select(Resource).where(Resource.is_published.is_(True))

        if resource_type is not None:
            stmt = stmt.where(Resource.resource_type == resource_type)
        if is_premium is not None:
            stmt = stmt.where(Resource.is_premium.is_(is_premium))

        stmt = (
            stmt.order_by(Resource.is_featured.desc(), Resource.published_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
