"""
Bookmarks API Routes

Saved resources. Every endpoint requires the bookmark capability.
"""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field

from cyberhub.api.dependencies import (
    BookmarkRepoDep,
    CurrentUserDep,
    ResourceRepoDep,
    require_capability,
)
from cyberhub.domain.entitlements import (
    EntitlementSet,
    content_tier_for,
    is_content_accessible,
)
from cyberhub.infrastructure.db.models.resource import ResourceRead
from cyberhub.infrastructure.db.repositories.base_repository import as_uuid
from cyberhub.infrastructure.exceptions import AccessDeniedError


logger = logging.getLogger(__name__)

router = APIRouter()

require_bookmarks = require_capability("can_bookmark_resources")


class BookmarkCreate(BaseModel):
    """Request body for bookmarking a resource."""
    resource_id: UUID
    notes: Optional[str] = Field(default=None, max_length=2000)


class BookmarkResponse(BaseModel):
    id: UUID
    resource_id: UUID
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    resource: Optional[ResourceRead] = None


def _user_uuid(user_id: str) -> UUID:
    user_uuid = as_uuid(user_id)
    if user_uuid is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid user id",
        )
    return user_uuid


@router.get("/bookmarks", response_model=List[BookmarkResponse])
async def list_bookmarks(
    user_id: CurrentUserDep,
    repo: BookmarkRepoDep,
    _: EntitlementSet = Depends(require_bookmarks),
):
    """List the caller's bookmarks, newest first."""
    rows = await repo.list_for_user(_user_uuid(user_id))

    return [
        BookmarkResponse(
            id=bookmark.id,
            resource_id=bookmark.resource_id,
            notes=bookmark.notes,
            created_at=bookmark.created_at,
            resource=ResourceRead.model_validate(resource),
        )
        for bookmark, resource in rows
    ]


@router.post(
    "/bookmarks",
    response_model=BookmarkResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_bookmark(
    request: BookmarkCreate,
    user_id: CurrentUserDep,
    repo: BookmarkRepoDep,
    resource_repo: ResourceRepoDep,
    entitlements: EntitlementSet = Depends(require_bookmarks),
):
    """
    Bookmark a published resource.

    Raises:
        404 unknown resource, 403 premium resource not accessible,
        409 already bookmarked
    """
    resource = await resource_repo.get_by_id(request.resource_id)
    if not resource or not resource.is_published:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Resource not found",
        )

    if not is_content_accessible(content_tier_for(resource.is_premium), entitlements):
        raise AccessDeniedError(
            "Upgrade to Pro to access this resource",
            capability="canAccessPremiumResources",
        )

    bookmark = await repo.create_for_user(
        _user_uuid(user_id),
        resource.id,
        notes=request.notes,
    )
    logger.info(f"User {user_id} bookmarked resource {resource.id}")

    return BookmarkResponse(
        id=bookmark.id,
        resource_id=bookmark.resource_id,
        notes=bookmark.notes,
        created_at=bookmark.created_at,
        resource=ResourceRead.model_validate(resource),
    )


@router.delete("/bookmarks/{resource_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_bookmark(
    resource_id: UUID,
    user_id: CurrentUserDep,
    repo: BookmarkRepoDep,
    _: EntitlementSet = Depends(require_bookmarks),
):
    """Remove a bookmark."""
    deleted = await repo.delete_for_user(_user_uuid(user_id), resource_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Bookmark not found",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
