"""
Resources API Routes

Catalog endpoints. Premium resources are listed for everyone but come back
``locked`` unless the caller can access premium content.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, status

from cyberhub.api.dependencies import (
    CurrentEntitlementsDep,
    EntitlementServiceDep,
    OptionalUserDep,
    ResourceRepoDep,
)
from cyberhub.domain.entitlements import (
    NO_ENTITLEMENTS,
    content_tier_for,
    is_content_accessible,
)
from cyberhub.infrastructure.db.models.resource import (
    ResourceDetail,
    ResourceRead,
    ResourceType,
)
from cyberhub.infrastructure.exceptions import AccessDeniedError


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/resources", response_model=List[ResourceRead])
async def list_resources(
    repo: ResourceRepoDep,
    service: EntitlementServiceDep,
    user_id: OptionalUserDep,
    resource_type: Optional[ResourceType] = None,
    is_premium: Optional[bool] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
):
    """
    List published resources.

    Anonymous callers see free resources unlocked and premium ones locked.
    """
    entitlements = NO_ENTITLEMENTS
    if user_id:
        entitlements = await service.get_entitlements(user_id)

    resources = await repo.list_published(
        resource_type=resource_type,
        is_premium=is_premium,
        skip=skip,
        limit=limit,
    )

    return [
        ResourceRead.model_validate(
            resource,
            update={
                "locked": not is_content_accessible(
                    content_tier_for(resource.is_premium), entitlements
                )
            },
        )
        for resource in resources
    ]


@router.get("/resources/{slug}", response_model=ResourceDetail)
async def get_resource(
    slug: str,
    repo: ResourceRepoDep,
    entitlements: CurrentEntitlementsDep,
):
    """
    Get a single published resource with its content.

    Raises:
        404 if missing or unpublished, 403 if premium and not entitled
    """
    resource = await repo.get_published_by_slug(slug)
    if not resource:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Resource not found",
        )

    if not is_content_accessible(content_tier_for(resource.is_premium), entitlements):
        logger.info(f"Denied premium resource {slug}")
        raise AccessDeniedError(
            "Upgrade to Pro to access this resource",
            capability="canAccessPremiumResources",
        )

    return ResourceDetail.model_validate(resource)
