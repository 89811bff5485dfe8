"""
Entitlement API Routes

Read-only view of the caller's feature-access set.
"""

import logging
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel

from cyberhub.api.dependencies import CurrentUserDep, EntitlementServiceDep
from cyberhub.domain.entitlements import (
    EntitlementSet,
    NO_ENTITLEMENTS,
    has_capability,
    resolve_entitlements,
)


logger = logging.getLogger(__name__)

router = APIRouter()


class EntitlementsResponse(BaseModel):
    """Caller's subscription state with its resolved entitlements."""
    tier: Optional[str] = None
    status: Optional[str] = None
    entitlements: EntitlementSet


class CapabilityCheckResponse(BaseModel):
    capability: str
    allowed: bool


@router.get("/entitlements/me", response_model=EntitlementsResponse)
async def get_my_entitlements(
    user_id: CurrentUserDep,
    service: EntitlementServiceDep,
):
    """
    Get the current user's entitlements.

    Tier and status are null when no profile could be loaded, in which case
    every capability is denied.
    """
    subscriber = await service.load_subscriber(user_id)

    if subscriber is None:
        return EntitlementsResponse(entitlements=NO_ENTITLEMENTS)

    return EntitlementsResponse(
        tier=subscriber.tier,
        status=subscriber.status,
        entitlements=resolve_entitlements(subscriber.tier, subscriber.status),
    )


@router.get("/entitlements/me/{capability}", response_model=CapabilityCheckResponse)
async def check_my_capability(
    capability: str,
    user_id: CurrentUserDep,
    service: EntitlementServiceDep,
):
    """Check a single capability; unknown names are reported as not allowed."""
    entitlements = await service.get_entitlements(user_id)
    return CapabilityCheckResponse(
        capability=capability,
        allowed=has_capability(entitlements, capability),
    )
