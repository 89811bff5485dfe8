"""
Admin Routes for Subscription Analytics

Protected by API key authentication.
"""

import logging
import secrets

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel

from cyberhub.api.dependencies import ProfileRepoDep
from cyberhub.config.settings import get_settings
from cyberhub.domain.entitlements import ENTITLED_STATUSES
from cyberhub.domain.subscription import (
    SubscriptionTier,
    monthly_price_for,
    normalize_status,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Admin API Key Authentication
# =============================================================================

async def verify_admin_api_key(
    x_admin_key: str = Header(..., description="Admin API key for protected operations")
) -> bool:
    """
    Verify admin API key from header.

    The admin key should be set in environment variable ADMIN_API_KEY.
    """
    expected_key = get_settings().admin_api_key

    if not expected_key:
        logger.error("ADMIN_API_KEY environment variable not set")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin authentication not configured"
        )

    # Use secrets.compare_digest for timing-attack resistance
    if not secrets.compare_digest(x_admin_key.encode(), expected_key.encode()):
        logger.warning("Invalid admin API key attempt")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin API key"
        )

    return True


router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(verify_admin_api_key)]  # Protect ALL admin routes
)


class TierStatusCount(BaseModel):
    tier: str
    status: str
    count: int


class SubscriptionAnalytics(BaseModel):
    """Subscription health snapshot."""
    total_profiles: int
    paying_subscribers: int
    entitled_subscribers: int
    distribution: list[TierStatusCount]
    monthly_recurring_revenue_cents: int
    conversion_rate: float


@router.get("/subscriptions/analytics", response_model=SubscriptionAnalytics)
async def get_subscription_analytics(repo: ProfileRepoDep):
    """
    Subscription analytics across all profiles.

    ``paying_subscribers`` counts Pro profiles whose status grants access
    (legacy spellings included). ``entitled_subscribers`` is every profile
    whose status grants at least the free set.
    """
    settings = get_settings()

    total = await repo.count_profiles()
    rows = await repo.count_by_tier_and_status()

    paying = 0
    entitled = 0
    for tier, raw_status, count in rows:
        if normalize_status(raw_status) not in ENTITLED_STATUSES:
            continue
        entitled += count
        if (tier or "").strip().lower() == SubscriptionTier.PRO.value:
            paying += count

    mrr = paying * monthly_price_for(SubscriptionTier.PRO, settings.pro_monthly_price_cents)
    conversion_rate = round(paying / total, 4) if total else 0.0

    return SubscriptionAnalytics(
        total_profiles=total,
        paying_subscribers=paying,
        entitled_subscribers=entitled,
        distribution=[
            TierStatusCount(tier=tier, status=raw_status, count=count)
            for tier, raw_status, count in rows
        ],
        monthly_recurring_revenue_cents=mrr,
        conversion_rate=conversion_rate,
    )
