"""
Subscription API Routes

REST API endpoints for subscription management. These endpoints only ask
Stripe for changes; the resulting tier and status are written by the
webhook handler.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from cyberhub.api.dependencies import (
    CurrentClaimsDep,
    CurrentUserDep,
    ProfileRepoDep,
    StripeServiceDep,
)
from cyberhub.config.settings import get_settings
from cyberhub.domain.entitlements import EntitlementSet, resolve_entitlements
from cyberhub.domain.subscription import (
    PLAN_DETAILS,
    CancelSubscriptionRequest,
    CheckoutResponse,
    CreateCheckoutRequest,
    PortalResponse,
    PortalSessionRequest,
    PricingPlan,
    PricingResponse,
    Subscriber,
    SubscriptionChangeResponse,
    SubscriptionTier,
    monthly_price_for,
)
from cyberhub.infrastructure.db.repositories.profile_repository import ProfileRepository
from cyberhub.infrastructure.payments.stripe_service import StripeServiceError


logger = logging.getLogger(__name__)

router = APIRouter()


class SubscriptionStatusResponse(BaseModel):
    """Response DTO for subscription status."""
    tier: str
    status: str
    is_active: bool
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    entitlements: EntitlementSet


async def _require_subscription(repo: ProfileRepository, user_id: str) -> Subscriber:
    subscriber = await repo.get_profile(user_id)

    if not subscriber or not subscriber.stripe_subscription_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active subscription found"
        )
    return subscriber


# =============================================================================
# Subscription Status Endpoints
# =============================================================================

@router.get("/subscriptions/status", response_model=SubscriptionStatusResponse)
async def get_subscription_status(
    claims: CurrentClaimsDep,
    repo: ProfileRepoDep,
):
    """
    Get the current user's subscription status.

    Creates the free profile row on first call.
    """
    user_id = claims["sub"]
    subscriber = await repo.get_or_create(user_id, claims.get("email") or "")

    return SubscriptionStatusResponse(
        tier=subscriber.tier,
        status=subscriber.status,
        is_active=subscriber.is_paying,
        current_period_end=subscriber.current_period_end,
        cancel_at_period_end=subscriber.cancel_at_period_end,
        entitlements=resolve_entitlements(subscriber.tier, subscriber.status),
    )


# =============================================================================
# Checkout Endpoints
# =============================================================================

@router.post("/subscriptions/checkout", response_model=CheckoutResponse)
async def create_checkout_session(
    request: CreateCheckoutRequest,
    claims: CurrentClaimsDep,
    stripe_service: StripeServiceDep,
    repo: ProfileRepoDep,
):
    """
    Create a Stripe Checkout session for the Pro plan.

    Returns:
        CheckoutResponse with checkout URL and session ID
    """
    if request.tier == SubscriptionTier.FREE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot purchase free tier"
        )

    user_id = claims["sub"]
    subscriber = await repo.get_or_create(user_id, claims.get("email") or "")

    try:
        customer = await stripe_service.get_or_create_customer(
            user_id=user_id,
            email=subscriber.email or claims.get("email") or "",
            existing_customer_id=subscriber.stripe_customer_id,
        )

        # Link the customer now; the checkout webhook links the subscription
        if subscriber.stripe_customer_id != customer.id:
            await repo.update_subscription(
                subscriber.model_copy(update={"stripe_customer_id": customer.id})
            )

        session = await stripe_service.create_checkout_session(
            customer_id=customer.id,
            tier=request.tier,
            success_url=request.success_url,
            cancel_url=request.cancel_url,
            user_id=user_id,
        )

    except StripeServiceError as e:
        logger.error(f"Stripe error creating checkout: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    logger.info(f"Created checkout session {session.id} for user {user_id}")

    return CheckoutResponse(
        checkout_url=session.url,
        session_id=session.id,
    )


# =============================================================================
# Portal Endpoints
# =============================================================================

@router.post("/subscriptions/portal", response_model=PortalResponse)
async def create_portal_session(
    request: PortalSessionRequest,
    user_id: CurrentUserDep,
    stripe_service: StripeServiceDep,
    repo: ProfileRepoDep,
):
    """
    Create a Stripe Customer Portal session.

    Allows customers to manage their subscription:
    - Update payment method
    - Cancel subscription
    - View invoices
    """
    subscriber = await repo.get_profile(user_id)

    if not subscriber or not subscriber.stripe_customer_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No subscription found. Please subscribe first."
        )

    try:
        session = await stripe_service.create_portal_session(
            customer_id=subscriber.stripe_customer_id,
            return_url=request.return_url,
        )
    except StripeServiceError as e:
        logger.error(f"Stripe error creating portal: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    return PortalResponse(portal_url=session.url)


# =============================================================================
# Cancellation Endpoints
# =============================================================================

@router.post("/subscriptions/cancel", response_model=SubscriptionChangeResponse)
async def cancel_subscription(
    request: CancelSubscriptionRequest,
    user_id: CurrentUserDep,
    stripe_service: StripeServiceDep,
    repo: ProfileRepoDep,
):
    """
    Cancel the current subscription, at period end unless ``immediately``.

    Entitlements change when Stripe reports the change through the webhook.
    """
    subscriber = await _require_subscription(repo, user_id)

    try:
        subscription = await stripe_service.cancel_subscription(
            subscriber.stripe_subscription_id,
            immediately=request.immediately,
        )
    except StripeServiceError as e:
        logger.error(f"Stripe error cancelling subscription: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    return SubscriptionChangeResponse(
        subscription_id=subscription.id,
        cancel_at_period_end=bool(subscription.cancel_at_period_end),
        provider_status=subscription.status,
    )


@router.post("/subscriptions/reactivate", response_model=SubscriptionChangeResponse)
async def reactivate_subscription(
    user_id: CurrentUserDep,
    stripe_service: StripeServiceDep,
    repo: ProfileRepoDep,
):
    """Undo a pending end-of-period cancellation."""
    subscriber = await _require_subscription(repo, user_id)

    try:
        subscription = await stripe_service.reactivate_subscription(
            subscriber.stripe_subscription_id
        )
    except StripeServiceError as e:
        logger.error(f"Stripe error reactivating subscription: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    return SubscriptionChangeResponse(
        subscription_id=subscription.id,
        cancel_at_period_end=bool(subscription.cancel_at_period_end),
        provider_status=subscription.status,
    )


# =============================================================================
# Pricing Endpoints
# =============================================================================

@router.get("/subscriptions/pricing", response_model=PricingResponse)
async def get_pricing_info():
    """
    Get current pricing information for available tiers.

    Prices are in cents.
    """
    settings = get_settings()

    plans = [
        PricingPlan(
            tier=tier,
            name=details["name"],
            description=details["description"],
            monthly_price=monthly_price_for(tier, settings.pro_monthly_price_cents),
            features=details["features"],
            popular=tier == SubscriptionTier.PRO,
        )
        for tier, details in PLAN_DETAILS.items()
    ]

    return PricingResponse(plans=plans)
