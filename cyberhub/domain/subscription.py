"""
Subscription Domain Models

Enums, DTOs, and domain entities for the subscription bounded context.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Union
from pydantic import BaseModel, ConfigDict, Field


class SubscriptionTier(str, Enum):
    """Subscription tier levels."""
    FREE = "free"
    PRO = "pro"


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status (canonical vocabulary)."""
    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


# Older profile rows were written with a second vocabulary
LEGACY_STATUS_ALIASES = {
    "cancelled": SubscriptionStatus.CANCELED,
    "expired": SubscriptionStatus.CANCELED,
    "trial": SubscriptionStatus.TRIALING,
}

# Provider statuses without a canonical counterpart never grant access
PROVIDER_STATUS_MAP = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.TRIALING,
    "past_due": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELED,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "incomplete": SubscriptionStatus.PAST_DUE,
    "paused": SubscriptionStatus.PAST_DUE,
    "incomplete_expired": SubscriptionStatus.CANCELED,
}


def normalize_status(
    value: Union[SubscriptionStatus, str, None],
) -> Optional[SubscriptionStatus]:
    """
    Map a stored status string onto the canonical enum.

    Returns None for anything unrecognized.
    """
    if isinstance(value, SubscriptionStatus):
        return value
    if not isinstance(value, str):
        return None

    cleaned = value.strip().lower()
    if cleaned in LEGACY_STATUS_ALIASES:
        return LEGACY_STATUS_ALIASES[cleaned]
    try:
        return SubscriptionStatus(cleaned)
    except ValueError:
        return None


def status_from_provider(provider_status: Optional[str]) -> SubscriptionStatus:
    """Translate a billing provider status; unknown values are past_due."""
    return PROVIDER_STATUS_MAP.get(
        (provider_status or "").strip().lower(),
        SubscriptionStatus.PAST_DUE,
    )


# =============================================================================
# Domain Entities
# =============================================================================

class Subscriber(BaseModel):
    """
    A user's commercial relationship with the platform.

    ``tier`` and ``status`` hold the raw stored values so a malformed row
    still loads; entitlement resolution decides what they mean.
    """

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    email: Optional[str] = None
    tier: str = SubscriptionTier.FREE.value
    status: str = SubscriptionStatus.ACTIVE.value
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    version: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def canonical_status(self) -> Optional[SubscriptionStatus]:
        return normalize_status(self.status)

    @property
    def is_paying(self) -> bool:
        """Pro tier with a status that still grants access."""
        return self.tier == SubscriptionTier.PRO.value and self.status in (
            SubscriptionStatus.ACTIVE.value,
            SubscriptionStatus.TRIALING.value,
        )


# =============================================================================
# Request/Response DTOs
# =============================================================================

class CreateCheckoutRequest(BaseModel):
    """Request DTO for creating a checkout session."""
    tier: SubscriptionTier = Field(
        default=SubscriptionTier.PRO,
        description="Subscription tier to purchase"
    )
    success_url: str = Field(..., description="Redirect URL after successful payment")
    cancel_url: str = Field(..., description="Redirect URL after cancelled payment")


class PortalSessionRequest(BaseModel):
    """Request DTO for creating a billing portal session."""
    return_url: str = Field(..., description="URL to return to after portal session")


class CancelSubscriptionRequest(BaseModel):
    """Request DTO for cancelling the current subscription."""
    immediately: bool = Field(
        default=False,
        description="Cancel now instead of at the end of the billing period"
    )


class CheckoutResponse(BaseModel):
    """Response DTO for checkout session creation."""
    checkout_url: str
    session_id: str


class PortalResponse(BaseModel):
    """Response DTO for portal session creation."""
    portal_url: str


class SubscriptionChangeResponse(BaseModel):
    """Acknowledgement of a change requested from the billing provider."""
    subscription_id: str
    cancel_at_period_end: bool
    provider_status: str


class PricingPlan(BaseModel):
    """Pricing information for a single tier."""
    tier: SubscriptionTier
    name: str
    description: str
    monthly_price: int  # In cents
    features: list[str]
    popular: bool = False


class PricingResponse(BaseModel):
    """Response DTO for pricing information."""
    currency: str = "usd"
    plans: list[PricingPlan]


# =============================================================================
# Plan Catalog
# =============================================================================

PLAN_DETAILS = {
    SubscriptionTier.FREE: {
        "name": "Free",
        "description": "Get started with basic cybersecurity learning",
        "features": [
            "Access to community resources",
            "Basic learning content",
            "Cybersecurity insights",
            "Academy browsing",
        ],
    },
    SubscriptionTier.PRO: {
        "name": "Pro",
        "description": "Unlock premium cybersecurity content and features",
        "features": [
            "Full access to all content",
            "Custom learning roadmaps",
            "Unlimited bookmarks",
            "Advanced progress tracking",
            "AI-powered recommendations",
            "Live news feed",
            "Premium Discord community",
            "1:1 meeting scheduling",
        ],
    },
}


def monthly_price_for(tier: SubscriptionTier, pro_price_cents: int) -> int:
    """Monthly price in cents for a tier."""
    return pro_price_cents if tier == SubscriptionTier.PRO else 0
