"""
Profile Database Model

One row per account. Carries the billing-relevant subscription columns
written by the Stripe webhook handler.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import DateTime
from sqlmodel import Field

from cyberhub.infrastructure.db.models.base import TimestampMixin


class Profile(TimestampMixin, table=True):
    """
    Profiles table keyed by the auth user id.

    ``version`` is bumped on every subscription write and used for
    compare-and-set updates.
    """

    __tablename__ = "profiles"

    id: UUID = Field(primary_key=True, nullable=False, description="Auth user id")
    email: str = Field(max_length=320, index=True)
    username: Optional[str] = Field(default=None, max_length=50, unique=True)
    full_name: Optional[str] = Field(default=None, max_length=100)

    # Subscription details
    subscription_tier: str = Field(default="free", max_length=20)
    subscription_status: str = Field(default="active", max_length=20)

    # Stripe IDs
    stripe_customer_id: Optional[str] = Field(default=None, unique=True, index=True)
    stripe_subscription_id: Optional[str] = Field(default=None, unique=True, index=True)

    # Billing period
    current_period_end: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    cancel_at_period_end: bool = Field(default=False)

    version: int = Field(default=1, nullable=False)
