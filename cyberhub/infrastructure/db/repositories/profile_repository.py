"""
Profile Repository

Account/profile store. Exposes the subscriber view of a profile row and
the compare-and-set write used by the billing webhook handler.
"""

import logging
from typing import Optional

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cyberhub.domain.subscription import (
    Subscriber,
    SubscriptionTier,
    SubscriptionStatus,
    normalize_status,
)
from cyberhub.infrastructure.db.models.base import utcnow
from cyberhub.infrastructure.db.models.profile import Profile
from cyberhub.infrastructure.db.repositories.base_repository import (
    BaseRepository,
    as_uuid,
)
from cyberhub.infrastructure.exceptions import (
    ConcurrentUpdateError,
    DuplicateError,
    ValidationError,
)


logger = logging.getLogger(__name__)


class ProfileRepository(BaseRepository[Profile]):
    """
    Repository for profile rows and their subscription columns.

    Reads always hit the database; nothing is cached across calls.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(Profile, session)

    # =========================================================================
    # Query Methods
    # =========================================================================

    async def get_profile(self, user_id: str) -> Optional[Subscriber]:
        """
        Get the subscriber view of a user's profile.

        Args:
            user_id: Auth user id (UUID string)

        Returns:
            Subscriber or None if not found
        """
        user_uuid = as_uuid(user_id)
        if user_uuid is None:
            return None

        return await self._fetch_one(Profile.id == user_uuid)

    async def get_by_stripe_customer_id(self, stripe_customer_id: str) -> Optional[Subscriber]:
        """Get subscriber by Stripe customer ID."""
        return await self._fetch_one(Profile.stripe_customer_id == stripe_customer_id)

    async def get_by_stripe_subscription_id(
        self,
        stripe_subscription_id: str,
    ) -> Optional[Subscriber]:
        """Get subscriber by Stripe subscription ID."""
        return await self._fetch_one(Profile.stripe_subscription_id == stripe_subscription_id)

    async def _fetch_one(self, *criteria) -> Optional[Subscriber]:
        statement = (
            select(Profile)
            .where(*criteria)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(statement)
        model = result.scalar_one_or_none()

        if model:
            return self._to_domain(model)

        return None

    async def count_profiles(self) -> int:
        return await self.count()

    async def count_by_tier_and_status(self) -> list[tuple[str, str, int]]:
        """Row counts grouped by raw (tier, status)."""
        statement = select(
            Profile.subscription_tier,
            Profile.subscription_status,
            func.count(),
        ).group_by(Profile.subscription_tier, Profile.subscription_status)
        result = await self.session.execute(statement)
        return [(tier, status, count) for tier, status, count in result.all()]

    # =========================================================================
    # Command Methods
    # =========================================================================

    async def create_for_user(
        self,
        user_id: str,
        email: str,
        username: Optional[str] = None,
        full_name: Optional[str] = None,
    ) -> Subscriber:
        """
        Create the profile row at registration (free tier, active).

        Raises:
            ValidationError: user_id is not a UUID
            DuplicateError: a profile already exists for this user
        """
        user_uuid = as_uuid(user_id)
        if user_uuid is None:
            raise ValidationError(f"Invalid user id: {user_id}")

        profile = Profile(
            id=user_uuid,
            email=email,
            username=username,
            full_name=full_name,
            subscription_tier=SubscriptionTier.FREE.value,
            subscription_status=SubscriptionStatus.ACTIVE.value,
        )

        try:
            await self.add(profile)
        except IntegrityError as e:
            raise DuplicateError(
                f"Profile already exists for user {user_id}",
                operation="create",
                table="profiles",
                original_error=e,
            )

        logger.info(f"Created free profile for user {user_id}")
        return self._to_domain(profile)

    async def get_or_create(self, user_id: str, email: str) -> Subscriber:
        """Get the subscriber, creating the free profile row on first sight."""
        existing = await self.get_profile(user_id)
        if existing:
            return existing

        return await self.create_for_user(user_id, email)

    async def update_subscription(self, subscriber: Subscriber) -> Subscriber:
        """
        Write tier/status/billing columns if the row is still at
        ``subscriber.version``.

        Raises:
            ConcurrentUpdateError: the row was changed (or removed) since it
                was read
        """
        user_uuid = as_uuid(subscriber.user_id)

        statement = (
            update(Profile)
            .where(Profile.id == user_uuid, Profile.version == subscriber.version)
            .values(
                subscription_tier=subscriber.tier,
                subscription_status=subscriber.status,
                stripe_customer_id=subscriber.stripe_customer_id,
                stripe_subscription_id=subscriber.stripe_subscription_id,
                current_period_end=subscriber.current_period_end,
                cancel_at_period_end=subscriber.cancel_at_period_end,
                version=Profile.version + 1,
                updated_at=utcnow(),
            )
            .returning(Profile)
            .execution_options(synchronize_session=False, populate_existing=True)
        )
        result = await self.session.execute(statement)
        model = result.scalar_one_or_none()

        if model is None:
            raise ConcurrentUpdateError(
                f"Profile for user {subscriber.user_id} changed concurrently",
                expected_version=subscriber.version,
                table="profiles",
            )

        await self.session.flush()
        logger.info(
            f"Updated subscription for user {subscriber.user_id}: "
            f"{subscriber.tier}/{subscriber.status} (v{model.version})"
        )
        return self._to_domain(model)

    async def rewrite_status(self, from_status: str, to_status: str) -> int:
        """
        Replace one raw status value with another on every row holding it.

        Bumps ``version`` so in-flight compare-and-set writers re-read.

        Returns:
            Number of rows rewritten
        """
        statement = (
            update(Profile)
            .where(Profile.subscription_status == from_status)
            .values(
                subscription_status=to_status,
                version=Profile.version + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(statement)
        return result.rowcount

    async def delete_for_user(self, user_id: str) -> bool:
        """Hard-delete a profile on account deletion."""
        user_uuid = as_uuid(user_id)
        if user_uuid is None:
            return False
        return await self.delete(user_uuid)

    # =========================================================================
    # Mapping Methods
    # =========================================================================

    def _to_domain(self, model: Profile) -> Subscriber:
        """
        Convert database model to domain entity.

        Legacy status spellings are mapped to the canonical vocabulary here;
        unrecognized values are passed through untouched.
        """
        canonical = normalize_status(model.subscription_status)
        return Subscriber(
            user_id=str(model.id),
            email=model.email,
            tier=model.subscription_tier or SubscriptionTier.FREE.value,
            status=canonical.value if canonical else (model.subscription_status or ""),
            stripe_customer_id=model.stripe_customer_id,
            stripe_subscription_id=model.stripe_subscription_id,
            current_period_end=model.current_period_end,
            cancel_at_period_end=model.cancel_at_period_end or False,
            version=model.version,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
