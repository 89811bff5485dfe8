"""
Entitlement Service

Loads the caller's Subscriber from the profile store and resolves the
feature-access set for it. Any failure to load a Subscriber denies every
capability.
"""

import logging
from typing import Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from cyberhub.domain.entitlements import (
    ContentTier,
    EntitlementSet,
    NO_ENTITLEMENTS,
    has_capability,
    is_content_accessible,
    resolve_entitlements,
)
from cyberhub.domain.subscription import Subscriber
from cyberhub.infrastructure.db.repositories.profile_repository import ProfileRepository
from cyberhub.infrastructure.exceptions import DatabaseError


logger = logging.getLogger(__name__)


class EntitlementService:
    """
    Per-request entitlement lookups.

    Args:
        profile_repository: Repository bound to the request's session
    """

    def __init__(self, profile_repository: ProfileRepository):
        self._profiles = profile_repository

    async def load_subscriber(self, user_id: str) -> Optional[Subscriber]:
        """
        Fetch the Subscriber for a user.

        Returns None when the profile is missing or the store fails.
        """
        try:
            return await self._profiles.get_profile(user_id)
        except (DatabaseError, SQLAlchemyError) as e:
            logger.error(f"Failed to load profile for user {user_id}: {e}")
            return None

    async def get_entitlements(self, user_id: str) -> EntitlementSet:
        """Resolve the entitlement set for a user."""
        subscriber = await self.load_subscriber(user_id)
        if subscriber is None:
            logger.warning(f"No subscriber for user {user_id}, denying all capabilities")
            return NO_ENTITLEMENTS

        return resolve_entitlements(subscriber.tier, subscriber.status)

    async def check_access(self, user_id: str, capability: str) -> bool:
        """Whether the user holds one named capability."""
        entitlements = await self.get_entitlements(user_id)
        return has_capability(entitlements, capability)

    async def can_view_content(
        self,
        user_id: str,
        content_tier: Union[ContentTier, str],
    ) -> bool:
        entitlements = await self.get_entitlements(user_id)
        return is_content_accessible(content_tier, entitlements)
