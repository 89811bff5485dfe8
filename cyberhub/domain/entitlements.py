"""
Entitlement Resolver

Maps a subscriber's (tier, status) pair to the set of features a request
may exercise. Everything here is pure: no I/O, no shared mutable state.

Unknown or malformed input always resolves to the least-privileged set.
"""

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from cyberhub.domain.subscription import (
    SubscriptionTier,
    SubscriptionStatus,
)


class DashboardType(str, Enum):
    """Dashboard variant rendered for a subscriber."""
    BASIC = "basic"
    ADVANCED = "advanced"


class ContentTier(str, Enum):
    """Access tier attached to catalog content."""
    FREE = "free"
    PRO = "pro"


class EntitlementSet(BaseModel):
    """
    Derived feature-access matrix for one subscriber.

    Serialized with the camelCase names the web client reads.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    can_access_community: bool = Field(False, alias="canAccessCommunity")
    can_access_insights: bool = Field(False, alias="canAccessInsights")
    can_access_academy: bool = Field(False, alias="canAccessAcademy")
    can_access_premium_resources: bool = Field(False, alias="canAccessPremiumResources")
    can_schedule_meetings: bool = Field(False, alias="canScheduleMeetings")
    can_bookmark_resources: bool = Field(False, alias="canBookmarkResources")
    can_access_premium_discord: bool = Field(False, alias="canAccessPremiumDiscord")
    can_access_ai: bool = Field(False, alias="canAccessAI")
    can_access_news_feed: bool = Field(False, alias="canAccessNewsFeed")
    can_access_custom_roadmaps: bool = Field(False, alias="canAccessCustomRoadmaps")
    can_access_progress_tracker: bool = Field(False, alias="canAccessProgressTracker")
    dashboard_type: DashboardType = Field(DashboardType.BASIC, alias="dashboardType")


# Capability lookup accepts the Python field name or the client alias
CAPABILITY_FIELDS: dict[str, str] = {}
for _name, _field in EntitlementSet.model_fields.items():
    if _field.annotation is bool:
        CAPABILITY_FIELDS[_name] = _name
        CAPABILITY_FIELDS[_field.alias] = _name


NO_ENTITLEMENTS = EntitlementSet()

FREE_ENTITLEMENTS = EntitlementSet(
    can_access_community=True,
    can_access_insights=True,
    can_access_academy=True,
    dashboard_type=DashboardType.BASIC,
)

PRO_ENTITLEMENTS = EntitlementSet(
    can_access_community=True,
    can_access_insights=True,
    can_access_academy=True,
    can_access_premium_resources=True,
    can_schedule_meetings=True,
    can_bookmark_resources=True,
    can_access_premium_discord=True,
    can_access_ai=True,
    can_access_news_feed=True,
    can_access_custom_roadmaps=True,
    can_access_progress_tracker=True,
    dashboard_type=DashboardType.ADVANCED,
)

ENTITLED_STATUSES = frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING})


def _exact_member(value, enum_cls):
    # Only the canonical spelling is recognized; legacy values are mapped on read
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        return None
    try:
        return enum_cls(value)
    except ValueError:
        return None


def resolve_entitlements(
    tier: Union[SubscriptionTier, str, None],
    status: Union[SubscriptionStatus, str, None],
) -> EntitlementSet:
    """
    Compute the entitlement set for a (tier, status) pair.

    A status outside active/trialing yields the free set whatever the tier,
    so a stale ``pro`` tier on a lapsed subscription never keeps premium
    access. Values are compared exactly against the canonical vocabulary;
    anything else, including legacy or mis-cased spellings, falls back to
    the free set.
    """
    if _exact_member(status, SubscriptionStatus) not in ENTITLED_STATUSES:
        return FREE_ENTITLEMENTS

    if _exact_member(tier, SubscriptionTier) is SubscriptionTier.PRO:
        return PRO_ENTITLEMENTS

    return FREE_ENTITLEMENTS


def has_capability(entitlements: EntitlementSet, capability_name: str) -> bool:
    """Look up one capability; unknown names are denied."""
    field_name = CAPABILITY_FIELDS.get(capability_name)
    if field_name is None:
        return False
    return bool(getattr(entitlements, field_name))


def is_content_accessible(
    content_tier: Union[ContentTier, str, None],
    entitlements: EntitlementSet,
) -> bool:
    """Free content is open to any authenticated caller; pro content is gated."""
    if isinstance(content_tier, str) and not isinstance(content_tier, ContentTier):
        try:
            content_tier = ContentTier(content_tier.strip().lower())
        except ValueError:
            return False

    if content_tier is ContentTier.FREE:
        return True
    if content_tier is ContentTier.PRO:
        return entitlements.can_access_premium_resources
    return False


def content_tier_for(is_premium: bool) -> ContentTier:
    """Map the catalog's ``is_premium`` flag onto a content tier."""
    return ContentTier.PRO if is_premium else ContentTier.FREE
