"""
SQLModel ORM Models for CyberHub

Exports all database models for Alembic autogenerate and application use.
Import models here to register them with SQLModel.metadata.
"""

from cyberhub.infrastructure.db.models.base import (
    BaseModel,
    TimestampMixin,
    UUIDMixin,
    utcnow,
)
from cyberhub.infrastructure.db.models.profile import Profile
from cyberhub.infrastructure.db.models.resource import (
    Resource,
    ResourceBase,
    ResourceRead,
    ResourceDetail,
    ResourceType,
    DifficultyLevel,
)
from cyberhub.infrastructure.db.models.bookmark import Bookmark
from cyberhub.infrastructure.db.models.webhook_event import ProcessedWebhookEvent


__all__ = [
    # Base
    "BaseModel",
    "TimestampMixin",
    "UUIDMixin",
    "utcnow",
    # Accounts
    "Profile",
    # Catalog
    "Resource",
    "ResourceBase",
    "ResourceRead",
    "ResourceDetail",
    "ResourceType",
    "DifficultyLevel",
    "Bookmark",
    # Billing
    "ProcessedWebhookEvent",
]
