"""
Repository Layer for CyberHub

Exports all repository classes for dependency injection.
"""

from cyberhub.infrastructure.db.repositories.base_repository import (
    BaseRepository,
    as_uuid,
)
from cyberhub.infrastructure.db.repositories.profile_repository import (
    ProfileRepository,
)
from cyberhub.infrastructure.db.repositories.resource_repository import (
    ResourceRepository,
)
from cyberhub.infrastructure.db.repositories.bookmark_repository import (
    BookmarkRepository,
)
from cyberhub.infrastructure.db.repositories.webhook_event_repository import (
    WebhookEventRepository,
)


__all__ = [
    # Base
    "BaseRepository",
    "as_uuid",
    # Repositories
    "ProfileRepository",
    "ResourceRepository",
    "BookmarkRepository",
    "WebhookEventRepository",
]
