"""
Database Infrastructure Package for CyberHub

Exports database utilities and dependency providers.
"""

from cyberhub.infrastructure.db.database import (
    DatabaseManager,
    build_database_url,
)

from cyberhub.infrastructure.db.dependencies import (
    SessionDep,
    get_db_manager,
    get_session,
    get_profile_repository,
    get_resource_repository,
    get_bookmark_repository,
    get_webhook_event_repository,
    ProfileRepoDep,
    ResourceRepoDep,
    BookmarkRepoDep,
    WebhookEventRepoDep,
)


__all__ = [
    # Database management
    "DatabaseManager",
    "build_database_url",
    # Dependencies
    "SessionDep",
    "get_db_manager",
    "get_session",
    "get_profile_repository",
    "get_resource_repository",
    "get_bookmark_repository",
    "get_webhook_event_repository",
    "ProfileRepoDep",
    "ResourceRepoDep",
    "BookmarkRepoDep",
    "WebhookEventRepoDep",
]
