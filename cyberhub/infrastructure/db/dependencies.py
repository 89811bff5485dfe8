"""
Dependency Injection Providers for CyberHub

FastAPI dependencies for database sessions and repositories. The
DatabaseManager is built once in the application lifespan and read from
``app.state``.
"""

from typing import Annotated, AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cyberhub.infrastructure.db.database import DatabaseManager
from cyberhub.infrastructure.db.repositories import (
    ProfileRepository,
    ResourceRepository,
    BookmarkRepository,
    WebhookEventRepository,
)
from cyberhub.infrastructure.exceptions import ConfigurationError


def get_db_manager(request: Request) -> DatabaseManager:
    """Return the process-wide DatabaseManager built at startup."""
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise ConfigurationError(
            "Database is not configured",
            missing_keys=["DATABASE_URL", "SUPABASE_PASSWORD"],
        )
    return db


async def get_session(
    db: DatabaseManager = Depends(get_db_manager),
) -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped transactional session.

    Commits when the endpoint returns, rolls back on error.
    """
    async with db.session() as session:
        yield session


# Type alias for session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def get_profile_repository(session: SessionDep) -> ProfileRepository:
    return ProfileRepository(session)


async def get_resource_repository(session: SessionDep) -> ResourceRepository:
    return ResourceRepository(session)


async def get_bookmark_repository(session: SessionDep) -> BookmarkRepository:
    return BookmarkRepository(session)


async def get_webhook_event_repository(session: SessionDep) -> WebhookEventRepository:
    return WebhookEventRepository(session)


# Type aliases for repository dependencies
ProfileRepoDep = Annotated[ProfileRepository, Depends(get_profile_repository)]
ResourceRepoDep = Annotated[ResourceRepository, Depends(get_resource_repository)]
BookmarkRepoDep = Annotated[BookmarkRepository, Depends(get_bookmark_repository)]
WebhookEventRepoDep = Annotated[WebhookEventRepository, Depends(get_webhook_event_repository)]
