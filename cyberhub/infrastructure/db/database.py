"""
Database Configuration for CyberHub

Async SQLAlchemy engine and session management.

One DatabaseManager is built during application startup and handed to
whatever needs it (request dependencies, scripts); there is no module-level
instance.
"""

import re
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from urllib.parse import quote_plus

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
    AsyncEngine,
)
from sqlalchemy import text
from sqlmodel import SQLModel

from cyberhub.config.settings import Settings
from cyberhub.infrastructure.exceptions import ConfigurationError


def build_database_url(settings: Settings) -> str:
    """
    Get the asyncpg connection URL.

    Uses DATABASE_URL if provided, otherwise derives it from
    SUPABASE_URL + SUPABASE_PASSWORD.
    Format: https://[project-ref].supabase.co -> postgresql+asyncpg://...
    """
    if settings.database_url:
        database_url = settings.database_url
        if database_url.startswith("postgresql://"):
            database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql+asyncpg://", 1)
        return database_url

    if not settings.supabase_url or not settings.supabase_password:
        raise ConfigurationError(
            "Either DATABASE_URL or (SUPABASE_URL + SUPABASE_PASSWORD) is required",
            missing_keys=["DATABASE_URL", "SUPABASE_PASSWORD"],
        )

    match = re.match(r'https?://([^.]+)\.supabase\.co', settings.supabase_url)
    if not match:
        raise ConfigurationError(f"Invalid SUPABASE_URL format: {settings.supabase_url}")

    project_ref = match.group(1)
    password = quote_plus(settings.supabase_password)

    # Direct database connection (not the pooler)
    return (
        f"postgresql+asyncpg://postgres:{password}"
        f"@db.{project_ref}.supabase.co:5432/postgres"
    )


class DatabaseManager:
    """
    Owns the async engine and session factory for one process.

    The engine is created lazily on first use so constructing the manager
    never opens a connection.
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def engine(self) -> AsyncEngine:
        """Get or create async engine with connection pooling."""
        if self._engine is None:
            self._initialize_engine()
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Get or create session factory."""
        if self._session_factory is None:
            self._initialize_engine()
        return self._session_factory

    def _initialize_engine(self) -> None:
        settings = self._settings
        self._engine = create_async_engine(
            build_database_url(settings),
            echo=settings.database_echo,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout,
            pool_pre_ping=True,  # Verify connections before use
        )

        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Transactional session scope.

        Usage:
            async with db.session() as session:
                result = await session.execute(query)
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def ping(self) -> None:
        """Verify the database answers (called on app startup)."""
        async with self.session_factory() as session:
            await session.execute(text("SELECT 1"))

    async def create_tables(self) -> None:
        """Create all tables from SQLModel metadata."""
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    async def drop_tables(self) -> None:
        """Drop all tables (use with caution, mainly for testing)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.drop_all)

    async def close(self) -> None:
        """Close engine and dispose of connection pool."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
