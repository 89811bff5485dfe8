"""
Test configuration and fixtures for CyberHub.

Provides shared fixtures for unit and integration tests. Environment
defaults are set before any application module reads settings.
"""

import os
import time
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

os.environ.setdefault("SUPABASE_URL", "https://testproject.supabase.co")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-0123456789abcdef0123456789")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")
os.environ.setdefault("STRIPE_PRO_PRICE_ID", "price_pro_test")
os.environ.setdefault("ENVIRONMENT", "testing")

import jwt
import pytest
from fastapi.testclient import TestClient

from cyberhub.config.settings import get_settings
from cyberhub.domain.subscription import Subscriber, SubscriptionTier
from cyberhub.infrastructure.exceptions import ConcurrentUpdateError, DuplicateError


USER_ID = "00000000-0000-0000-0000-000000000001"
OTHER_USER_ID = "00000000-0000-0000-0000-000000000002"


# =============================================================================
# Fakes
# =============================================================================

class FakeProfileRepository:
    """
    In-memory stand-in for ProfileRepository with real compare-and-set.

    ``concurrent_writes`` makes the next N updates lose to a simulated
    concurrent writer.
    """

    def __init__(self):
        self.rows: dict[str, Subscriber] = {}
        self.concurrent_writes = 0
        self.update_calls = 0

    def seed(self, user_id: str = USER_ID, tier: str = "free", status: str = "active", **fields) -> Subscriber:
        subscriber = Subscriber(
            user_id=user_id,
            email=fields.pop("email", f"{user_id[-4:]}@example.com"),
            tier=tier,
            status=status,
            **fields,
        )
        self.rows[user_id] = subscriber
        return subscriber

    async def get_profile(self, user_id: str) -> Optional[Subscriber]:
        row = self.rows.get(user_id)
        return row.model_copy() if row else None

    async def get_by_stripe_customer_id(self, customer_id: str) -> Optional[Subscriber]:
        for row in self.rows.values():
            if row.stripe_customer_id == customer_id:
                return row.model_copy()
        return None

    async def get_by_stripe_subscription_id(self, subscription_id: str) -> Optional[Subscriber]:
        for row in self.rows.values():
            if row.stripe_subscription_id == subscription_id:
                return row.model_copy()
        return None

    async def create_for_user(self, user_id: str, email: str, **_) -> Subscriber:
        if user_id in self.rows:
            raise DuplicateError("Profile already exists", operation="create", table="profiles")
        return self.seed(user_id, email=email).model_copy()

    async def get_or_create(self, user_id: str, email: str) -> Subscriber:
        return await self.get_profile(user_id) or await self.create_for_user(user_id, email)

    async def update_subscription(self, subscriber: Subscriber) -> Subscriber:
        self.update_calls += 1
        stored = self.rows.get(subscriber.user_id)

        if stored is not None and self.concurrent_writes > 0:
            self.concurrent_writes -= 1
            self.rows[subscriber.user_id] = stored.model_copy(update={"version": stored.version + 1})
            stored = self.rows[subscriber.user_id]

        if stored is None or stored.version != subscriber.version:
            raise ConcurrentUpdateError(
                "changed concurrently",
                expected_version=subscriber.version,
                table="profiles",
            )

        updated = subscriber.model_copy(update={"version": stored.version + 1})
        self.rows[subscriber.user_id] = updated
        return updated.model_copy()

    async def count_profiles(self) -> int:
        return len(self.rows)

    async def count_by_tier_and_status(self) -> list[tuple[str, str, int]]:
        counts: dict[tuple[str, str], int] = {}
        for row in self.rows.values():
            key = (row.tier, row.status)
            counts[key] = counts.get(key, 0) + 1
        return [(tier, status, count) for (tier, status), count in counts.items()]


# =============================================================================
# App Fixtures
# =============================================================================

@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def app():
    """Fresh FastAPI application per test (isolated dependency overrides)."""
    from cyberhub.main import create_app
    application = create_app()
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Get synchronous test client (lifespan not run; clients are overridden)."""
    return TestClient(app)


@pytest.fixture
def profile_repo(app):
    """In-memory profile store wired into the app."""
    from cyberhub.infrastructure.db.dependencies import get_profile_repository

    repo = FakeProfileRepository()
    app.dependency_overrides[get_profile_repository] = lambda: repo
    return repo


@pytest.fixture
def resource_repo(app):
    from cyberhub.infrastructure.db.dependencies import get_resource_repository

    repo = MagicMock()
    repo.list_published = AsyncMock(return_value=[])
    repo.get_published_by_slug = AsyncMock(return_value=None)
    repo.get_by_id = AsyncMock(return_value=None)
    app.dependency_overrides[get_resource_repository] = lambda: repo
    return repo


@pytest.fixture
def bookmark_repo(app):
    from cyberhub.infrastructure.db.dependencies import get_bookmark_repository

    repo = MagicMock()
    repo.list_for_user = AsyncMock(return_value=[])
    repo.create_for_user = AsyncMock()
    repo.delete_for_user = AsyncMock(return_value=True)
    app.dependency_overrides[get_bookmark_repository] = lambda: repo
    return repo


@pytest.fixture
def webhook_event_repo(app):
    from cyberhub.infrastructure.db.dependencies import get_webhook_event_repository

    repo = MagicMock()
    repo.is_processed = AsyncMock(return_value=False)
    repo.mark_processed = AsyncMock()
    app.dependency_overrides[get_webhook_event_repository] = lambda: repo
    return repo


@pytest.fixture
def stripe_service(app, settings):
    """Mock StripeService with the real price lookup."""
    from cyberhub.api.dependencies import get_stripe_service

    service = MagicMock()
    service.tier_for_price.side_effect = (
        lambda price_id: SubscriptionTier.PRO
        if price_id and price_id == settings.stripe_pro_price_id
        else None
    )
    service.get_or_create_customer = AsyncMock()
    service.create_checkout_session = AsyncMock()
    service.create_portal_session = AsyncMock()
    service.cancel_subscription = AsyncMock()
    service.reactivate_subscription = AsyncMock()
    app.dependency_overrides[get_stripe_service] = lambda: service
    return service


# =============================================================================
# Auth Fixtures
# =============================================================================

def make_token(
    user_id: str = USER_ID,
    email: Optional[str] = "learner@example.com",
    expires_in: int = 3600,
    secret: Optional[str] = None,
) -> str:
    """HS256 token shaped like a Supabase access token."""
    settings = get_settings()
    payload = {
        "sub": user_id,
        "aud": "authenticated",
        "iss": f"{settings.supabase_url}/auth/v1",
        "exp": int(time.time()) + expires_in,
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, secret or settings.supabase_jwt_secret, algorithm="HS256")


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def token_factory():
    return make_token
