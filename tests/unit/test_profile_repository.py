"""
Unit tests for ProfileRepository with a mocked AsyncSession.

Validates the compare-and-set write and the row-to-domain mapping.
"""

import pytest
from uuid import UUID
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy.exc import IntegrityError

from cyberhub.domain.subscription import Subscriber
from cyberhub.infrastructure.db.models.profile import Profile
from cyberhub.infrastructure.db.repositories.profile_repository import ProfileRepository
from cyberhub.infrastructure.exceptions import (
    ConcurrentUpdateError,
    DuplicateError,
    ValidationError,
)


USER_ID = "00000000-0000-0000-0000-000000000001"


def _result(model):
    result = MagicMock()
    result.scalar_one_or_none.return_value = model
    return result


@pytest.fixture
def session():
    mock = MagicMock()
    mock.execute = AsyncMock()
    mock.flush = AsyncMock()
    mock.refresh = AsyncMock()
    mock.delete = AsyncMock()
    mock.get = AsyncMock()
    return mock


@pytest.fixture
def repo(session):
    return ProfileRepository(session)


def _profile(**overrides) -> Profile:
    fields = dict(
        id=UUID(USER_ID),
        email="learner@example.com",
        subscription_tier="pro",
        subscription_status="active",
        version=1,
    )
    fields.update(overrides)
    return Profile(**fields)


class TestReads:
    async def test_get_profile_maps_row(self, repo, session):
        session.execute.return_value = _result(_profile(stripe_customer_id="cus_1"))

        subscriber = await repo.get_profile(USER_ID)

        assert subscriber.user_id == USER_ID
        assert subscriber.tier == "pro"
        assert subscriber.status == "active"
        assert subscriber.stripe_customer_id == "cus_1"
        assert subscriber.version == 1

    async def test_get_profile_missing(self, repo, session):
        session.execute.return_value = _result(None)
        assert await repo.get_profile(USER_ID) is None

    async def test_get_profile_invalid_id_skips_query(self, repo, session):
        assert await repo.get_profile("not-a-uuid") is None
        session.execute.assert_not_awaited()

    async def test_null_status_maps_to_empty_string(self, repo, session):
        session.execute.return_value = _result(_profile(subscription_status=None))
        subscriber = await repo.get_profile(USER_ID)
        assert subscriber.status == ""

    @pytest.mark.parametrize("stored,expected", [
        ("cancelled", "canceled"),
        ("expired", "canceled"),
        ("trial", "trialing"),
        (" Active ", "active"),
        ("mystery", "mystery"),
    ])
    async def test_legacy_status_mapped_on_read(self, repo, session, stored, expected):
        session.execute.return_value = _result(_profile(subscription_status=stored))
        subscriber = await repo.get_profile(USER_ID)
        assert subscriber.status == expected


class TestCompareAndSet:
    """Tests for update_subscription."""

    async def test_update_succeeds_at_expected_version(self, repo, session):
        session.execute.return_value = _result(_profile(version=2, subscription_status="past_due"))

        updated = await repo.update_subscription(
            Subscriber(user_id=USER_ID, tier="pro", status="past_due", version=1)
        )

        assert updated.version == 2
        assert updated.status == "past_due"
        session.execute.assert_awaited_once()

    async def test_update_conflict_raises(self, repo, session):
        session.execute.return_value = _result(None)

        with pytest.raises(ConcurrentUpdateError) as exc_info:
            await repo.update_subscription(
                Subscriber(user_id=USER_ID, tier="pro", status="active", version=4)
            )

        assert exc_info.value.details["expected_version"] == 4
        assert exc_info.value.details["table"] == "profiles"

    async def test_update_statement_guards_on_version(self, repo, session):
        session.execute.return_value = _result(_profile(version=8))

        await repo.update_subscription(Subscriber(user_id=USER_ID, version=7))

        statement = session.execute.await_args.args[0]
        compiled = statement.compile()
        assert "WHERE profiles.id = :id_1 AND profiles.version = :version_" in str(compiled)
        assert "RETURNING" in str(compiled)
        assert 7 in compiled.params.values()


class TestCreate:
    async def test_create_free_profile(self, repo, session):
        subscriber = await repo.create_for_user(USER_ID, "learner@example.com")

        assert subscriber.tier == "free"
        assert subscriber.status == "active"
        session.add.assert_called_once()
        session.flush.assert_awaited()

    async def test_create_invalid_id(self, repo):
        with pytest.raises(ValidationError):
            await repo.create_for_user("nope", "learner@example.com")

    async def test_create_duplicate(self, repo, session):
        session.flush.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))

        with pytest.raises(DuplicateError):
            await repo.create_for_user(USER_ID, "learner@example.com")


class TestDelete:
    async def test_delete_existing(self, repo, session):
        session.get.return_value = _profile()

        assert await repo.delete_for_user(USER_ID) is True
        session.delete.assert_awaited_once()

    async def test_delete_missing(self, repo, session):
        session.get.return_value = None
        assert await repo.delete_for_user(USER_ID) is False

    async def test_delete_invalid_id(self, repo, session):
        assert await repo.delete_for_user("nope") is False
        session.get.assert_not_awaited()
