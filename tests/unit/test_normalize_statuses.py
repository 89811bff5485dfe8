"""
Unit tests for the status normalization script.
"""

from unittest.mock import AsyncMock, MagicMock, patch
from contextlib import asynccontextmanager

from scripts.normalize_subscription_statuses import (
    normalize_statuses,
    plan_status_rewrites,
)


ROWS = [
    ("pro", "active", 10),
    ("pro", "cancelled", 3),
    ("free", "expired", 2),
    ("pro", "trial", 1),
    ("free", "Active", 4),
    ("free", "mystery", 5),
]


class TestPlanStatusRewrites:
    def test_legacy_spellings_are_rewritten(self):
        rewrites, unknown = plan_status_rewrites(ROWS)

        assert rewrites == {
            "cancelled": "canceled",
            "expired": "canceled",
            "trial": "trialing",
            "Active": "active",
        }
        assert unknown == {"mystery": 5}

    def test_canonical_rows_need_nothing(self):
        rewrites, unknown = plan_status_rewrites([("pro", "past_due", 1), ("free", "active", 2)])
        assert rewrites == {}
        assert unknown == {}

    def test_null_status_is_reported(self):
        _, unknown = plan_status_rewrites([("free", None, 2)])
        assert unknown == {"<null>": 2}


def _db_with(repo):
    db = MagicMock()

    @asynccontextmanager
    async def session():
        yield MagicMock()

    db.session = session
    return db


class TestNormalizeStatuses:
    async def test_dry_run_writes_nothing(self):
        repo = MagicMock()
        repo.count_by_tier_and_status = AsyncMock(return_value=ROWS)
        repo.rewrite_status = AsyncMock()

        with patch("scripts.normalize_subscription_statuses.ProfileRepository", return_value=repo):
            stats = await normalize_statuses(_db_with(repo), apply=False)

        repo.rewrite_status.assert_not_awaited()
        assert stats["rows_rewritten"] == 3 + 2 + 1 + 4
        assert stats["applied"] is False

    async def test_apply_rewrites_each_value(self):
        repo = MagicMock()
        repo.count_by_tier_and_status = AsyncMock(return_value=ROWS)
        repo.rewrite_status = AsyncMock(return_value=1)

        with patch("scripts.normalize_subscription_statuses.ProfileRepository", return_value=repo):
            stats = await normalize_statuses(_db_with(repo), apply=True)

        assert repo.rewrite_status.await_count == 4
        repo.rewrite_status.assert_any_await("cancelled", "canceled")
        assert stats["rows_rewritten"] == 4
