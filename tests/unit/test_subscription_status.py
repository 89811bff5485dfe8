"""
Unit tests for subscription status vocabulary and the Subscriber entity.
"""

import pytest

from cyberhub.domain.subscription import (
    Subscriber,
    SubscriptionStatus,
    SubscriptionTier,
    monthly_price_for,
    normalize_status,
    status_from_provider,
)
from cyberhub.domain.entitlements import resolve_entitlements


class TestNormalizeStatus:
    """Tests for normalize_status."""

    @pytest.mark.parametrize("value,expected", [
        ("active", SubscriptionStatus.ACTIVE),
        ("trialing", SubscriptionStatus.TRIALING),
        ("past_due", SubscriptionStatus.PAST_DUE),
        ("canceled", SubscriptionStatus.CANCELED),
        ("cancelled", SubscriptionStatus.CANCELED),
        ("expired", SubscriptionStatus.CANCELED),
        ("trial", SubscriptionStatus.TRIALING),
        ("  ACTIVE ", SubscriptionStatus.ACTIVE),
        ("Cancelled", SubscriptionStatus.CANCELED),
    ])
    def test_known_spellings(self, value, expected):
        assert normalize_status(value) is expected

    @pytest.mark.parametrize("value", ["", "paused", "unpaid", "activ", None, 1])
    def test_unknown_values_return_none(self, value):
        assert normalize_status(value) is None

    def test_enum_passthrough(self):
        assert normalize_status(SubscriptionStatus.PAST_DUE) is SubscriptionStatus.PAST_DUE


class TestStatusFromProvider:
    """Tests for Stripe status translation."""

    @pytest.mark.parametrize("provider,expected", [
        ("active", SubscriptionStatus.ACTIVE),
        ("trialing", SubscriptionStatus.TRIALING),
        ("past_due", SubscriptionStatus.PAST_DUE),
        ("canceled", SubscriptionStatus.CANCELED),
        ("unpaid", SubscriptionStatus.PAST_DUE),
        ("incomplete", SubscriptionStatus.PAST_DUE),
        ("paused", SubscriptionStatus.PAST_DUE),
        ("incomplete_expired", SubscriptionStatus.CANCELED),
    ])
    def test_mapping(self, provider, expected):
        assert status_from_provider(provider) is expected

    @pytest.mark.parametrize("provider", [None, "", "something_new"])
    def test_unknown_provider_status_never_grants_access(self, provider):
        assert status_from_provider(provider) is SubscriptionStatus.PAST_DUE


class TestSubscriber:
    """Tests for the Subscriber entity."""

    def test_defaults_are_free_active(self):
        subscriber = Subscriber(user_id="u1")
        assert subscriber.tier == "free"
        assert subscriber.status == "active"
        assert subscriber.version == 1
        assert subscriber.is_paying is False

    def test_pro_trialing_is_paying(self):
        assert Subscriber(user_id="u1", tier="pro", status="trialing").is_paying is True

    @pytest.mark.parametrize("tier,status", [("pro", "trial"), ("PRO", "active"), ("pro", "ACTIVE")])
    def test_paying_agrees_with_resolver(self, tier, status):
        subscriber = Subscriber(user_id="u1", tier=tier, status=status)
        entitlements = resolve_entitlements(subscriber.tier, subscriber.status)
        assert subscriber.is_paying is False
        assert entitlements.can_access_premium_resources is False

    def test_pro_past_due_is_not_paying(self):
        assert Subscriber(user_id="u1", tier="pro", status="past_due").is_paying is False

    def test_canonical_status(self):
        assert Subscriber(user_id="u1", status="expired").canonical_status is SubscriptionStatus.CANCELED
        assert Subscriber(user_id="u1", status="???").canonical_status is None


class TestPricing:
    def test_monthly_price(self):
        assert monthly_price_for(SubscriptionTier.PRO, 2000) == 2000
        assert monthly_price_for(SubscriptionTier.FREE, 2000) == 0
