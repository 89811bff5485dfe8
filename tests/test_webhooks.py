"""
Integration Tests for Webhooks (Stripe)

Verifies:
- Signature verification failure (400)
- Each lifecycle event's effect on tier/status
- Idempotency (prevent double processing)
- Compare-and-set retries and failure reporting
"""

import pytest

from cyberhub.domain.entitlements import FREE_ENTITLEMENTS, PRO_ENTITLEMENTS, resolve_entitlements
from cyberhub.infrastructure.exceptions import DatabaseError
from cyberhub.infrastructure.payments.stripe_service import StripeServiceError

from tests.conftest import USER_ID


def _event(event_id: str, event_type: str, obj: dict) -> dict:
    return {"id": event_id, "type": event_type, "data": {"object": obj}}


def _post(client, headers=None):
    return client.post(
        "/api/webhooks/stripe",
        content=b"{}",
        headers=headers if headers is not None else {"stripe-signature": "valid_sig"},
    )


@pytest.fixture
def deliver(client, stripe_service, profile_repo, webhook_event_repo):
    """Deliver one already-verified event to the webhook endpoint."""
    def _deliver(event: dict):
        stripe_service.verify_webhook_signature.return_value = event
        return _post(client)
    return _deliver


class TestSignature:

    def test_webhook_missing_signature(self, client, stripe_service, profile_repo, webhook_event_repo):
        """Webhook without signature header should fail 400."""
        response = _post(client, headers={})
        assert response.status_code == 400
        assert "Missing Stripe signature" in response.json()["detail"]

    def test_webhook_invalid_signature(self, client, stripe_service, profile_repo, webhook_event_repo):
        """Webhook with invalid signature should fail 400."""
        stripe_service.verify_webhook_signature.side_effect = StripeServiceError("Bad sig")

        response = _post(client, headers={"stripe-signature": "invalid_sig"})

        assert response.status_code == 400
        assert "Invalid signature" in response.json()["detail"]
        webhook_event_repo.mark_processed.assert_not_awaited()


class TestLifecycleEvents:

    def test_checkout_completed_grants_pro(self, deliver, profile_repo, webhook_event_repo):
        profile_repo.seed(USER_ID)

        response = deliver(_event("evt_checkout", "checkout.session.completed", {
            "id": "cs_123",
            "customer": "cus_test",
            "subscription": "sub_test",
            "metadata": {"user_id": USER_ID, "tier": "pro"},
        }))

        assert response.status_code == 200
        assert response.json() == {"status": "success"}

        row = profile_repo.rows[USER_ID]
        assert (row.tier, row.status) == ("pro", "active")
        assert row.stripe_customer_id == "cus_test"
        assert row.stripe_subscription_id == "sub_test"
        assert row.version == 2
        webhook_event_repo.mark_processed.assert_awaited_once_with(
            "evt_checkout", "checkout.session.completed"
        )

    def test_checkout_for_unknown_user_creates_profile(self, deliver, profile_repo):
        response = deliver(_event("evt_checkout_new", "checkout.session.completed", {
            "customer": "cus_new",
            "subscription": "sub_new",
            "customer_details": {"email": "new@example.com"},
            "metadata": {"user_id": USER_ID},
        }))

        assert response.status_code == 200
        row = profile_repo.rows[USER_ID]
        assert row.email == "new@example.com"
        assert row.tier == "pro"

    def test_checkout_without_user_id_is_ignored(self, deliver, profile_repo, webhook_event_repo):
        response = deliver(_event("evt_no_user", "checkout.session.completed", {"metadata": {}}))

        assert response.status_code == 200
        assert profile_repo.update_calls == 0
        webhook_event_repo.mark_processed.assert_awaited_once()

    def test_payment_failed_sets_past_due_and_drops_premium(self, deliver, profile_repo):
        profile_repo.seed(USER_ID, tier="pro", status="active", stripe_customer_id="cus_1")

        response = deliver(_event("evt_fail", "invoice.payment_failed", {"customer": "cus_1"}))

        assert response.status_code == 200
        row = profile_repo.rows[USER_ID]
        assert row.status == "past_due"
        assert row.tier == "pro"
        assert resolve_entitlements(row.tier, row.status) == FREE_ENTITLEMENTS

    def test_payment_succeeded_recovers(self, deliver, profile_repo):
        profile_repo.seed(USER_ID, tier="pro", status="past_due", stripe_customer_id="cus_1")

        deliver(_event("evt_ok", "invoice.payment_succeeded", {"customer": "cus_1"}))

        row = profile_repo.rows[USER_ID]
        assert row.status == "active"
        assert resolve_entitlements(row.tier, row.status) == PRO_ENTITLEMENTS

    def test_subscription_updated_syncs_state(self, deliver, profile_repo, settings):
        profile_repo.seed(USER_ID, tier="free", status="active", stripe_customer_id="cus_1")

        deliver(_event("evt_upd", "customer.subscription.updated", {
            "id": "sub_1",
            "customer": "cus_1",
            "status": "trialing",
            "cancel_at_period_end": True,
            "current_period_end": 1893456000,
            "items": {"data": [{"price": {"id": settings.stripe_pro_price_id}}]},
        }))

        row = profile_repo.rows[USER_ID]
        assert (row.tier, row.status) == ("pro", "trialing")
        assert row.cancel_at_period_end is True
        assert row.stripe_subscription_id == "sub_1"
        assert row.current_period_end.year == 2030

    def test_subscription_updated_unknown_price_keeps_tier(self, deliver, profile_repo):
        profile_repo.seed(USER_ID, tier="pro", status="active", stripe_subscription_id="sub_1")

        deliver(_event("evt_upd2", "customer.subscription.updated", {
            "id": "sub_1",
            "status": "unpaid",
            "items": {"data": [{"price": {"id": "price_legacy"}, "current_period_end": 1893456000}]},
        }))

        row = profile_repo.rows[USER_ID]
        assert (row.tier, row.status) == ("pro", "past_due")
        assert row.current_period_end is not None

    def test_subscription_created_finds_user_by_metadata(self, deliver, profile_repo, settings):
        profile_repo.seed(USER_ID)

        deliver(_event("evt_created", "customer.subscription.created", {
            "id": "sub_9",
            "customer": "cus_9",
            "status": "active",
            "metadata": {"user_id": USER_ID},
            "items": {"data": [{"price": {"id": settings.stripe_pro_price_id}}]},
        }))

        row = profile_repo.rows[USER_ID]
        assert (row.tier, row.status) == ("pro", "active")
        assert row.stripe_customer_id == "cus_9"

    def test_subscription_deleted_downgrades(self, deliver, profile_repo):
        profile_repo.seed(
            USER_ID, tier="pro", status="active",
            stripe_customer_id="cus_1", stripe_subscription_id="sub_1",
        )

        deliver(_event("evt_del", "customer.subscription.deleted", {"id": "sub_1", "customer": "cus_1"}))

        row = profile_repo.rows[USER_ID]
        assert (row.tier, row.status) == ("free", "canceled")
        assert row.stripe_subscription_id is None
        assert row.current_period_end is None
        assert row.stripe_customer_id == "cus_1"

    def test_deletion_of_superseded_subscription_is_ignored(self, deliver, profile_repo):
        profile_repo.seed(
            USER_ID, tier="pro", status="active",
            stripe_customer_id="cus_1", stripe_subscription_id="sub_new",
        )

        deliver(_event("evt_del_old", "customer.subscription.deleted", {"id": "sub_old", "customer": "cus_1"}))

        row = profile_repo.rows[USER_ID]
        assert (row.tier, row.status) == ("pro", "active")
        assert profile_repo.update_calls == 0

    def test_trial_will_end_is_log_only(self, deliver, profile_repo):
        profile_repo.seed(USER_ID, tier="pro", status="trialing", stripe_customer_id="cus_1")

        response = deliver(_event("evt_trial", "customer.subscription.trial_will_end", {
            "id": "sub_1", "customer": "cus_1",
        }))

        assert response.status_code == 200
        assert profile_repo.update_calls == 0

    def test_unknown_customer_is_acknowledged(self, deliver, profile_repo):
        response = deliver(_event("evt_ghost", "invoice.payment_failed", {"customer": "cus_ghost"}))
        assert response.status_code == 200


class TestIdempotencyAndRetries:

    def test_webhook_idempotency(self, deliver, profile_repo, webhook_event_repo):
        """Duplicate event should return 'already_processed' and skip logic."""
        profile_repo.seed(USER_ID, tier="pro", status="active", stripe_customer_id="cus_1")
        webhook_event_repo.is_processed.return_value = True

        response = deliver(_event("evt_dup", "invoice.payment_failed", {"customer": "cus_1"}))

        assert response.json() == {"status": "already_processed"}
        assert profile_repo.rows[USER_ID].status == "active"
        webhook_event_repo.mark_processed.assert_not_awaited()

    def test_concurrent_update_is_retried(self, deliver, profile_repo):
        profile_repo.seed(USER_ID, tier="pro", status="active", stripe_customer_id="cus_1")
        profile_repo.concurrent_writes = 2

        response = deliver(_event("evt_retry", "invoice.payment_failed", {"customer": "cus_1"}))

        assert response.status_code == 200
        assert profile_repo.update_calls == 3
        assert profile_repo.rows[USER_ID].status == "past_due"

    def test_retries_exhausted_returns_500(self, deliver, profile_repo, webhook_event_repo):
        profile_repo.seed(USER_ID, tier="pro", status="active", stripe_customer_id="cus_1")
        profile_repo.concurrent_writes = 3

        response = deliver(_event("evt_contended", "invoice.payment_failed", {"customer": "cus_1"}))

        assert response.status_code == 500
        assert profile_repo.update_calls == 3
        webhook_event_repo.mark_processed.assert_not_awaited()

    def test_store_failure_returns_500(self, deliver, profile_repo, webhook_event_repo):
        async def broken(*args, **kwargs):
            raise DatabaseError("connection lost", operation="select", table="profiles")

        profile_repo.get_by_stripe_customer_id = broken

        response = deliver(_event("evt_db", "invoice.payment_failed", {"customer": "cus_1"}))

        assert response.status_code == 500
        webhook_event_repo.mark_processed.assert_not_awaited()
