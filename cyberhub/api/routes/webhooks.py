"""
Stripe Webhook Handler

Handles Stripe webhook events for subscription lifecycle management. This
handler is the only writer of a profile's tier and status.

Implements idempotent event processing backed by the database (survives
restarts). Every profile write is read, mutate, compare-and-set; a
concurrent change causes a re-read and a bounded retry.

Critical Events:
- checkout.session.completed: Activate Pro after payment
- customer.subscription.created/updated: Sync status, tier and period
- customer.subscription.deleted: Downgrade to free tier
- invoice.payment_succeeded: Back to active
- invoice.payment_failed: Set past_due
"""

import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from fastapi import APIRouter, Request, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from cyberhub.api.dependencies import (
    ProfileRepoDep,
    StripeServiceDep,
    WebhookEventRepoDep,
)
from cyberhub.config.settings import get_settings
from cyberhub.domain.subscription import (
    Subscriber,
    SubscriptionStatus,
    SubscriptionTier,
    status_from_provider,
)
from cyberhub.infrastructure.db.repositories.base_repository import as_uuid
from cyberhub.infrastructure.db.repositories.profile_repository import ProfileRepository
from cyberhub.infrastructure.exceptions import ConcurrentUpdateError, CyberHubError
from cyberhub.infrastructure.payments.stripe_service import (
    StripeService,
    StripeServiceError,
)


logger = logging.getLogger(__name__)

router = APIRouter()

Loader = Callable[[], Awaitable[Optional[Subscriber]]]
Mutator = Callable[[Subscriber], Optional[Subscriber]]


# =============================================================================
# Webhook Endpoint
# =============================================================================

@router.post("/webhooks/stripe")
async def stripe_webhook(
    request: Request,
    stripe_service: StripeServiceDep,
    repo: ProfileRepoDep,
    events: WebhookEventRepoDep,
):
    """
    Handle Stripe webhook events.

    Verifies signature and processes subscription lifecycle events.
    Returns 200 to acknowledge receipt; 500 on processing failure so Stripe
    retries the delivery.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    if not signature:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing Stripe signature"
        )

    try:
        event = stripe_service.verify_webhook_signature(payload, signature)
    except StripeServiceError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature"
        )

    event_id = event.get("id")
    event_type = event.get("type")

    if await events.is_processed(event_id):
        logger.info(f"Event {event_id} already processed, skipping")
        return {"status": "already_processed"}

    logger.info(f"Processing webhook event: {event_type} ({event_id})")

    max_attempts = get_settings().webhook_max_update_attempts
    data = event.get("data", {}).get("object", {})

    try:
        if event_type == "checkout.session.completed":
            await handle_checkout_completed(data, repo, max_attempts)

        elif event_type in (
            "customer.subscription.created",
            "customer.subscription.updated",
        ):
            await handle_subscription_updated(data, repo, stripe_service, max_attempts)

        elif event_type == "customer.subscription.deleted":
            await handle_subscription_deleted(data, repo, max_attempts)

        elif event_type == "invoice.payment_succeeded":
            await handle_invoice_payment_succeeded(data, repo, max_attempts)

        elif event_type == "invoice.payment_failed":
            await handle_invoice_payment_failed(data, repo, max_attempts)

        elif event_type == "customer.subscription.trial_will_end":
            logger.info(
                f"Trial ending soon for customer {data.get('customer')} "
                f"(subscription {data.get('id')})"
            )

        else:
            logger.debug(f"Unhandled event type: {event_type}")

    except (CyberHubError, SQLAlchemyError) as e:
        logger.error(f"Error processing webhook {event_type} ({event_id}): {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed"
        )

    await events.mark_processed(event_id, event_type)

    return {"status": "success"}


# =============================================================================
# Compare-and-set
# =============================================================================

async def apply_subscriber_update(
    repo: ProfileRepository,
    load: Loader,
    mutate: Mutator,
    max_attempts: int,
) -> Optional[Subscriber]:
    """
    Re-read the subscriber, apply ``mutate`` and write it back at the version
    that was read.

    ``mutate`` returns None to skip the write. Raises ConcurrentUpdateError
    once ``max_attempts`` compare-and-set writes have lost.
    """
    for attempt in range(1, max_attempts + 1):
        subscriber = await load()
        if subscriber is None:
            return None

        changed = mutate(subscriber)
        if changed is None:
            return subscriber

        try:
            return await repo.update_subscription(changed)
        except ConcurrentUpdateError:
            logger.warning(
                f"Concurrent update on profile {subscriber.user_id} "
                f"(attempt {attempt}/{max_attempts})"
            )
            if attempt == max_attempts:
                raise

    return None


def _timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _subscription_price_id(subscription_data: dict) -> Optional[str]:
    items = (subscription_data.get("items") or {}).get("data") or []
    if not items:
        return None
    return (items[0].get("price") or {}).get("id")


def _subscription_period_end(subscription_data: dict) -> Optional[datetime]:
    # Newer API versions carry the period on the subscription items
    period_end = subscription_data.get("current_period_end")
    if not period_end:
        items = (subscription_data.get("items") or {}).get("data") or []
        if items:
            period_end = items[0].get("current_period_end")
    return _timestamp(period_end)


async def _find_subscriber(
    repo: ProfileRepository,
    subscription_id: Optional[str] = None,
    customer_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> Optional[Subscriber]:
    """Locate a profile by subscription id, then customer id, then user id."""
    if subscription_id:
        subscriber = await repo.get_by_stripe_subscription_id(subscription_id)
        if subscriber:
            return subscriber
    if customer_id:
        subscriber = await repo.get_by_stripe_customer_id(customer_id)
        if subscriber:
            return subscriber
    if user_id:
        return await repo.get_profile(user_id)
    return None


# =============================================================================
# Event Handlers
# =============================================================================

async def handle_checkout_completed(
    session: dict,
    repo: ProfileRepository,
    max_attempts: int,
):
    """
    Handle successful checkout session completion.

    Links the Stripe ids to the user in ``metadata.user_id`` and grants Pro.
    """
    metadata = session.get("metadata") or {}
    user_id = metadata.get("user_id")

    if not user_id or as_uuid(user_id) is None:
        logger.error(f"Checkout completed without a valid user_id in metadata: {user_id!r}")
        return

    customer_id = session.get("customer")
    subscription_id = session.get("subscription")

    if await repo.get_profile(user_id) is None:
        email = (session.get("customer_details") or {}).get("email") or session.get("customer_email")
        if not email:
            logger.error(f"Checkout completed for unknown user {user_id} without an email")
            return
        await repo.create_for_user(user_id, email)

    def activate(subscriber: Subscriber) -> Subscriber:
        return subscriber.model_copy(update={
            "tier": SubscriptionTier.PRO.value,
            "status": SubscriptionStatus.ACTIVE.value,
            "stripe_customer_id": customer_id or subscriber.stripe_customer_id,
            "stripe_subscription_id": subscription_id or subscriber.stripe_subscription_id,
            "cancel_at_period_end": False,
        })

    updated = await apply_subscriber_update(
        repo,
        lambda: repo.get_profile(user_id),
        activate,
        max_attempts,
    )
    if updated:
        logger.info(f"Activated pro subscription for user {user_id}")


async def handle_subscription_updated(
    subscription_data: dict,
    repo: ProfileRepository,
    stripe_service: StripeService,
    max_attempts: int,
):
    """
    Sync a created or updated subscription.

    Status goes through the provider status map; the tier follows the price
    when it is a known one and otherwise stays as stored.
    """
    subscription_id = subscription_data.get("id")
    customer_id = subscription_data.get("customer")
    user_id = (subscription_data.get("metadata") or {}).get("user_id")

    new_status = status_from_provider(subscription_data.get("status"))
    price_tier = stripe_service.tier_for_price(_subscription_price_id(subscription_data))

    def sync(subscriber: Subscriber) -> Subscriber:
        return subscriber.model_copy(update={
            "status": new_status.value,
            "tier": price_tier.value if price_tier else subscriber.tier,
            "stripe_customer_id": customer_id or subscriber.stripe_customer_id,
            "stripe_subscription_id": subscription_id,
            "cancel_at_period_end": bool(subscription_data.get("cancel_at_period_end", False)),
            "current_period_end": _subscription_period_end(subscription_data),
        })

    updated = await apply_subscriber_update(
        repo,
        lambda: _find_subscriber(repo, subscription_id, customer_id, user_id),
        sync,
        max_attempts,
    )

    if updated:
        logger.info(
            f"Synced subscription {subscription_id} for user {updated.user_id}: "
            f"{updated.tier}/{updated.status}"
        )
    else:
        logger.warning(f"No profile found for subscription {subscription_id}")


async def handle_subscription_deleted(
    subscription_data: dict,
    repo: ProfileRepository,
    max_attempts: int,
):
    """
    Handle subscription cancellation/deletion.

    Downgrades the user to free/canceled.
    """
    subscription_id = subscription_data.get("id")
    customer_id = subscription_data.get("customer")

    def downgrade(subscriber: Subscriber) -> Optional[Subscriber]:
        if subscriber.stripe_subscription_id and subscriber.stripe_subscription_id != subscription_id:
            logger.info(
                f"Ignoring deletion of {subscription_id}; user {subscriber.user_id} "
                f"is on {subscriber.stripe_subscription_id}"
            )
            return None

        return subscriber.model_copy(update={
            "tier": SubscriptionTier.FREE.value,
            "status": SubscriptionStatus.CANCELED.value,
            "stripe_subscription_id": None,
            "current_period_end": None,
            "cancel_at_period_end": False,
        })

    updated = await apply_subscriber_update(
        repo,
        lambda: _find_subscriber(repo, subscription_id, customer_id),
        downgrade,
        max_attempts,
    )
    if updated:
        logger.info(f"Downgraded user {updated.user_id} to free tier")


async def _set_status_for_customer(
    invoice: dict,
    repo: ProfileRepository,
    new_status: SubscriptionStatus,
    max_attempts: int,
) -> Optional[Subscriber]:
    customer_id = invoice.get("customer")
    if not customer_id:
        return None

    def set_status(subscriber: Subscriber) -> Subscriber:
        return subscriber.model_copy(update={"status": new_status.value})

    return await apply_subscriber_update(
        repo,
        lambda: repo.get_by_stripe_customer_id(customer_id),
        set_status,
        max_attempts,
    )


async def handle_invoice_payment_succeeded(
    invoice: dict,
    repo: ProfileRepository,
    max_attempts: int,
):
    """Handle successful invoice payment (renewal or recovery)."""
    updated = await _set_status_for_customer(
        invoice, repo, SubscriptionStatus.ACTIVE, max_attempts
    )
    if updated:
        logger.info(f"Payment succeeded for customer {invoice.get('customer')}")


async def handle_invoice_payment_failed(
    invoice: dict,
    repo: ProfileRepository,
    max_attempts: int,
):
    """
    Handle failed invoice payment.

    Sets subscription to past_due status, which removes Pro entitlements.
    """
    updated = await _set_status_for_customer(
        invoice, repo, SubscriptionStatus.PAST_DUE, max_attempts
    )
    if updated:
        logger.warning(
            f"Payment failed for customer {invoice.get('customer')}, set to past_due"
        )
