"""
Stripe Payment Service

Infrastructure service for Stripe payment processing: customers, hosted
checkout, the billing portal, subscription changes and webhook signature
verification.

The service wraps an explicit ``stripe.StripeClient`` built from settings
at startup instead of mutating the module-level ``stripe.api_key``.
"""

import json
import logging
from typing import Any, Optional

import stripe
from stripe import StripeError

from cyberhub.config.settings import Settings
from cyberhub.domain.subscription import SubscriptionTier


logger = logging.getLogger(__name__)


class StripeServiceError(Exception):
    """Base exception for Stripe service errors."""
    pass


def _user_message(error: StripeError) -> str:
    return error.user_message or str(error)


class StripeService:
    """
    Stripe payment processing service.

    Args:
        client: Configured Stripe client
        webhook_secret: Endpoint secret for signature verification
        pro_price_id: Stripe Price ID of the Pro monthly plan
    """

    def __init__(
        self,
        client: stripe.StripeClient,
        webhook_secret: Optional[str] = None,
        pro_price_id: Optional[str] = None,
    ):
        self._client = client
        self._webhook_secret = webhook_secret
        self._price_map = {SubscriptionTier.PRO: pro_price_id}

    @classmethod
    def from_settings(cls, settings: Settings) -> "StripeService":
        """Build the service from application settings."""
        if not settings.stripe_secret_key:
            raise StripeServiceError("STRIPE_SECRET_KEY is not configured")

        return cls(
            client=stripe.StripeClient(settings.stripe_secret_key),
            webhook_secret=settings.stripe_webhook_secret,
            pro_price_id=settings.stripe_pro_price_id,
        )

    def _get_price_id(self, tier: SubscriptionTier) -> str:
        """Get Stripe Price ID for a purchasable tier."""
        price_id = self._price_map.get(tier)

        if not price_id:
            raise StripeServiceError(f"No price configured for {tier.value}")

        return price_id

    def tier_for_price(self, price_id: Optional[str]) -> Optional[SubscriptionTier]:
        """Reverse lookup of a Stripe Price ID; None when it is not ours."""
        if not price_id:
            return None
        for tier, configured in self._price_map.items():
            if configured and configured == price_id:
                return tier
        return None

    # =========================================================================
    # Customer Management
    # =========================================================================

    async def create_customer(
        self,
        user_id: str,
        email: str,
        name: Optional[str] = None,
    ) -> stripe.Customer:
        """
        Create a new Stripe customer.

        Args:
            user_id: Internal user ID (stored in metadata)
            email: Customer email for receipts
            name: Optional customer name
        """
        params: dict[str, Any] = {
            "email": email,
            "metadata": {"user_id": user_id, "source": "cyberhub"},
        }
        if name:
            params["name"] = name

        try:
            customer = self._client.customers.create(params=params)
            logger.info(f"Created Stripe customer {customer.id} for user {user_id}")
            return customer

        except StripeError as e:
            logger.error(f"Failed to create Stripe customer: {e}")
            raise StripeServiceError(f"Failed to create customer: {_user_message(e)}")

    async def get_or_create_customer(
        self,
        user_id: str,
        email: str,
        existing_customer_id: Optional[str] = None,
    ) -> stripe.Customer:
        """Get existing customer or create new one."""
        if existing_customer_id:
            try:
                customer = self._client.customers.retrieve(existing_customer_id)
                if not getattr(customer, "deleted", False):
                    return customer
            except StripeError:
                logger.warning(f"Customer {existing_customer_id} not found, creating new")

        return await self.create_customer(user_id, email)

    # =========================================================================
    # Checkout Session
    # =========================================================================

    async def create_checkout_session(
        self,
        customer_id: str,
        tier: SubscriptionTier,
        success_url: str,
        cancel_url: str,
        user_id: str,
    ) -> stripe.checkout.Session:
        """
        Create a hosted Checkout Session for a subscription.

        ``metadata.user_id`` is what the webhook handler uses to find the
        profile when the session completes.
        """
        price_id = self._get_price_id(tier)

        try:
            session = self._client.checkout.sessions.create(params={
                "customer": customer_id,
                "payment_method_types": ["card"],
                "line_items": [{"price": price_id, "quantity": 1}],
                "mode": "subscription",
                "success_url": f"{success_url}?session_id={{CHECKOUT_SESSION_ID}}",
                "cancel_url": cancel_url,
                "allow_promotion_codes": True,
                "metadata": {"user_id": user_id, "tier": tier.value},
                "subscription_data": {
                    "metadata": {"user_id": user_id, "tier": tier.value},
                },
            })

            logger.info(
                f"Created checkout session {session.id} for user {user_id}, tier={tier.value}"
            )
            return session

        except StripeError as e:
            logger.error(f"Failed to create checkout session: {e}")
            raise StripeServiceError(f"Failed to create checkout: {_user_message(e)}")

    # =========================================================================
    # Customer Portal
    # =========================================================================

    async def create_portal_session(
        self,
        customer_id: str,
        return_url: str,
    ) -> stripe.billing_portal.Session:
        """Create a Billing Portal session for self-service management."""
        try:
            session = self._client.billing_portal.sessions.create(params={
                "customer": customer_id,
                "return_url": return_url,
            })

            logger.info(f"Created portal session for customer {customer_id}")
            return session

        except StripeError as e:
            logger.error(f"Failed to create portal session: {e}")
            raise StripeServiceError(f"Failed to create portal: {_user_message(e)}")

    # =========================================================================
    # Subscription Changes
    # =========================================================================

    async def cancel_subscription(
        self,
        subscription_id: str,
        immediately: bool = False,
    ) -> stripe.Subscription:
        """
        Cancel a subscription now or at the end of the billing period.

        The resulting tier/status is written by the webhook handler, not here.
        """
        try:
            if immediately:
                subscription = self._client.subscriptions.cancel(subscription_id)
            else:
                subscription = self._client.subscriptions.update(
                    subscription_id,
                    params={"cancel_at_period_end": True},
                )

            logger.info(f"Cancelled subscription {subscription_id}, immediately={immediately}")
            return subscription

        except StripeError as e:
            logger.error(f"Failed to cancel subscription: {e}")
            raise StripeServiceError(f"Failed to cancel: {_user_message(e)}")

    async def reactivate_subscription(self, subscription_id: str) -> stripe.Subscription:
        """Undo a pending end-of-period cancellation."""
        try:
            subscription = self._client.subscriptions.update(
                subscription_id,
                params={"cancel_at_period_end": False},
            )
            logger.info(f"Reactivated subscription {subscription_id}")
            return subscription

        except StripeError as e:
            logger.error(f"Failed to reactivate subscription: {e}")
            raise StripeServiceError(f"Failed to reactivate: {_user_message(e)}")

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    def verify_webhook_signature(self, payload: bytes, signature: str) -> dict:
        """
        Verify the Stripe-Signature header and decode the event.

        Returns:
            The event as a plain dict

        Raises:
            StripeServiceError if the secret is missing or the signature or
            payload is invalid
        """
        if not self._webhook_secret:
            raise StripeServiceError("Webhook secret is not configured")

        try:
            self._client.construct_event(payload, signature, self._webhook_secret)
        except ValueError as e:
            raise StripeServiceError(f"Invalid payload: {e}")
        except stripe.SignatureVerificationError as e:
            raise StripeServiceError(f"Invalid signature: {e}")

        return json.loads(payload)
