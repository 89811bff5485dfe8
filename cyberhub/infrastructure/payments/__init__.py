"""
Payments Infrastructure Module

Stripe payment processing and subscription management services.
"""

from cyberhub.infrastructure.payments.stripe_service import (
    StripeService,
    StripeServiceError,
)

__all__ = ["StripeService", "StripeServiceError"]
