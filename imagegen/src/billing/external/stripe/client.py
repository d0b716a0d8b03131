"""
Stripe API Client Wrapper

Provides a circuit-breaker-protected interface to the Stripe API.
All Stripe API calls should go through this wrapper for resilience.
"""

import logging
from typing import Any, Callable

import stripe

from imagegen.core.conf import settings
from imagegen.src.billing.external.circuit_breaker import CircuitBreaker
from imagegen.src.billing.shared.exceptions import ProviderError

logger = logging.getLogger(__name__)


# Global circuit breaker instance for Stripe
stripe_circuit_breaker = CircuitBreaker(
    "stripe_api",
    failure_threshold=settings.CIRCUIT_BREAKER_FAILURE_THRESHOLD,
    recovery_timeout=settings.CIRCUIT_BREAKER_RECOVERY_TIMEOUT,
    expected_exceptions=(stripe.StripeError,),
)


class StripeAPIWrapper:
    """
    Safe wrapper for Stripe API calls with circuit breaker protection.

    All methods are async class methods that can be called directly:
        session = await StripeAPIWrapper.create_checkout_session(mode='payment', ...)
    """

    _circuit_breaker = stripe_circuit_breaker

    @classmethod
    def _ensure_stripe_available(cls):
        """Raise error if Stripe is not configured."""
        if not settings.STRIPE_SECRET_KEY:
            raise ProviderError(
                message="STRIPE_SECRET_KEY not configured",
                code="PROVIDER_NOT_CONFIGURED",
                provider="stripe",
            )
        stripe.api_key = settings.STRIPE_SECRET_KEY

    @classmethod
    async def safe_stripe_call(cls, func: Callable, *args, **kwargs) -> Any:
        """
        Execute a Stripe API call safely with circuit breaker protection.

        Args:
            func: Async Stripe API function
            *args: Positional arguments
            **kwargs: Keyword arguments

        Returns:
            Result from Stripe API
        """
        cls._ensure_stripe_available()
        return await cls._circuit_breaker.safe_call(func, *args, **kwargs)

    # -------------------------------------------------------------------------
    # Checkout Operations
    # -------------------------------------------------------------------------

    @classmethod
    async def create_checkout_session(cls, **kwargs) -> 'stripe.checkout.Session':
        """
        Create a Stripe Checkout session.

        Args:
            mode: 'payment' for credit packs
            line_items: Items to purchase
            success_url: Redirect URL on success
            cancel_url: Redirect URL on cancel
            metadata: Additional metadata (optional)

        Returns:
            Stripe Checkout Session object
        """
        return await cls.safe_stripe_call(stripe.checkout.Session.create_async, **kwargs)

