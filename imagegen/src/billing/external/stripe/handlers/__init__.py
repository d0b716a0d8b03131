"""Stripe webhook event handlers."""

from .checkout import CheckoutHandler

__all__ = ['CheckoutHandler']
