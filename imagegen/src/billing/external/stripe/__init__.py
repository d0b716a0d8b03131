"""Stripe checkout and webhook integration."""

from .client import StripeAPIWrapper
from .webhooks import StripeWebhookService, stripe_webhook_service

__all__ = ['StripeAPIWrapper', 'StripeWebhookService', 'stripe_webhook_service']
