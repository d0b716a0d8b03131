"""AbacatePay (PIX) integration: API client, status resolver and webhooks."""

from .client import AbacatePayClient, abacatepay_client
from .status import ProviderStatus, StatusResolver, status_resolver
from .webhooks import AbacatePayWebhookService, abacatepay_webhook_service

__all__ = [
    'AbacatePayClient',
    'abacatepay_client',
    'ProviderStatus',
    'StatusResolver',
    'status_resolver',
    'AbacatePayWebhookService',
    'abacatepay_webhook_service',
]
