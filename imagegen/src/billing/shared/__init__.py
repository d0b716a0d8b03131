"""
Shared billing configuration, exceptions and utilities.
"""

from .config import (
    LedgerEntryType,
    PaymentProvider,
    PurchaseStatus,
)

from .exceptions import (
    BillingError,
    CircuitBreakerOpenError,
    InvalidCustomerDataError,
    InvalidWebhookPayloadError,
    LedgerUpdateError,
    PaymentError,
    ProductNotFoundError,
    ProviderError,
    PurchaseNotFoundError,
    WebhookError,
)

__all__ = [
    'LedgerEntryType',
    'PaymentProvider',
    'PurchaseStatus',
    'BillingError',
    'CircuitBreakerOpenError',
    'InvalidCustomerDataError',
    'InvalidWebhookPayloadError',
    'LedgerUpdateError',
    'PaymentError',
    'ProductNotFoundError',
    'ProviderError',
    'PurchaseNotFoundError',
    'WebhookError',
]
