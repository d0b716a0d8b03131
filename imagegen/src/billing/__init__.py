"""
Billing Module

Credit purchases for image generation, paid through AbacatePay (PIX)
or Stripe (card), and the reconciliation that turns a confirmed payment
into credits exactly once.

Submodules:
- shared: Configuration, exceptions, cache utilities, webhook lock
- domain: Persistence models and result objects
- external: Payment provider integrations (AbacatePay, Stripe)
- credits: Credit grants and balances
- payments: Checkouts, confirmation, pending sweeps, polling
- endpoints: API routes

Usage:
    from imagegen.src.billing import credit_manager, reconciliation_service

    result = await credit_manager.apply_purchase_credit(purchase_id)
    confirmation = await reconciliation_service.confirm_for_user(user_id)
"""

from .shared import (
    BillingError,
    LedgerUpdateError,
    PaymentError,
    PaymentProvider,
    PurchaseNotFoundError,
    PurchaseStatus,
    WebhookError,
)

from .domain import (
    ConfirmationResult,
    ConfirmationStatus,
    CreditGrantResult,
)

from .credits import (
    CreditManager,
    credit_manager,
)

from .payments import (
    payment_service,
    purchase_store,
    reconciliation_service,
)

__all__ = [
    # Shared
    'BillingError',
    'LedgerUpdateError',
    'PaymentError',
    'PaymentProvider',
    'PurchaseNotFoundError',
    'PurchaseStatus',
    'WebhookError',
    # Domain
    'ConfirmationResult',
    'ConfirmationStatus',
    'CreditGrantResult',
    # Credits
    'CreditManager',
    'credit_manager',
    # Payments
    'payment_service',
    'purchase_store',
    'reconciliation_service',
]
