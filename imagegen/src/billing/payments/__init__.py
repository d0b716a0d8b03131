"""
Payments Module

Handles checkout creation and payment reconciliation.

Components:
- PaymentService: AbacatePay and Stripe checkouts
- ReconciliationService: Per-user confirmation and pending sweeps
- PurchaseStore: Purchase and product lookups
- ConfirmationPoller: Bounded client-side polling

Usage:
    from imagegen.src.billing.payments import payment_service, reconciliation_service

    result = await payment_service.create_abacatepay_checkout(user, product_id)

    confirmation = await reconciliation_service.confirm_for_user(user_id)
"""

from .store import (
    PurchaseStore,
    purchase_store,
)

from .service import (
    PaymentService,
    payment_service,
)

from .reconciliation import (
    ReconciliationService,
    reconciliation_service,
)

from .polling import (
    ConfirmationPoller,
    PollOutcome,
)

from .interfaces import (
    PaymentProcessorInterface,
    ReconciliationManagerInterface,
)

__all__ = [
    # Services
    'PaymentService',
    'payment_service',
    'ReconciliationService',
    'reconciliation_service',
    'PurchaseStore',
    'purchase_store',
    # Polling
    'ConfirmationPoller',
    'PollOutcome',
    # Interfaces
    'PaymentProcessorInterface',
    'ReconciliationManagerInterface',
]
