"""
Billing Endpoints Module

API routes for billing operations.

Routers:
- payments: Products, checkouts, confirmation, balance, purchases
- webhooks: AbacatePay and Stripe webhook processing

Usage:
    from imagegen.src.billing.endpoints import billing_router

    app.include_router(billing_router, prefix="/billing")
"""

from fastapi import APIRouter

from .dependencies import get_current_user, get_current_user_id
from .payments import router as payments_router
from .webhooks import router as webhooks_router

# Create main billing router
billing_router = APIRouter()

# Include all sub-routers
billing_router.include_router(payments_router)
billing_router.include_router(webhooks_router)

__all__ = [
    'billing_router',
    'payments_router',
    'webhooks_router',
    'get_current_user',
    'get_current_user_id',
]
