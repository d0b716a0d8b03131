"""Billing persistence models and result objects."""

from .models import CreditLedgerEntry, Product, Profile, Purchase, WebhookEvent
from .results import ConfirmationResult, ConfirmationStatus, CreditGrantResult

__all__ = [
    'CreditLedgerEntry',
    'Product',
    'Profile',
    'Purchase',
    'WebhookEvent',
    'ConfirmationResult',
    'ConfirmationStatus',
    'CreditGrantResult',
]
