"""
Payment Interfaces

Protocol definitions for checkout and reconciliation services.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from imagegen.common.security.jwt import TokenPayload
from imagegen.src.billing.domain.results import ConfirmationResult


class PaymentProcessorInterface(ABC):
    """Interface for checkout creation."""

    @abstractmethod
    async def create_abacatepay_checkout(
        self,
        user: TokenPayload,
        product_id: str,
        cellphone: Optional[str] = None,
        tax_id: Optional[str] = None,
    ) -> Dict:
        """Create a PIX billing and its pending purchase."""
        pass

    @abstractmethod
    async def create_stripe_checkout(self, user: TokenPayload, product_id: str) -> Dict:
        """Create a Stripe Checkout session and its pending purchase."""
        pass


class ReconciliationManagerInterface(ABC):
    """Interface for payment reconciliation services."""

    @abstractmethod
    async def confirm_for_user(self, user_id: str, billing_id: Optional[str] = None) -> ConfirmationResult:
        """Check a user's purchase against the provider and grant if paid."""
        pass

    @abstractmethod
    async def reconcile_pending_purchases(self, hours: Optional[int] = None) -> Dict:
        """Sweep recent pending purchases and grant those the provider reports paid."""
        pass
