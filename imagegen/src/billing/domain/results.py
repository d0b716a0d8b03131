"""
Reconciliation Results

Value objects returned by the credit grant and confirmation flows.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class CreditGrantResult:
    """
    Outcome of applying a purchase's credits.

    Attributes:
        purchase_id: Purchase that was reconciled
        user_id: Owner of the purchase
        credits_added: Credits granted by this call (0 when already processed)
        balance_after: Owner balance after the grant, when this call granted
        already_processed: True when another call completed the purchase first
    """
    purchase_id: str
    user_id: str
    credits_added: int = 0
    balance_after: Optional[int] = None
    already_processed: bool = False

    @property
    def granted(self) -> bool:
        return not self.already_processed

    def to_dict(self) -> dict:
        return {
            'purchase_id': self.purchase_id,
            'user_id': self.user_id,
            'credits_added': self.credits_added,
            'balance_after': self.balance_after,
            'already_processed': self.already_processed,
        }


class ConfirmationStatus(str, Enum):
    """Tri-state answer of the confirmation endpoint."""
    ACTIVATED = "activated"
    PENDING = "pending"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class ConfirmationResult:
    """What the confirmation endpoint tells the client."""
    status: ConfirmationStatus
    message: str
    credits_added: Optional[int] = None
    provider_status: Optional[str] = None
    billing_id: Optional[str] = None

    @property
    def activated(self) -> bool:
        return self.status == ConfirmationStatus.ACTIVATED

    @property
    def should_keep_polling(self) -> bool:
        return self.status == ConfirmationStatus.PENDING

    def to_dict(self) -> dict:
        data = {
            'activated': self.activated,
            'status': self.status.value,
            'message': self.message,
        }
        if self.credits_added is not None:
            data['credits_added'] = self.credits_added
        if self.provider_status is not None:
            data['provider_status'] = self.provider_status
        if self.billing_id is not None:
            data['billing_id'] = self.billing_id
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'ConfirmationResult':
        """Rebuild a result from the endpoint's JSON body."""
        try:
            status = ConfirmationStatus(data.get('status'))
        except ValueError:
            status = ConfirmationStatus.PENDING
        return cls(
            status=status,
            message=data.get('message', ''),
            credits_added=data.get('credits_added'),
            provider_status=data.get('provider_status'),
            billing_id=data.get('billing_id'),
        )
