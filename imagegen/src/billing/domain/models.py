"""
Billing persistence models.

Tables:
- profiles: one row per user, holds the credit balance and plan fields
- products: credit packs and unlimited plans offered for sale
- purchases: one row per checkout attempt
- credit_ledger: audit trail of balance changes made by billing
- webhook_events: delivery log used to deduplicate provider webhooks
"""

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from imagegen.common.model import Base, TimeZone, id_key
from imagegen.database.db import uuid4_str
from imagegen.src.billing.shared.config import PaymentProvider, PurchaseStatus


class Profile(Base):
    """User profile row keyed by the auth provider's user id."""

    __tablename__ = 'profiles'
    __table_args__ = (sa.CheckConstraint('token_balance >= 0', name='ck_profiles_token_balance_non_negative'),)

    id: Mapped[id_key]

    email: Mapped[Optional[str]] = mapped_column(sa.String(255), default=None, comment='Contact email')
    token_balance: Mapped[int] = mapped_column(
        sa.Integer, default=0, server_default='0', comment='Available image generation credits'
    )

    # Unlimited plan state
    subscription_plan: Mapped[Optional[str]] = mapped_column(sa.String(100), default=None, comment='Active plan name')
    subscription_status: Mapped[Optional[str]] = mapped_column(sa.String(20), default=None, comment='Plan status')
    subscription_end_date: Mapped[Optional[datetime]] = mapped_column(TimeZone, default=None, comment='Plan end')
    monthly_usage: Mapped[int] = mapped_column(
        sa.Integer, default=0, server_default='0', comment='Generations in the current plan period'
    )


class Product(Base):
    """Read-only catalog entry."""

    __tablename__ = 'products'

    name: Mapped[str] = mapped_column(sa.String(100), comment='Display name')
    tokens_granted: Mapped[int] = mapped_column(sa.Integer, comment='Credits granted on payment')
    price_in_cents: Mapped[int] = mapped_column(sa.Integer, comment='Price in minor currency units')

    id: Mapped[id_key] = mapped_column(default_factory=uuid4_str)
    is_unlimited: Mapped[bool] = mapped_column(sa.Boolean, default=False, comment='Unlimited monthly plan')
    active: Mapped[bool] = mapped_column(sa.Boolean, default=True, comment='Offered for sale')


class Purchase(Base):
    """
    One payment attempt.

    Created pending at checkout. The status moves pending -> completed at
    most once, in the same transaction that credits the owner's balance.
    """

    __tablename__ = 'purchases'
    __table_args__ = (sa.Index('ix_purchases_user_status', 'user_id', 'status'),)

    user_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey('profiles.id'), index=True, comment='Owner'
    )
    product_id: Mapped[str] = mapped_column(sa.String(36), sa.ForeignKey('products.id'), comment='Product bought')
    amount_paid: Mapped[int] = mapped_column(sa.Integer, comment='Amount in minor currency units')
    tokens_granted: Mapped[int] = mapped_column(sa.Integer, comment='Credits to grant on payment')

    id: Mapped[id_key] = mapped_column(default_factory=uuid4_str)
    provider: Mapped[str] = mapped_column(
        sa.String(20), default=PaymentProvider.ABACATEPAY.value, comment='abacatepay or stripe'
    )
    status: Mapped[str] = mapped_column(
        sa.String(20), default=PurchaseStatus.PENDING.value, index=True, comment='pending, completed, failed'
    )

    # Provider references
    abacate_billing_id: Mapped[Optional[str]] = mapped_column(
        sa.String(255), default=None, index=True, comment='AbacatePay billing id'
    )
    stripe_session_id: Mapped[Optional[str]] = mapped_column(
        sa.String(255), default=None, unique=True, comment='Stripe Checkout session id'
    )
    checkout_url: Mapped[Optional[str]] = mapped_column(sa.Text, default=None, comment='Hosted checkout / PIX url')

    completed_at: Mapped[Optional[datetime]] = mapped_column(TimeZone, default=None, comment='When credits were granted')

    @property
    def is_completed(self) -> bool:
        return self.status == PurchaseStatus.COMPLETED.value


class CreditLedgerEntry(Base):
    """Balance change made by billing. purchase_id is unique so a purchase is granted once."""

    __tablename__ = 'credit_ledger'

    user_id: Mapped[str] = mapped_column(sa.String(36), sa.ForeignKey('profiles.id'), index=True)
    amount: Mapped[int] = mapped_column(sa.Integer, comment='Signed credit delta')
    balance_after: Mapped[int] = mapped_column(sa.Integer, comment='Balance after this entry')
    type: Mapped[str] = mapped_column(sa.String(30), comment='Entry type')

    id: Mapped[id_key] = mapped_column(default_factory=uuid4_str)
    purchase_id: Mapped[Optional[str]] = mapped_column(
        sa.String(36), sa.ForeignKey('purchases.id'), default=None, unique=True
    )
    description: Mapped[Optional[str]] = mapped_column(sa.String(255), default=None)


class WebhookEvent(Base):
    """Provider webhook delivery, keyed by the provider event id or a digest of the body."""

    __tablename__ = 'webhook_events'

    id: Mapped[str] = mapped_column(sa.String(255), primary_key=True, comment='Event id')
    provider: Mapped[str] = mapped_column(sa.String(20), comment='abacatepay or stripe')
    event_type: Mapped[str] = mapped_column(sa.String(100))

    status: Mapped[str] = mapped_column(sa.String(20), default='processing', comment='processing, completed, failed')
    error_message: Mapped[Optional[str]] = mapped_column(sa.Text, default=None)
    completed_at: Mapped[Optional[datetime]] = mapped_column(TimeZone, default=None)
