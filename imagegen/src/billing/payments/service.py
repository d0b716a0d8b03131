"""
Payment Service

Creates checkouts for credit packs and unlimited plans:
- AbacatePay PIX billings
- Stripe Checkout sessions (card)

Each checkout records a pending purchase. Credits are granted later by
the webhook or the confirmation flow, never here.
"""

import logging
import re
from typing import Any, Dict, Optional, Tuple

import stripe

from imagegen.common.security.jwt import TokenPayload
from imagegen.core.conf import settings
from imagegen.database.db import uuid4_str
from imagegen.src.billing.credits.manager import credit_manager
from imagegen.src.billing.domain.models import Product
from imagegen.src.billing.external.abacatepay.client import abacatepay_client
from imagegen.src.billing.external.stripe.client import StripeAPIWrapper
from imagegen.src.billing.shared.config import (
    CREDIT_PACK_DESCRIPTION,
    ONE_TIME_FREQUENCY,
    PAYMENT_METHODS,
    RECURRING_FREQUENCY,
    SUBSCRIPTION_DESCRIPTION,
    PaymentProvider,
)
from imagegen.src.billing.shared.exceptions import InvalidCustomerDataError, PaymentError
from .interfaces import PaymentProcessorInterface
from .store import purchase_store

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r'\D')

CELLPHONE_LENGTHS: Tuple[int, ...] = tuple(range(10, 15))
TAX_ID_LENGTHS: Tuple[int, ...] = (11, 14)  # CPF, CNPJ


def normalize_digits(value: Optional[str], field: str, allowed_lengths: Tuple[int, ...]) -> Optional[str]:
    """
    Reduce a phone number or tax id to its digits and check the length.

    Returns:
        The digits, or None when no value was given

    Raises:
        InvalidCustomerDataError: If the digit count is not allowed
    """
    if value is None or not value.strip():
        return None

    digits = _NON_DIGITS.sub('', value)
    if len(digits) not in allowed_lengths:
        raise InvalidCustomerDataError(f"Invalid {field}", field=field)
    return digits


def product_description(product: Product) -> str:
    if product.is_unlimited:
        return SUBSCRIPTION_DESCRIPTION.format(name=product.name)
    return CREDIT_PACK_DESCRIPTION.format(tokens=product.tokens_granted)


class PaymentService(PaymentProcessorInterface):
    """
    Handles checkout creation.

    Flow:
    1. Load the product
    2. Make sure the buyer has a profile
    3. Create the provider checkout, passing our purchase id along
    4. Record the pending purchase
    5. Webhook or confirmation grants credits

    Usage:
        from imagegen.src.billing.payments import payment_service

        result = await payment_service.create_abacatepay_checkout(user, product_id)
        # Returns {'checkout_url': ..., 'billing_id': ..., 'purchase_id': ...}
    """

    # =========================================================================
    # ABACATEPAY
    # =========================================================================

    def build_billing_payload(
        self,
        *,
        purchase_id: str,
        user: TokenPayload,
        product: Product,
        cellphone: Optional[str] = None,
        tax_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Body for AbacatePay `POST /billing/create`."""
        return_url = f"{settings.FRONTEND_URL}{settings.ABACATEPAY_RETURN_PATH}"

        customer: Dict[str, Any] = {'email': user.email}
        if cellphone:
            customer['cellphone'] = cellphone
        if tax_id:
            customer['taxId'] = tax_id

        return {
            'frequency': RECURRING_FREQUENCY if product.is_unlimited else ONE_TIME_FREQUENCY,
            'methods': list(PAYMENT_METHODS),
            'products': [
                {
                    'externalId': product.id,
                    'name': product.name,
                    'description': product_description(product),
                    'quantity': 1,
                    'price': product.price_in_cents,
                }
            ],
            'returnUrl': return_url,
            'completionUrl': return_url,
            'externalId': purchase_id,
            'customer': customer,
            'metadata': {
                'user_id': user.user_id,
                'product_id': product.id,
                'tokens_granted': product.tokens_granted,
            },
        }

    async def create_abacatepay_checkout(
        self,
        user: TokenPayload,
        product_id: str,
        cellphone: Optional[str] = None,
        tax_id: Optional[str] = None,
    ) -> Dict:
        """
        Create an AbacatePay PIX billing for a product.

        Args:
            user: Authenticated buyer
            product_id: Product to buy
            cellphone: Buyer phone, any formatting (10-14 digits)
            tax_id: Buyer CPF or CNPJ, any formatting

        Returns:
            Dict with checkout_url, billing_id, purchase_id

        Raises:
            ProductNotFoundError: Unknown or inactive product
            InvalidCustomerDataError: Bad phone or tax id
            PaymentError: Provider rejected the billing
        """
        product = await purchase_store.get_product(product_id)
        cellphone = normalize_digits(cellphone, 'cellphone', CELLPHONE_LENGTHS)
        tax_id = normalize_digits(tax_id, 'tax_id', TAX_ID_LENGTHS)

        await credit_manager.ensure_profile(user.user_id, user.email)

        purchase_id = uuid4_str()
        logger.info(f"[CHECKOUT] Creating AbacatePay billing for {user.user_id}, product={product.id}")

        billing = await abacatepay_client.create_billing(
            self.build_billing_payload(
                purchase_id=purchase_id,
                user=user,
                product=product,
                cellphone=cellphone,
                tax_id=tax_id,
            )
        )

        await purchase_store.create_pending(
            purchase_id=purchase_id,
            user_id=user.user_id,
            product=product,
            provider=PaymentProvider.ABACATEPAY,
            abacate_billing_id=billing['id'],
            checkout_url=billing['url'],
        )

        return {
            'checkout_url': billing['url'],
            'billing_id': billing['id'],
            'purchase_id': purchase_id,
        }

    # =========================================================================
    # STRIPE
    # =========================================================================

    async def create_stripe_checkout(self, user: TokenPayload, product_id: str) -> Dict:
        """
        Create a Stripe Checkout session for a product.

        Args:
            user: Authenticated buyer
            product_id: Product to buy

        Returns:
            Dict with url, session_id, purchase_id

        Raises:
            ProductNotFoundError: Unknown or inactive product
            PaymentError: Stripe rejected the session
        """
        product = await purchase_store.get_product(product_id)
        await credit_manager.ensure_profile(user.user_id, user.email)

        purchase_id = uuid4_str()
        logger.info(f"[CHECKOUT] Creating Stripe session for {user.user_id}, product={product.id}")

        try:
            session = await StripeAPIWrapper.create_checkout_session(
                payment_method_types=['card'],
                mode='payment',
                line_items=[{
                    'price_data': {
                        'currency': settings.STRIPE_CURRENCY,
                        'product_data': {
                            'name': product.name,
                            'description': product_description(product),
                        },
                        'unit_amount': product.price_in_cents,
                    },
                    'quantity': 1,
                }],
                success_url=f"{settings.FRONTEND_URL}{settings.STRIPE_SUCCESS_PATH}",
                cancel_url=f"{settings.FRONTEND_URL}{settings.STRIPE_CANCEL_PATH}",
                customer_email=user.email,
                client_reference_id=user.user_id,
                metadata={
                    'user_id': user.user_id,
                    'product_id': product.id,
                    'tokens_granted': str(product.tokens_granted),
                    'purchase_id': purchase_id,
                },
                idempotency_key=purchase_id,
            )
        except stripe.StripeError as e:
            logger.error(f"[CHECKOUT] Stripe session creation failed: {e}")
            raise PaymentError(
                message="Failed to create checkout session",
                provider=PaymentProvider.STRIPE.value,
                provider_error=str(e),
            ) from e

        await purchase_store.create_pending(
            purchase_id=purchase_id,
            user_id=user.user_id,
            product=product,
            provider=PaymentProvider.STRIPE,
            stripe_session_id=session.id,
            checkout_url=session.url,
        )

        logger.info(f"[CHECKOUT] Created checkout session {session.id} for purchase {purchase_id}")
        return {'url': session.url, 'session_id': session.id, 'purchase_id': purchase_id}


# Global instance
payment_service = PaymentService()
