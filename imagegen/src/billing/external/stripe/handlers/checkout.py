"""
Checkout Session Webhook Handler

Handles checkout.session.completed and checkout.session.async_payment_succeeded.
A paid session grants its purchase's credits through the credit manager,
the same exactly-once path used by AbacatePay.
"""

import logging
from typing import Any, Dict, Optional

from imagegen.src.billing.credits.manager import credit_manager
from imagegen.src.billing.domain.models import Purchase
from imagegen.src.billing.payments.store import purchase_store
from imagegen.src.billing.shared.config import PaymentProvider

logger = logging.getLogger(__name__)

PAID_SESSION_STATUSES = ('paid', 'no_payment_required')


class CheckoutHandler:
    """
    Handler for Stripe Checkout session webhook events.

    Handles:
    - checkout.session.completed: Payment finished (cards are paid immediately)
    - checkout.session.async_payment_succeeded: Delayed payment methods
    """

    @classmethod
    async def handle_checkout_completed(cls, event) -> None:
        """
        Handle a completed checkout session.

        Args:
            event: Stripe event object
        """
        session = event.data.object.to_dict()

        session_id = session.get('id')
        payment_status = session.get('payment_status')
        metadata = session.get('metadata') or {}

        logger.info(
            f"[CHECKOUT] Processing completed checkout: session_id={session_id}, payment_status={payment_status}"
        )

        if payment_status not in PAID_SESSION_STATUSES:
            logger.info(f"[CHECKOUT] Session {session_id} not paid yet ({payment_status}), waiting")
            return

        purchase = await cls._resolve_purchase(session_id, metadata)
        if purchase is None:
            logger.warning(f"[CHECKOUT] No purchase for session {session_id} and metadata incomplete")
            return

        result = await credit_manager.apply_purchase_credit(purchase.id)
        if result.already_processed:
            logger.info(f"[CHECKOUT] Purchase {purchase.id} already processed")

    @classmethod
    async def _resolve_purchase(cls, session_id: Optional[str], metadata: Dict[str, Any]) -> Optional[Purchase]:
        """Purchase by metadata.purchase_id, then by session id, else recorded from metadata."""
        purchase_id = metadata.get('purchase_id')
        if purchase_id:
            purchase = await purchase_store.get_by_id(purchase_id)
            if purchase is not None:
                return purchase

        if session_id:
            purchase = await purchase_store.get_by_stripe_session(session_id)
            if purchase is not None:
                return purchase

        user_id = metadata.get('user_id')
        product_id = metadata.get('product_id')
        if not user_id or not product_id:
            return None

        product = await purchase_store.get_product(product_id)
        await credit_manager.ensure_profile(user_id)

        logger.info(f"[CHECKOUT] Recording missing purchase for session {session_id} from metadata")
        return await purchase_store.create_pending(
            user_id=user_id,
            product=product,
            provider=PaymentProvider.STRIPE,
            stripe_session_id=session_id,
            purchase_id=purchase_id,
        )
