"""
Stripe Webhook Service

Central dispatcher for Stripe webhook events.
Handles signature verification, deduplication, and routing to handlers.
"""

import logging
from typing import Any, Dict, Union

import stripe
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from imagegen.core.conf import settings
from imagegen.src.billing.shared.config import PaymentProvider
from imagegen.src.billing.shared.webhook_lock import WebhookLock

logger = logging.getLogger(__name__)


class StripeWebhookService:
    """
    Central service for processing Stripe webhooks.

    Responsibilities:
    - Verify webhook signatures
    - Deduplicate events by event id
    - Route events to appropriate handlers
    - Handle errors and mark event status

    Usage:
        stripe_webhook_service = StripeWebhookService()
        result = await stripe_webhook_service.process_stripe_webhook(request)
    """

    async def process_stripe_webhook(self, request: Request) -> Union[Dict[str, Any], JSONResponse]:
        """
        Process an incoming Stripe webhook.

        Args:
            request: FastAPI Request object

        Returns:
            Dict with processing status, or a 500 JSONResponse when processing
            failed and Stripe should redeliver

        Raises:
            HTTPException: If signature invalid or secret not configured
        """
        event = None

        try:
            payload = await request.body()
            sig_header = request.headers.get('stripe-signature')

            if not sig_header:
                raise HTTPException(status_code=400, detail="Missing stripe-signature header")

            if not settings.STRIPE_WEBHOOK_SECRET:
                logger.error("[WEBHOOK] STRIPE_WEBHOOK_SECRET not configured")
                raise HTTPException(status_code=500, detail="Webhook secret not configured")

            try:
                event = stripe.Webhook.construct_event(
                    payload,
                    sig_header,
                    settings.STRIPE_WEBHOOK_SECRET,
                    tolerance=settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
                )
            except stripe.SignatureVerificationError as e:
                logger.warning(f"[WEBHOOK] Invalid Stripe signature: {e}")
                raise HTTPException(status_code=400, detail="Invalid webhook signature")
            except ValueError as e:
                logger.warning(f"[WEBHOOK] Invalid Stripe payload: {e}")
                raise HTTPException(status_code=400, detail="Invalid payload")

            can_process, reason = await WebhookLock.check_and_mark_webhook_processing(
                event.id,
                event.type,
                provider=PaymentProvider.STRIPE.value,
            )

            if not can_process:
                logger.info(f"[WEBHOOK] Skipping event {event.id}: {reason}")
                return {
                    'status': 'success',
                    'message': f'Event already processed or in progress: {reason}'
                }

            logger.info(f"[WEBHOOK] Processing event type: {event.type} (ID: {event.id})")

            await self._route_event(event)

            await WebhookLock.mark_webhook_completed(event.id)

            return {'status': 'success', 'event_id': event.id}

        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"[WEBHOOK] Error processing Stripe webhook: {e}", exc_info=True)

            error_message = f"{type(e).__name__}: {str(e)[:500]}"

            if event is not None:
                await WebhookLock.mark_webhook_failed(event.id, error_message)

            # Failed events are let through again by WebhookLock when Stripe redelivers
            return JSONResponse(
                status_code=500,
                content={
                    'status': 'error',
                    'error': 'processing_failed',
                    'message': 'Webhook processing failed, retry later',
                },
            )

    async def _route_event(self, event) -> None:
        """
        Route event to the appropriate handler.

        Args:
            event: Stripe event object
        """
        from .handlers.checkout import CheckoutHandler

        event_type = event.type

        if event_type in ('checkout.session.completed', 'checkout.session.async_payment_succeeded'):
            logger.info(f"[WEBHOOK] Handling {event_type}")
            await CheckoutHandler.handle_checkout_completed(event)

        else:
            logger.info(f"[WEBHOOK] Unhandled event type: {event_type}")


# Global instance
stripe_webhook_service = StripeWebhookService()
