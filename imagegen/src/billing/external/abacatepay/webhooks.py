"""
AbacatePay Webhook Service

Push path of payment reconciliation:
authenticate -> parse -> extract identifiers -> resolve purchase ->
grant credits exactly once.

Deliveries are answered with small JSON bodies the provider understands:
401 unauthenticated, 400 malformed, 404 unknown purchase, 500 when the
grant could not be committed (the provider redelivers), 200 otherwise.
"""

import hashlib
import logging
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from imagegen.core.conf import settings
from imagegen.src.billing.credits.manager import credit_manager
from imagegen.src.billing.payments.store import purchase_store
from imagegen.src.billing.shared.config import PaymentProvider
from imagegen.src.billing.shared.exceptions import InvalidWebhookPayloadError, PurchaseNotFoundError
from imagegen.src.billing.shared.webhook_lock import WebhookLock
from .payloads import parse_webhook_payload
from .signature import verify_webhook_request

logger = logging.getLogger(__name__)


def _received(message: str = None) -> JSONResponse:
    content = {'received': True}
    if message:
        content['message'] = message
    return JSONResponse(status_code=200, content=content)


def _error(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={'error': error})


class AbacatePayWebhookService:
    """
    Processes AbacatePay webhook deliveries.

    Usage:
        abacatepay_webhook_service = AbacatePayWebhookService()
        response = await abacatepay_webhook_service.process_webhook(request)
    """

    async def process_webhook(self, request: Request) -> JSONResponse:
        """
        Process an incoming AbacatePay webhook.

        Args:
            request: FastAPI Request object

        Returns:
            JSONResponse with the status code the provider should see
        """
        raw_body = await request.body()

        if not verify_webhook_request(
            raw_body,
            request.query_params,
            request.headers,
            settings.ABACATEPAY_WEBHOOK_SECRET,
        ):
            logger.warning("[WEBHOOK] Rejected AbacatePay delivery: invalid secret and signature")
            return _error(401, 'Unauthorized')

        try:
            payload = parse_webhook_payload(raw_body)
        except InvalidWebhookPayloadError:
            logger.warning("[WEBHOOK] Rejected AbacatePay delivery: invalid payload")
            return _error(400, 'Invalid payload')

        logger.info(f"[WEBHOOK] AbacatePay event received: {payload.event}")

        if not payload.is_payment_confirmed:
            logger.info(f"[WEBHOOK] Unhandled event type: {payload.event}")
            return _received()

        billing_id = payload.billing_id
        external_id = payload.external_id
        if not billing_id and not external_id:
            logger.warning(f"[WEBHOOK] {payload.event} without billing or external id")
            return _error(400, 'Invalid payload')

        event_id = f"abacatepay:{hashlib.sha256(raw_body).hexdigest()}"
        can_process, reason = await WebhookLock.check_and_mark_webhook_processing(
            event_id,
            payload.event,
            provider=PaymentProvider.ABACATEPAY.value,
        )
        if not can_process:
            logger.info(f"[WEBHOOK] Skipping delivery {event_id}: {reason}")
            if reason == "Event already processed":
                return _received('Already processed')
            return _received(reason)

        try:
            return await self._reconcile(event_id, external_id=external_id, billing_id=billing_id)
        except Exception as e:
            logger.error(f"[WEBHOOK] Error processing AbacatePay delivery {event_id}: {e}", exc_info=True)
            await WebhookLock.mark_webhook_failed(event_id, f"{type(e).__name__}: {str(e)[:500]}")
            return _error(500, 'Internal error')

    async def _reconcile(
        self,
        event_id: str,
        *,
        external_id: Optional[str],
        billing_id: Optional[str],
    ) -> JSONResponse:
        purchase = await purchase_store.find_for_webhook(external_id, billing_id)

        if purchase is None:
            logger.warning(
                f"[WEBHOOK] Purchase not found (external_id={external_id}, billing_id={billing_id})"
            )
            await WebhookLock.mark_webhook_failed(event_id, "Purchase not found")
            return _error(404, 'Purchase not found')

        if purchase.is_completed:
            logger.info(f"[WEBHOOK] Purchase {purchase.id} already processed")
            await WebhookLock.mark_webhook_completed(event_id)
            return _received('Already processed')

        try:
            result = await credit_manager.apply_purchase_credit(purchase.id)
        except PurchaseNotFoundError:
            await WebhookLock.mark_webhook_failed(event_id, "Purchase not found")
            return _error(404, 'Purchase not found')

        await WebhookLock.mark_webhook_completed(event_id)

        if result.already_processed:
            return _received('Already processed')

        logger.info(
            f"[WEBHOOK] ✅ Purchase {purchase.id} completed, {result.credits_added} credits granted to {result.user_id}"
        )
        return _received()


# Global instance
abacatepay_webhook_service = AbacatePayWebhookService()
