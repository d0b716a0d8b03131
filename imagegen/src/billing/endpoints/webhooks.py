"""
Webhook Endpoints

AbacatePay and Stripe webhook endpoints. Both authenticate the delivery
themselves; no bearer token is expected.
"""

import logging

from fastapi import APIRouter, Request

from imagegen.src.billing.external.abacatepay import abacatepay_webhook_service
from imagegen.src.billing.external.stripe import stripe_webhook_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["billing-webhooks"])


@router.post("/abacatepay/webhook")
async def abacatepay_webhook(request: Request):
    """
    Process AbacatePay webhook events.

    Handles:
    - billing.paid
    - payment.approved
    - pix.paid
    - pixQrCode.paid
    """
    return await abacatepay_webhook_service.process_webhook(request)


@router.post("/stripe/webhook")
async def stripe_webhook(request: Request):
    """
    Process Stripe webhook events.

    Handles:
    - checkout.session.completed
    - checkout.session.async_payment_succeeded
    """
    return await stripe_webhook_service.process_stripe_webhook(request)
