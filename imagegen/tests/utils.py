"""Test constants and helpers shared by unit and integration tests."""

import hashlib
import hmac
import json
import time

USER_ID = '8f14e45f-ceea-467a-9af0-3e2b5d1f6a10'
OTHER_USER_ID = 'c9f0f895-fb98-4b91-8a3c-1d2e3f4a5b6c'
PRODUCT_ID = 'prod-10-creditos'
UNLIMITED_PRODUCT_ID = 'prod-ilimitado'
PURCHASE_ID = '1679091c-5a88-4faf-9a2b-7c6d5e4f3a21'
BILLING_ID = 'bill_12345abcde'

WEBHOOK_URL = '/api/v1/billing/abacatepay/webhook'
CONFIRM_URL = '/api/v1/billing/abacatepay/confirm'


def make_token(user_id: str = USER_ID, email: str = 'cliente@example.com', **claims) -> str:
    import jwt

    from imagegen.core.conf import settings

    payload = {
        'sub': user_id,
        'email': email,
        'role': 'authenticated',
        'aud': 'authenticated',
        'exp': int(time.time()) + 3600,
        **claims,
    }
    return jwt.encode(payload, settings.TOKEN_SECRET_KEY, algorithm=settings.TOKEN_ALGORITHM)


def webhook_body(event: str = 'billing.paid', **data) -> bytes:
    if not data:
        data = {'billing': {'id': BILLING_ID, 'externalId': PURCHASE_ID, 'status': 'PAID'}}
    return json.dumps({'event': event, 'data': data}).encode()


def hmac_hex(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
