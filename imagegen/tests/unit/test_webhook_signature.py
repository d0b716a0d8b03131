"""Tests for AbacatePay webhook authentication."""

import base64
import hashlib
import hmac

SECRET = 'abacate-webhook-secret'
BODY = b'{"event":"billing.paid","data":{"id":"bill_1"}}'


def _digest(body: bytes = BODY, secret: str = SECRET) -> bytes:
    return hmac.new(secret.encode(), body, hashlib.sha256).digest()


class TestVerifyWebhookRequest:

    def test_secret_in_query(self):
        from imagegen.src.billing.external.abacatepay.signature import verify_webhook_request

        assert verify_webhook_request(BODY, {'webhookSecret': SECRET}, {}, SECRET)

    def test_secret_in_header(self):
        from imagegen.src.billing.external.abacatepay.signature import verify_webhook_request

        assert verify_webhook_request(BODY, {}, {'X-Webhook-Secret': SECRET}, SECRET)
        assert verify_webhook_request(BODY, {}, {'x-abacatepay-secret': SECRET}, SECRET)

    def test_wrong_secret(self):
        from imagegen.src.billing.external.abacatepay.signature import verify_webhook_request

        assert not verify_webhook_request(BODY, {'webhookSecret': 'nope'}, {'X-Webhook-Secret': 'nope'}, SECRET)

    def test_hex_signature(self):
        from imagegen.src.billing.external.abacatepay.signature import verify_webhook_request

        headers = {'X-Abacatepay-Signature': _digest().hex()}

        assert verify_webhook_request(BODY, {}, headers, SECRET)

    def test_uppercase_hex_with_prefix(self):
        from imagegen.src.billing.external.abacatepay.signature import verify_webhook_request

        headers = {'X-Signature': 'sha256=' + _digest().hex().upper()}

        assert verify_webhook_request(BODY, {}, headers, SECRET)

    def test_base64_signature(self):
        from imagegen.src.billing.external.abacatepay.signature import verify_webhook_request

        headers = {'X-Webhook-Signature': base64.b64encode(_digest()).decode()}

        assert verify_webhook_request(BODY, {}, headers, SECRET)

    def test_signature_over_different_body(self):
        from imagegen.src.billing.external.abacatepay.signature import verify_webhook_request

        headers = {'X-Abacatepay-Signature': _digest(b'{"event":"billing.paid"}').hex()}

        assert not verify_webhook_request(BODY, {}, headers, SECRET)

    def test_signature_with_wrong_key(self):
        from imagegen.src.billing.external.abacatepay.signature import verify_webhook_request

        headers = {'X-Abacatepay-Signature': _digest(secret='other').hex()}

        assert not verify_webhook_request(BODY, {}, headers, SECRET)

    def test_nothing_presented(self):
        from imagegen.src.billing.external.abacatepay.signature import verify_webhook_request

        assert not verify_webhook_request(BODY, {}, {}, SECRET)

    def test_rejects_everything_without_configured_secret(self):
        from imagegen.src.billing.external.abacatepay.signature import verify_webhook_request

        assert not verify_webhook_request(BODY, {'webhookSecret': ''}, {'X-Webhook-Secret': ''}, '')
        assert not verify_webhook_request(BODY, {'webhookSecret': 'x'}, {}, None)
