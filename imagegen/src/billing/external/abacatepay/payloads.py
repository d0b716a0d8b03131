"""
AbacatePay Webhook Payloads

Webhook bodies are `{"event": str, "data": object}`, but where the
billing id and our external id sit inside `data` depends on the payment
method and API version. Each location is an extractor; extractors are
tried in order and the first non-empty string wins.
"""

import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence

from imagegen.src.billing.shared.config import PAID_WEBHOOK_EVENTS
from imagegen.src.billing.shared.exceptions import InvalidWebhookPayloadError

Extractor = Callable[[Dict[str, Any]], Optional[str]]


def key_path(*keys: str) -> Extractor:
    """Build an extractor reading a nested string at `data[k1][k2]...`."""

    def extract(data: Dict[str, Any]) -> Optional[str]:
        node: Any = data
        for key in keys:
            if not isinstance(node, dict):
                return None
            node = node.get(key)
        if isinstance(node, str) and node.strip():
            return node.strip()
        return None

    extract.__name__ = 'data.' + '.'.join(keys)
    return extract


BILLING_ID_EXTRACTORS: Sequence[Extractor] = (
    key_path('billing', 'id'),
    key_path('id'),
    key_path('payment', 'billingId'),
    key_path('pixQrCode', 'billingId'),
    key_path('pixQrCode', 'id'),
)

EXTERNAL_ID_EXTRACTORS: Sequence[Extractor] = (
    key_path('billing', 'externalId'),
    key_path('externalId'),
    key_path('payment', 'externalId'),
    key_path('pixQrCode', 'externalId'),
    key_path('billing', 'metadata', 'purchase_id'),
)


def first_match(extractors: Sequence[Extractor], data: Dict[str, Any]) -> Optional[str]:
    for extractor in extractors:
        value = extractor(data)
        if value:
            return value
    return None


@dataclass(frozen=True)
class WebhookPayload:
    """A parsed AbacatePay webhook."""
    event: str
    data: Dict[str, Any]

    @property
    def is_payment_confirmed(self) -> bool:
        return self.event in PAID_WEBHOOK_EVENTS

    @property
    def billing_id(self) -> Optional[str]:
        return first_match(BILLING_ID_EXTRACTORS, self.data)

    @property
    def external_id(self) -> Optional[str]:
        return first_match(EXTERNAL_ID_EXTRACTORS, self.data)


def parse_webhook_payload(raw_body: bytes) -> WebhookPayload:
    """
    Decode a webhook body.

    Raises:
        InvalidWebhookPayloadError: Not JSON, not an object, or missing `event`/`data`
    """
    try:
        body = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError):
        raise InvalidWebhookPayloadError("Invalid payload")

    if not isinstance(body, dict):
        raise InvalidWebhookPayloadError("Invalid payload")

    event = body.get('event')
    data = body.get('data')
    if not isinstance(event, str) or not event or not isinstance(data, dict):
        raise InvalidWebhookPayloadError("Invalid payload", event_type=event if isinstance(event, str) else None)

    return WebhookPayload(event=event, data=data)
