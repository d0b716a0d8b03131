"""
AbacatePay Webhook Authentication

A delivery is authentic if it carries the shared webhook secret (query
parameter or header) or an HMAC-SHA256 of the raw body keyed with that
secret. Signatures may be hex or base64 and may carry a `sha256=` prefix.
"""

import base64
import hashlib
import hmac
import logging
from typing import Mapping, Optional

from imagegen.src.billing.shared.config import (
    WEBHOOK_SECRET_HEADERS,
    WEBHOOK_SECRET_QUERY_PARAM,
    WEBHOOK_SIGNATURE_HEADERS,
    WEBHOOK_SIGNATURE_PREFIX,
)

logger = logging.getLogger(__name__)


def compute_signatures(raw_body: bytes, secret: str) -> tuple[str, str]:
    """HMAC-SHA256 of the body as (hex, base64)."""
    digest = hmac.new(secret.encode('utf-8'), raw_body, hashlib.sha256).digest()
    return digest.hex(), base64.b64encode(digest).decode('ascii')


def _get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower())
    return value


def secret_matches(
    query_params: Mapping[str, str],
    headers: Mapping[str, str],
    secret: str,
) -> bool:
    """Whether the shared secret was sent as query param or header."""
    candidates = [query_params.get(WEBHOOK_SECRET_QUERY_PARAM)]
    candidates.extend(_get_header(headers, name) for name in WEBHOOK_SECRET_HEADERS)

    expected = secret.encode('utf-8')
    return any(
        candidate and hmac.compare_digest(candidate.encode('utf-8'), expected)
        for candidate in candidates
    )


def signature_matches(raw_body: bytes, headers: Mapping[str, str], secret: str) -> bool:
    """Whether any signature header holds a valid HMAC of the body."""
    expected_hex, expected_b64 = compute_signatures(raw_body, secret)

    for name in WEBHOOK_SIGNATURE_HEADERS:
        provided = _get_header(headers, name)
        if not provided:
            continue

        provided = provided.strip()
        if provided.lower().startswith(WEBHOOK_SIGNATURE_PREFIX):
            provided = provided[len(WEBHOOK_SIGNATURE_PREFIX):]

        provided_bytes = provided.encode('utf-8')
        if hmac.compare_digest(provided_bytes.lower(), expected_hex.encode('ascii')):
            return True
        if hmac.compare_digest(provided_bytes, expected_b64.encode('ascii')):
            return True

    return False


def verify_webhook_request(
    raw_body: bytes,
    query_params: Mapping[str, str],
    headers: Mapping[str, str],
    secret: Optional[str],
) -> bool:
    """
    Authenticate a webhook delivery.

    Args:
        raw_body: Request body exactly as received
        query_params: Request query parameters
        headers: Request headers
        secret: Configured webhook secret

    Returns:
        True if the secret or a valid signature was presented
    """
    if not secret:
        logger.error("[WEBHOOK] ABACATEPAY_WEBHOOK_SECRET not configured, rejecting delivery")
        return False

    if secret_matches(query_params, headers, secret):
        return True

    return signature_matches(raw_body, headers, secret)
