"""
Provider Status Resolver

Answers "has this billing been paid?" for an AbacatePay billing id.

The same information has been exposed under different API paths over
time, so the resolver walks an ordered list of candidate endpoints and
stops at the first one that reports a recognized status for the id.
It never raises: an unreachable or confusing provider is UNKNOWN, which
callers treat exactly like PENDING.
"""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Tuple

import httpx

from imagegen.src.billing.shared.exceptions import BillingError
from .client import AbacatePayClient, abacatepay_client, unwrap_data

logger = logging.getLogger(__name__)


class ProviderStatus(str, Enum):
    """Normalized payment status."""
    PAID = "paid"
    PENDING = "pending"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


# Provider status strings (upper-cased) -> normalized status
PROVIDER_STATUS_MAP: Dict[str, ProviderStatus] = {
    'PAID': ProviderStatus.PAID,
    'APPROVED': ProviderStatus.PAID,
    'COMPLETED': ProviderStatus.PAID,
    'CONFIRMED': ProviderStatus.PAID,
    'RECEIVED': ProviderStatus.PAID,
    'PENDING': ProviderStatus.PENDING,
    'WAITING': ProviderStatus.PENDING,
    'CREATED': ProviderStatus.PENDING,
    'PROCESSING': ProviderStatus.PENDING,
    'ACTIVE': ProviderStatus.PENDING,
    'EXPIRED': ProviderStatus.EXPIRED,
    'CANCELLED': ProviderStatus.CANCELLED,
    'CANCELED': ProviderStatus.CANCELLED,
    'REFUNDED': ProviderStatus.CANCELLED,
    'FAILED': ProviderStatus.CANCELLED,
}


def normalize_provider_status(raw: Any) -> ProviderStatus:
    """Map a provider status string to ProviderStatus, case-insensitively."""
    if not isinstance(raw, str):
        return ProviderStatus.UNKNOWN
    return PROVIDER_STATUS_MAP.get(raw.strip().upper(), ProviderStatus.UNKNOWN)


def item_matches(item: Any, billing_id: str) -> bool:
    """Whether a list entry describes the given billing."""
    if not isinstance(item, dict):
        return False
    if item.get('id') == billing_id or item.get('billingId') == billing_id:
        return True
    billing = item.get('billing')
    return isinstance(billing, dict) and billing.get('id') == billing_id


def status_of_object(data: Any, billing_id: str) -> ProviderStatus:
    """Status of a single-object answer, ignoring answers about a different billing."""
    if not isinstance(data, dict):
        return ProviderStatus.UNKNOWN
    reported_id = data.get('id') or data.get('billingId')
    if reported_id and reported_id != billing_id and not item_matches(data, billing_id):
        return ProviderStatus.UNKNOWN
    return normalize_provider_status(data.get('status'))


def status_in_list(data: Any, billing_id: str) -> ProviderStatus:
    """Scan a list answer for the billing and return its status."""
    if not isinstance(data, list):
        return ProviderStatus.UNKNOWN
    for item in data:
        if item_matches(item, billing_id):
            return normalize_provider_status(item.get('status'))
    return ProviderStatus.UNKNOWN


StatusLookup = Callable[[str], Awaitable[ProviderStatus]]


class StatusResolver:
    """
    Resolve a billing id to a ProviderStatus.

    Candidate order:
    1. billing info by id
    2. payment list, scanned for the id
    3. billing list, scanned for the id
    4. PIX QR code check by id

    Usage:
        status = await status_resolver.resolve(billing_id)
        if status == ProviderStatus.PAID:
            ...
    """

    def __init__(self, client: AbacatePayClient):
        self.client = client

    @property
    def candidates(self) -> List[Tuple[str, StatusLookup]]:
        return [
            ('billing_info', self._billing_info),
            ('payment_list', self._payment_list),
            ('billing_list', self._billing_list),
            ('pix_qrcode_check', self._pix_qrcode_check),
        ]

    async def resolve(self, billing_id: str) -> ProviderStatus:
        """
        Query the provider for a billing's status.

        Args:
            billing_id: AbacatePay billing id

        Returns:
            The first recognized status, or UNKNOWN if no candidate produced one
        """
        if not billing_id:
            return ProviderStatus.UNKNOWN

        for name, lookup in self.candidates:
            try:
                status = await lookup(billing_id)
            except (httpx.HTTPError, BillingError) as e:
                logger.warning(f"[ABACATEPAY] Status lookup '{name}' failed for {billing_id}: {e}")
                continue

            if status != ProviderStatus.UNKNOWN:
                logger.info(f"[ABACATEPAY] Billing {billing_id} is {status.value} (via {name})")
                return status

            logger.debug(f"[ABACATEPAY] Status lookup '{name}' had no answer for {billing_id}")

        logger.warning(f"[ABACATEPAY] Could not resolve status for {billing_id}, treating as unknown")
        return ProviderStatus.UNKNOWN

    async def _billing_info(self, billing_id: str) -> ProviderStatus:
        body = await self.client.get(f'/billing/info/{billing_id}')
        return status_of_object(unwrap_data(body), billing_id)

    async def _payment_list(self, billing_id: str) -> ProviderStatus:
        body = await self.client.get('/payment/list')
        return status_in_list(unwrap_data(body), billing_id)

    async def _billing_list(self, billing_id: str) -> ProviderStatus:
        body = await self.client.get('/billing/list')
        return status_in_list(unwrap_data(body), billing_id)

    async def _pix_qrcode_check(self, billing_id: str) -> ProviderStatus:
        body = await self.client.get('/pixQrCode/check', params={'id': billing_id})
        return status_of_object(unwrap_data(body), billing_id)


# Global instance
status_resolver = StatusResolver(abacatepay_client)
