"""
Billing API Client

httpx client for the confirmation endpoint, acting on behalf of an
end user's access token. Used by the `imagegen confirm` command.
"""

import logging
from typing import Optional

import httpx

from imagegen.core.conf import settings
from imagegen.src.billing.domain.results import ConfirmationResult

logger = logging.getLogger(__name__)


class BillingAPIClient:
    """
    Usage:
        client = BillingAPIClient('http://127.0.0.1:8000', token)
        result = await client.confirm_payment(billing_id)
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        self._transport = transport

    @property
    def confirm_path(self) -> str:
        return f'{settings.FASTAPI_API_V1_PATH}/billing/abacatepay/confirm'

    async def confirm_payment(self, billing_id: Optional[str] = None) -> ConfirmationResult:
        """
        Ask the server to confirm a pending payment.

        Raises:
            httpx.HTTPStatusError: On a non-2xx answer
        """
        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers={'Authorization': f'Bearer {self.token}'},
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            response = await client.post(self.confirm_path, json={'billing_id': billing_id})

        response.raise_for_status()
        result = ConfirmationResult.from_dict(response.json())
        logger.debug(f"[RECONCILIATION] Confirm answered {result.status.value}")
        return result
