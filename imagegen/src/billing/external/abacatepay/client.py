"""
AbacatePay API Client

Thin async wrapper around the AbacatePay REST API. Every request goes
through the provider circuit breaker; transport errors and 5xx answers
count as provider failures.
"""

import logging
import re
from typing import Any, Dict, Optional

import httpx

from imagegen.core.conf import settings
from imagegen.src.billing.external.circuit_breaker import CircuitBreaker
from imagegen.src.billing.shared.exceptions import PaymentError, ProviderError

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r'[^\x20-\x7E]')


def sanitize_api_key(raw: Optional[str]) -> str:
    """Keep only printable ASCII of an API key, without surrounding whitespace."""
    if not raw:
        return ''
    return _UNSAFE_KEY_CHARS.sub('', raw).strip()


def unwrap_data(body: Any) -> Any:
    """AbacatePay answers `{"data": ..., "error": ...}`; older paths answer the object itself."""
    if isinstance(body, dict) and body.get('data') is not None:
        return body['data']
    return body


class AbacatePayClient:
    """
    AbacatePay REST client.

    Usage:
        client = AbacatePayClient()
        billing = await client.create_billing(payload)
        body = await client.get(f"/billing/info/{billing_id}")
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            "abacatepay_api",
            failure_threshold=settings.CIRCUIT_BREAKER_FAILURE_THRESHOLD,
            recovery_timeout=settings.CIRCUIT_BREAKER_RECOVERY_TIMEOUT,
        )

    @property
    def api_key(self) -> str:
        return sanitize_api_key(self._api_key if self._api_key is not None else settings.ABACATEPAY_API_KEY)

    @property
    def base_url(self) -> str:
        return (self._base_url or settings.ABACATEPAY_API_URL).rstrip('/')

    def _headers(self) -> Dict[str, str]:
        return {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=self._timeout or settings.ABACATEPAY_TIMEOUT_SECONDS,
            transport=self._transport,
        ) as client:
            response = await client.request(method, path, **kwargs)

        if response.status_code >= 500:
            response.raise_for_status()
        return response

    async def request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """
        Send a request through the circuit breaker.

        Raises:
            ProviderError: If no API key is configured
            CircuitBreakerOpenError: If the provider circuit is open
            httpx.HTTPError: On transport errors and 5xx answers
        """
        if not self.api_key:
            raise ProviderError(message="ABACATEPAY_API_KEY not configured", code="PROVIDER_NOT_CONFIGURED")

        logger.debug(f"[ABACATEPAY] {method} {path}")
        return await self.circuit_breaker.safe_call(self._send, method, path, **kwargs)

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET a path and return the decoded JSON body.

        Raises:
            ProviderError: On a non-2xx answer or a body that is not JSON
        """
        response = await self.request('GET', path, params=params)

        if not response.is_success:
            raise ProviderError(
                message=f"AbacatePay GET {path} returned {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(message=f"AbacatePay GET {path} returned invalid JSON: {e}") from e

    async def create_billing(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a billing (hosted PIX checkout).

        Args:
            payload: Body for POST /billing/create

        Returns:
            The billing object; always carries `id` and `url`

        Raises:
            PaymentError: If the provider rejects the request or omits id/url
        """
        try:
            response = await self.request('POST', '/billing/create', json=payload)
        except httpx.HTTPError as e:
            logger.error(f"[ABACATEPAY] Billing creation failed: {e}")
            raise PaymentError(
                message="Failed to create AbacatePay billing",
                provider="abacatepay",
                provider_error=str(e),
            ) from e

        if not response.is_success:
            logger.error(f"[ABACATEPAY] Billing creation rejected ({response.status_code}): {response.text[:500]}")
            raise PaymentError(
                message="Failed to create AbacatePay billing",
                provider="abacatepay",
                provider_error=response.text[:500],
            )

        try:
            billing = unwrap_data(response.json())
        except ValueError as e:
            raise PaymentError(message="Invalid response from AbacatePay", provider="abacatepay") from e

        if not isinstance(billing, dict) or not billing.get('id') or not billing.get('url'):
            logger.error(f"[ABACATEPAY] Billing response missing id/url: {billing}")
            raise PaymentError(message="Invalid response from AbacatePay", provider="abacatepay")

        logger.info(f"[ABACATEPAY] Billing created: {billing['id']}")
        return billing


# Global instance
abacatepay_client = AbacatePayClient()
