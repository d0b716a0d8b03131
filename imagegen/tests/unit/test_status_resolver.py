"""Tests for provider status normalization and the endpoint fallback chain."""

import httpx
import pytest

BILLING_ID = 'bill_abc123'


def make_resolver(handler):
    from imagegen.src.billing.external.abacatepay.client import AbacatePayClient
    from imagegen.src.billing.external.abacatepay.status import StatusResolver
    from imagegen.src.billing.external.circuit_breaker import CircuitBreaker

    client = AbacatePayClient(
        api_key='abc_test_key',
        base_url='https://api.abacatepay.test/v1',
        transport=httpx.MockTransport(handler),
        circuit_breaker=CircuitBreaker('test_abacatepay', failure_threshold=100),
    )
    return StatusResolver(client)


class Recorder:
    """MockTransport handler that answers per path and records calls."""

    def __init__(self, routes):
        self.routes = routes
        self.calls = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix('/v1')
        self.calls.append(path)
        answer = self.routes.get(path)
        if answer is None:
            return httpx.Response(404, json={'error': 'Not found'})
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, httpx.Response):
            return answer
        return httpx.Response(200, json=answer)


class TestNormalizeProviderStatus:

    @pytest.mark.parametrize('raw,expected', [
        ('PAID', 'paid'),
        ('paid', 'paid'),
        ('Approved', 'paid'),
        ('COMPLETED', 'paid'),
        ('CONFIRMED', 'paid'),
        ('RECEIVED', 'paid'),
        ('PENDING', 'pending'),
        ('WAITING', 'pending'),
        ('CREATED', 'pending'),
        ('PROCESSING', 'pending'),
        ('ACTIVE', 'pending'),
        ('EXPIRED', 'expired'),
        ('CANCELLED', 'cancelled'),
        ('canceled', 'cancelled'),
        ('REFUNDED', 'cancelled'),
        ('FAILED', 'cancelled'),
        (' paid ', 'paid'),
        ('SOMETHING_NEW', 'unknown'),
        ('', 'unknown'),
        (None, 'unknown'),
        (1, 'unknown'),
    ])
    def test_mapping(self, raw, expected):
        from imagegen.src.billing.external.abacatepay.status import normalize_provider_status

        assert normalize_provider_status(raw).value == expected


class TestStatusResolver:

    @pytest.mark.asyncio
    async def test_first_endpoint_answers(self):
        from imagegen.src.billing.external.abacatepay.status import ProviderStatus

        handler = Recorder({f'/billing/info/{BILLING_ID}': {'data': {'id': BILLING_ID, 'status': 'PAID'}, 'error': None}})
        resolver = make_resolver(handler)

        assert await resolver.resolve(BILLING_ID) == ProviderStatus.PAID
        assert handler.calls == [f'/billing/info/{BILLING_ID}']

    @pytest.mark.asyncio
    async def test_falls_back_to_payment_list_on_server_error(self):
        from imagegen.src.billing.external.abacatepay.status import ProviderStatus

        handler = Recorder({
            f'/billing/info/{BILLING_ID}': httpx.Response(500, text='boom'),
            '/payment/list': {'data': [
                {'id': 'bill_other', 'status': 'PENDING'},
                {'billingId': BILLING_ID, 'status': 'APPROVED'},
            ]},
        })
        resolver = make_resolver(handler)

        assert await resolver.resolve(BILLING_ID) == ProviderStatus.PAID
        assert handler.calls == [f'/billing/info/{BILLING_ID}', '/payment/list']

    @pytest.mark.asyncio
    async def test_unwrapped_billing_list(self):
        from imagegen.src.billing.external.abacatepay.status import ProviderStatus

        handler = Recorder({
            '/payment/list': {'data': []},
            '/billing/list': [{'billing': {'id': BILLING_ID}, 'status': 'EXPIRED'}],
        })
        resolver = make_resolver(handler)

        assert await resolver.resolve(BILLING_ID) == ProviderStatus.EXPIRED
        assert handler.calls[-1] == '/billing/list'

    @pytest.mark.asyncio
    async def test_pix_qrcode_check_uses_id_param(self):
        from imagegen.src.billing.external.abacatepay.status import ProviderStatus

        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith('/pixQrCode/check'):
                seen['id'] = request.url.params.get('id')
                return httpx.Response(200, json={'data': {'status': 'PAID', 'expiresAt': '2026-01-01'}})
            raise httpx.ConnectTimeout('timed out', request=request)

        resolver = make_resolver(handler)

        assert await resolver.resolve(BILLING_ID) == ProviderStatus.PAID
        assert seen['id'] == BILLING_ID

    @pytest.mark.asyncio
    async def test_answer_about_another_billing_is_ignored(self):
        from imagegen.src.billing.external.abacatepay.status import ProviderStatus

        handler = Recorder({
            f'/billing/info/{BILLING_ID}': {'data': {'id': 'bill_other', 'status': 'PAID'}},
            '/payment/list': {'data': [{'id': BILLING_ID, 'status': 'PENDING'}]},
        })
        resolver = make_resolver(handler)

        assert await resolver.resolve(BILLING_ID) == ProviderStatus.PENDING

    @pytest.mark.asyncio
    async def test_unrecognized_status_moves_on(self):
        from imagegen.src.billing.external.abacatepay.status import ProviderStatus

        handler = Recorder({
            f'/billing/info/{BILLING_ID}': {'data': {'id': BILLING_ID, 'status': 'UNDER_REVIEW'}},
            '/payment/list': {'data': [{'id': BILLING_ID, 'status': 'PAID'}]},
        })
        resolver = make_resolver(handler)

        assert await resolver.resolve(BILLING_ID) == ProviderStatus.PAID

    @pytest.mark.asyncio
    async def test_invalid_json_moves_on(self):
        from imagegen.src.billing.external.abacatepay.status import ProviderStatus

        handler = Recorder({
            f'/billing/info/{BILLING_ID}': httpx.Response(200, text='<html>maintenance</html>'),
            '/payment/list': {'data': [{'id': BILLING_ID, 'status': 'CANCELLED'}]},
        })
        resolver = make_resolver(handler)

        assert await resolver.resolve(BILLING_ID) == ProviderStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_total_failure_is_unknown(self):
        from imagegen.src.billing.external.abacatepay.status import ProviderStatus

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError('connection refused', request=request)

        resolver = make_resolver(handler)

        assert await resolver.resolve(BILLING_ID) == ProviderStatus.UNKNOWN

    @pytest.mark.asyncio
    async def test_open_circuit_is_unknown(self):
        from imagegen.src.billing.external.abacatepay.client import AbacatePayClient
        from imagegen.src.billing.external.abacatepay.status import ProviderStatus, StatusResolver
        from imagegen.src.billing.external.circuit_breaker import CircuitBreaker

        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            return httpx.Response(503)

        client = AbacatePayClient(
            api_key='abc_test_key',
            base_url='https://api.abacatepay.test/v1',
            transport=httpx.MockTransport(handler),
            circuit_breaker=CircuitBreaker('test_abacatepay', failure_threshold=2, recovery_timeout=60),
        )

        assert await StatusResolver(client).resolve(BILLING_ID) == ProviderStatus.UNKNOWN
        # Two failures open the circuit; the remaining candidates are blocked without a request
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_missing_api_key_is_unknown(self):
        from imagegen.src.billing.external.abacatepay.client import AbacatePayClient
        from imagegen.src.billing.external.abacatepay.status import ProviderStatus, StatusResolver

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError('no request expected')

        client = AbacatePayClient(api_key='', transport=httpx.MockTransport(handler))

        assert await StatusResolver(client).resolve(BILLING_ID) == ProviderStatus.UNKNOWN

    @pytest.mark.asyncio
    async def test_empty_billing_id(self):
        from imagegen.src.billing.external.abacatepay.status import ProviderStatus

        resolver = make_resolver(Recorder({}))

        assert await resolver.resolve('') == ProviderStatus.UNKNOWN


class TestSanitizeApiKey:

    def test_keeps_only_printable_ascii(self):
        from imagegen.src.billing.external.abacatepay.client import sanitize_api_key

        assert sanitize_api_key(' abc_123\r\n') == 'abc_123'
        assert sanitize_api_key('abc\u200b_123') == 'abc_123'
        assert sanitize_api_key('abc\t_1\x0023\x7f') == 'abc_123'
        assert sanitize_api_key(None) == ''
