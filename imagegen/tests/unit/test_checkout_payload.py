"""Tests for checkout customer validation and the AbacatePay billing payload."""

import pytest


class TestNormalizeDigits:

    @pytest.mark.parametrize('raw,expected', [
        ('(11) 98765-4321', '11987654321'),
        ('+55 11 98765-4321', '5511987654321'),
        ('1133334444', '1133334444'),
        (None, None),
        ('   ', None),
    ])
    def test_cellphone(self, raw, expected):
        from imagegen.src.billing.payments.service import CELLPHONE_LENGTHS, normalize_digits

        assert normalize_digits(raw, 'cellphone', CELLPHONE_LENGTHS) == expected

    @pytest.mark.parametrize('raw,expected', [
        ('123.456.789-09', '12345678909'),
        ('12.345.678/0001-95', '12345678000195'),
    ])
    def test_tax_id(self, raw, expected):
        from imagegen.src.billing.payments.service import TAX_ID_LENGTHS, normalize_digits

        assert normalize_digits(raw, 'tax_id', TAX_ID_LENGTHS) == expected

    @pytest.mark.parametrize('raw,field,lengths', [
        ('98765-432', 'cellphone', 'CELLPHONE_LENGTHS'),
        ('+55 (11) 98765-432100', 'cellphone', 'CELLPHONE_LENGTHS'),
        ('123.456.789', 'tax_id', 'TAX_ID_LENGTHS'),
        ('123456789012', 'tax_id', 'TAX_ID_LENGTHS'),
    ])
    def test_invalid_lengths(self, raw, field, lengths):
        from imagegen.src.billing.payments import service
        from imagegen.src.billing.shared.exceptions import InvalidCustomerDataError

        with pytest.raises(InvalidCustomerDataError) as exc_info:
            service.normalize_digits(raw, field, getattr(service, lengths))

        assert exc_info.value.field == field
        assert exc_info.value.http_status == 400


class TestBuildBillingPayload:

    def _user(self):
        from imagegen.common.security.jwt import TokenPayload

        return TokenPayload(user_id='user-1', email='cliente@example.com')

    def test_credit_pack(self):
        from imagegen.core.conf import settings
        from imagegen.src.billing.domain.models import Product
        from imagegen.src.billing.payments.service import PaymentService

        product = Product(name='Pacote 50', tokens_granted=50, price_in_cents=2990, id='prod-50')

        payload = PaymentService().build_billing_payload(
            purchase_id='purchase-1',
            user=self._user(),
            product=product,
            cellphone='11987654321',
        )

        assert payload['frequency'] == 'ONE_TIME'
        assert payload['methods'] == ['PIX']
        assert payload['externalId'] == 'purchase-1'
        assert payload['products'] == [{
            'externalId': 'prod-50',
            'name': 'Pacote 50',
            'description': '50 créditos para geração de imagens',
            'quantity': 1,
            'price': 2990,
        }]
        assert payload['customer'] == {'email': 'cliente@example.com', 'cellphone': '11987654321'}
        assert payload['metadata'] == {'user_id': 'user-1', 'product_id': 'prod-50', 'tokens_granted': 50}
        assert payload['returnUrl'] == payload['completionUrl'] == f'{settings.FRONTEND_URL}{settings.ABACATEPAY_RETURN_PATH}'

    def test_unlimited_plan_is_recurring(self):
        from imagegen.src.billing.domain.models import Product
        from imagegen.src.billing.payments.service import PaymentService

        product = Product(name='Ilimitado', tokens_granted=0, price_in_cents=4990, id='prod-unl', is_unlimited=True)

        payload = PaymentService().build_billing_payload(purchase_id='purchase-2', user=self._user(), product=product)

        assert payload['frequency'] == 'MULTIPLE_PAYMENTS'
        assert payload['products'][0]['description'] == 'Assinatura mensal - Ilimitado'
        assert 'taxId' not in payload['customer']


class TestResults:

    def test_confirmation_result_serialization(self):
        from imagegen.src.billing.domain.results import ConfirmationResult, ConfirmationStatus

        pending = ConfirmationResult(
            status=ConfirmationStatus.PENDING,
            message='Pagamento ainda não confirmado. Status: expired',
            provider_status='expired',
        )

        assert pending.to_dict() == {
            'activated': False,
            'status': 'pending',
            'message': 'Pagamento ainda não confirmado. Status: expired',
            'provider_status': 'expired',
        }
        assert pending.should_keep_polling

    def test_from_dict_tolerates_unknown_status(self):
        from imagegen.src.billing.domain.results import ConfirmationResult, ConfirmationStatus

        parsed = ConfirmationResult.from_dict({'status': 'weird', 'message': 'x'})

        assert parsed.status == ConfirmationStatus.PENDING

    def test_grant_result(self):
        from imagegen.src.billing.domain.results import CreditGrantResult

        assert CreditGrantResult(purchase_id='p', user_id='u', credits_added=10, balance_after=10).granted
        assert not CreditGrantResult(purchase_id='p', user_id='u', already_processed=True).granted
