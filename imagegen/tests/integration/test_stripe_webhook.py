"""Tests for the Stripe webhook endpoint."""

import json
from unittest.mock import patch

import pytest
import pytest_asyncio
import stripe

from imagegen.tests.utils import PRODUCT_ID, USER_ID

STRIPE_WEBHOOK_URL = '/api/v1/billing/stripe/webhook'


def checkout_event(event_id='evt_test_1', event_type='checkout.session.completed', **session):
    """A Stripe event as `construct_event` returns it after verification."""
    return stripe.Event.construct_from(
        {
            'id': event_id,
            'object': 'event',
            'type': event_type,
            'data': {
                'object': {
                    'id': 'cs_test_imagegen',
                    'object': 'checkout.session',
                    'payment_status': 'paid',
                    'metadata': {},
                    **session,
                },
            },
        },
        'sk_test_imagegen',
    )


async def post_event(client, event):
    """Deliver an event, bypassing signature verification."""
    with patch('stripe.Webhook.construct_event', return_value=event):
        return await client.post(
            STRIPE_WEBHOOK_URL,
            content=json.dumps({'id': event.id}).encode(),
            headers={'stripe-signature': 't=1,v1=fake'},
        )


@pytest_asyncio.fixture
async def stripe_purchase(seeded):
    from imagegen.src.billing.domain.models import Purchase

    async with seeded.begin() as session:
        session.add(
            Purchase(
                user_id=USER_ID,
                product_id=PRODUCT_ID,
                amount_paid=990,
                tokens_granted=10,
                id='stripe-purchase',
                provider='stripe',
                stripe_session_id='cs_test_imagegen',
            )
        )
    return 'stripe-purchase'


@pytest.mark.asyncio
class TestStripeWebhook:

    async def test_missing_signature(self, seeded, client):
        response = await client.post(STRIPE_WEBHOOK_URL, content=b'{}')

        assert response.status_code == 400

    async def test_invalid_signature(self, seeded, client, fetch):
        response = await client.post(
            STRIPE_WEBHOOK_URL,
            content=b'{"id": "evt_forged", "type": "checkout.session.completed"}',
            headers={'stripe-signature': 't=1700000000,v1=deadbeef'},
        )

        assert response.status_code == 400
        assert await fetch.webhook_events() == []

    async def test_completed_session_by_purchase_id(self, client, fetch, stripe_purchase):
        event = checkout_event(metadata={'purchase_id': stripe_purchase, 'user_id': USER_ID})

        response = await post_event(client, event)

        assert response.status_code == 200
        assert response.json() == {'status': 'success', 'event_id': 'evt_test_1'}
        assert (await fetch.purchase(stripe_purchase)).status == 'completed'
        assert await fetch.balance() == 10

    async def test_completed_session_by_session_id(self, client, fetch, stripe_purchase):
        response = await post_event(client, checkout_event())

        assert response.status_code == 200
        assert (await fetch.purchase(stripe_purchase)).status == 'completed'
        assert await fetch.balance() == 10

    async def test_missing_purchase_recorded_from_metadata(self, seeded, client, fetch):
        event = checkout_event(
            id='cs_test_orphan',
            metadata={'user_id': USER_ID, 'product_id': PRODUCT_ID, 'purchase_id': 'orphan-purchase'},
        )

        response = await post_event(client, event)

        assert response.status_code == 200
        purchase = await fetch.purchase('orphan-purchase')
        assert purchase.provider == 'stripe'
        assert purchase.stripe_session_id == 'cs_test_orphan'
        assert purchase.status == 'completed'
        assert await fetch.balance() == 10

    async def test_unpaid_session_waits(self, client, fetch, stripe_purchase):
        response = await post_event(client, checkout_event(payment_status='unpaid'))

        assert response.status_code == 200
        assert (await fetch.purchase(stripe_purchase)).status == 'pending'

        paid = checkout_event(event_id='evt_test_2', event_type='checkout.session.async_payment_succeeded')
        await post_event(client, paid)

        assert (await fetch.purchase(stripe_purchase)).status == 'completed'
        assert await fetch.balance() == 10

    async def test_duplicate_event_is_skipped(self, client, fetch, stripe_purchase):
        event = checkout_event()

        await post_event(client, event)
        response = await post_event(client, event)

        assert response.status_code == 200
        assert 'already processed' in response.json()['message']
        assert await fetch.balance() == 10
        assert await fetch.ledger_count(stripe_purchase) == 1

    async def test_unhandled_event_type(self, seeded, client, fetch):
        response = await post_event(client, checkout_event(event_type='invoice.paid'))

        assert response.status_code == 200
        events = await fetch.webhook_events()
        assert [(e.provider, e.status) for e in events] == [('stripe', 'completed')]

    async def test_processing_error_asks_for_redelivery(self, seeded, client, fetch):
        event = checkout_event(metadata={'user_id': USER_ID, 'product_id': 'prod-inexistente'})

        response = await post_event(client, event)

        assert response.status_code == 500
        assert response.json()['error'] == 'processing_failed'
        events = await fetch.webhook_events()
        assert events[0].status == 'failed'

    async def test_failed_grant_is_credited_on_redelivery(self, seeded, client, fetch):
        from imagegen.src.billing.domain.models import Profile, Purchase

        async with seeded.begin() as session:
            session.add(
                Purchase(
                    user_id='ghost-user',
                    product_id=PRODUCT_ID,
                    amount_paid=990,
                    tokens_granted=10,
                    id='ghost-stripe-purchase',
                    provider='stripe',
                    stripe_session_id='cs_test_imagegen',
                )
            )

        event = checkout_event(metadata={'purchase_id': 'ghost-stripe-purchase'})

        response = await post_event(client, event)

        assert response.status_code == 500
        assert (await fetch.purchase('ghost-stripe-purchase')).status == 'pending'
        assert await fetch.ledger_count('ghost-stripe-purchase') == 0

        async with seeded.begin() as session:
            session.add(Profile(id='ghost-user'))

        retry = await post_event(client, event)

        assert retry.status_code == 200
        assert retry.json() == {'status': 'success', 'event_id': 'evt_test_1'}
        assert (await fetch.purchase('ghost-stripe-purchase')).status == 'completed'
        assert await fetch.balance('ghost-user') == 10
