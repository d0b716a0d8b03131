"""Shared fixtures: a throwaway sqlite database, seeded billing rows and an app client."""

import os

# Settings are read once at import time, so the test environment must be in place first
os.environ.update(
    {
        'ENVIRONMENT': 'dev',
        'DATABASE_TYPE': 'sqlite',
        'LOG_FILE_ENABLED': 'false',
        'TOKEN_SECRET_KEY': 'test-supabase-jwt-secret-0123456789abcdef',
        'ABACATEPAY_API_KEY': 'abc_test_key',
        'ABACATEPAY_WEBHOOK_SECRET': 'abacate-webhook-secret',
        'STRIPE_SECRET_KEY': 'sk_test_imagegen',
        'STRIPE_WEBHOOK_SECRET': 'whsec_imagegen_test',
    }
)

from typing import AsyncGenerator  # noqa: E402
from unittest.mock import AsyncMock, patch  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from httpx import ASGITransport, AsyncClient  # noqa: E402

from imagegen.tests.utils import (  # noqa: E402
    BILLING_ID,
    OTHER_USER_ID,
    PRODUCT_ID,
    PURCHASE_ID,
    UNLIMITED_PRODUCT_ID,
    USER_ID,
    make_token,
)


@pytest.fixture(autouse=True)
def no_redis():
    """Balance cache calls never reach a real Redis."""
    with patch('imagegen.src.billing.credits.manager.get_cached_balance', new=AsyncMock(return_value=None)), \
         patch('imagegen.src.billing.credits.manager.set_cached_balance', new=AsyncMock(return_value=True)), \
         patch('imagegen.src.billing.credits.manager.invalidate_balance_cache', new=AsyncMock(return_value=True)) as invalidate:
        yield invalidate


@pytest_asyncio.fixture
async def db(tmp_path, monkeypatch):
    """
    Fresh file-backed sqlite database swapped in for the application's session factory.

    Services import `async_db_session` from `imagegen.database.db` at call time, so
    replacing the module attributes is enough.
    """
    from imagegen.common.model import MappedBase
    from imagegen.database import db as db_module

    import imagegen.src.billing.domain.models  # noqa: F401

    engine, session_factory = db_module.create_async_engine_and_session(
        f'sqlite+aiosqlite:///{tmp_path / "imagegen_test.sqlite3"}'
    )
    monkeypatch.setattr(db_module, 'async_engine', engine)
    monkeypatch.setattr(db_module, 'async_db_session', session_factory)

    async with engine.begin() as conn:
        await conn.run_sync(MappedBase.metadata.create_all)

    yield session_factory

    await engine.dispose()


@pytest_asyncio.fixture
async def seeded(db):
    """One user with a zero balance, a 10-credit pack, an unlimited plan and a pending PIX purchase."""
    from imagegen.src.billing.domain.models import Product, Profile, Purchase

    async with db.begin() as session:
        session.add(Profile(id=USER_ID, email='cliente@example.com'))
        session.add(Profile(id=OTHER_USER_ID, email='outro@example.com'))
        session.add(Product(name='Pacote 10', tokens_granted=10, price_in_cents=990, id=PRODUCT_ID))
        session.add(
            Product(
                name='Ilimitado',
                tokens_granted=0,
                price_in_cents=4990,
                id=UNLIMITED_PRODUCT_ID,
                is_unlimited=True,
            )
        )
        session.add(
            Purchase(
                user_id=USER_ID,
                product_id=PRODUCT_ID,
                amount_paid=990,
                tokens_granted=10,
                id=PURCHASE_ID,
                abacate_billing_id=BILLING_ID,
            )
        )

    return db


@pytest.fixture
def fetch(db):
    """Read helpers for asserting on database state."""
    from sqlalchemy import func, select

    from imagegen.src.billing.domain.models import CreditLedgerEntry, Profile, Purchase, WebhookEvent

    class Fetch:
        async def balance(self, user_id: str = USER_ID) -> int:
            async with db() as session:
                profile = await session.get(Profile, user_id)
                return profile.token_balance

        async def profile(self, user_id: str = USER_ID) -> Profile:
            async with db() as session:
                return await session.get(Profile, user_id)

        async def purchase(self, purchase_id: str = PURCHASE_ID) -> Purchase:
            async with db() as session:
                return await session.get(Purchase, purchase_id)

        async def ledger_count(self, purchase_id: str = PURCHASE_ID) -> int:
            async with db() as session:
                return await session.scalar(
                    select(func.count()).select_from(CreditLedgerEntry).where(CreditLedgerEntry.purchase_id == purchase_id)
                )

        async def webhook_events(self) -> list:
            async with db() as session:
                return list((await session.execute(select(WebhookEvent))).scalars().all())

    return Fetch()


@pytest.fixture
def auth_headers():
    return {'Authorization': f'Bearer {make_token()}'}


@pytest.fixture
def other_auth_headers():
    return {'Authorization': f'Bearer {make_token(OTHER_USER_ID, "outro@example.com")}'}


@pytest.fixture
def app(db):
    from imagegen.core.registrar import register_app

    return register_app()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url='http://test') as c:
        yield c
