"""
Purchase Store

Lookups and inserts for purchase rows. Purchases are keyed by the
internal id and by the provider's billing id; neither provider id is
trusted to be globally unique, so lookups try the internal id first.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select

from imagegen.database.db import uuid4_str
from imagegen.src.billing.domain.models import Product, Purchase
from imagegen.src.billing.shared.config import PaymentProvider, PurchaseStatus
from imagegen.src.billing.shared.exceptions import ProductNotFoundError

logger = logging.getLogger(__name__)


class PurchaseStore:
    """
    Read/write access to purchases and the product catalog.

    Usage:
        purchase = await purchase_store.find_for_webhook(external_id, billing_id)
    """

    # -------------------------------------------------------------------------
    # Products
    # -------------------------------------------------------------------------

    async def get_product(self, product_id: str) -> Product:
        """Get an active product or raise ProductNotFoundError."""
        from imagegen.database.db import async_db_session

        async with async_db_session() as session:
            product = await session.get(Product, product_id)

        if product is None or not product.active:
            raise ProductNotFoundError(product_id)
        return product

    async def list_products(self) -> List[Product]:
        from imagegen.database.db import async_db_session

        async with async_db_session() as session:
            result = await session.execute(
                select(Product).where(Product.active.is_(True)).order_by(Product.price_in_cents)
            )
            return list(result.scalars().all())

    # -------------------------------------------------------------------------
    # Inserts
    # -------------------------------------------------------------------------

    async def create_pending(
        self,
        *,
        user_id: str,
        product: Product,
        provider: PaymentProvider,
        purchase_id: Optional[str] = None,
        abacate_billing_id: Optional[str] = None,
        stripe_session_id: Optional[str] = None,
        checkout_url: Optional[str] = None,
    ) -> Purchase:
        """
        Record a pending purchase for a checkout that was just created.

        Args:
            user_id: Buyer
            product: Product bought; price and credits are copied onto the row
            provider: Checkout provider
            purchase_id: Id generated before the provider call (sent as externalId)
            abacate_billing_id: AbacatePay billing id
            stripe_session_id: Stripe Checkout session id
            checkout_url: Hosted checkout url

        Returns:
            The persisted Purchase
        """
        from imagegen.database.db import async_db_session

        purchase = Purchase(
            id=purchase_id or uuid4_str(),
            user_id=user_id,
            product_id=product.id,
            amount_paid=product.price_in_cents,
            tokens_granted=product.tokens_granted,
            provider=provider.value,
            abacate_billing_id=abacate_billing_id,
            stripe_session_id=stripe_session_id,
            checkout_url=checkout_url,
        )

        async with async_db_session.begin() as session:
            session.add(purchase)

        logger.info(
            f"[PURCHASES] Recorded pending {provider.value} purchase {purchase.id} "
            f"for {user_id} ({product.tokens_granted} credits)"
        )
        return purchase

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    async def get_by_id(self, purchase_id: str) -> Optional[Purchase]:
        from imagegen.database.db import async_db_session

        async with async_db_session() as session:
            return await session.get(Purchase, purchase_id)

    async def get_by_billing_id(self, billing_id: str, user_id: Optional[str] = None) -> Optional[Purchase]:
        """Most recent purchase carrying this AbacatePay billing id, optionally for one user."""
        from imagegen.database.db import async_db_session

        stmt = select(Purchase).where(Purchase.abacate_billing_id == billing_id)
        if user_id is not None:
            stmt = stmt.where(Purchase.user_id == user_id)
        stmt = stmt.order_by(Purchase.created_time.desc()).limit(1)

        async with async_db_session() as session:
            return (await session.execute(stmt)).scalars().first()

    async def get_by_stripe_session(self, session_id: str) -> Optional[Purchase]:
        from imagegen.database.db import async_db_session

        async with async_db_session() as session:
            result = await session.execute(select(Purchase).where(Purchase.stripe_session_id == session_id))
            return result.scalars().first()

    async def find_for_webhook(
        self,
        external_id: Optional[str],
        billing_id: Optional[str],
    ) -> Optional[Purchase]:
        """
        Resolve the purchase a webhook refers to.

        The external id is our own purchase id, so it is tried first;
        the provider billing id is the fallback.
        """
        if external_id:
            purchase = await self.get_by_id(external_id)
            if purchase is not None:
                return purchase
            logger.debug(f"[PURCHASES] No purchase with id {external_id}, falling back to billing id")

        if billing_id:
            return await self.get_by_billing_id(billing_id)

        return None

    async def latest_pending_for_user(
        self,
        user_id: str,
        provider: PaymentProvider = PaymentProvider.ABACATEPAY,
    ) -> Optional[Purchase]:
        """The user's most recent pending purchase that has a provider billing id."""
        from imagegen.database.db import async_db_session

        async with async_db_session() as session:
            result = await session.execute(
                select(Purchase)
                .where(
                    Purchase.user_id == user_id,
                    Purchase.provider == provider.value,
                    Purchase.status == PurchaseStatus.PENDING.value,
                    Purchase.abacate_billing_id.is_not(None),
                )
                .order_by(Purchase.created_time.desc())
                .limit(1)
            )
            return result.scalars().first()

    async def list_pending_since(
        self,
        since: datetime,
        provider: PaymentProvider = PaymentProvider.ABACATEPAY,
    ) -> List[Purchase]:
        """Pending purchases with a billing id created after `since`, oldest first."""
        from imagegen.database.db import async_db_session

        async with async_db_session() as session:
            result = await session.execute(
                select(Purchase)
                .where(
                    Purchase.provider == provider.value,
                    Purchase.status == PurchaseStatus.PENDING.value,
                    Purchase.abacate_billing_id.is_not(None),
                    Purchase.created_time >= since,
                )
                .order_by(Purchase.created_time)
            )
            return list(result.scalars().all())

    async def list_for_user(self, user_id: str, limit: int = 20, offset: int = 0) -> tuple[List[Purchase], int]:
        """A page of the user's purchases, newest first, plus the total count."""
        from imagegen.database.db import async_db_session

        async with async_db_session() as session:
            result = await session.execute(
                select(Purchase)
                .where(Purchase.user_id == user_id)
                .order_by(Purchase.created_time.desc())
                .limit(limit)
                .offset(offset)
            )
            purchases = list(result.scalars().all())

            total = await session.scalar(
                select(func.count()).select_from(Purchase).where(Purchase.user_id == user_id)
            )

        return purchases, total or 0


# Global instance
purchase_store = PurchaseStore()
