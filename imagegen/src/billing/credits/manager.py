"""
Credit Manager

Credit bookkeeping for purchases:
- Exactly-once grant of a purchase's credits (status flip + balance
  increment + ledger entry in one transaction)
- Unlimited plan activation for unlimited products
- Profile bootstrap and cached balance reads
"""

import logging
from typing import Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from imagegen.core.conf import settings
from imagegen.src.billing.domain.models import CreditLedgerEntry, Product, Profile, Purchase
from imagegen.src.billing.domain.results import CreditGrantResult
from imagegen.src.billing.shared.cache_utils import (
    get_cached_balance,
    invalidate_balance_cache,
    set_cached_balance,
)
from imagegen.src.billing.shared.config import (
    SUBSCRIPTION_STATUS_ACTIVE,
    LedgerEntryType,
    PurchaseStatus,
)
from imagegen.src.billing.shared.exceptions import (
    BillingError,
    LedgerUpdateError,
    PurchaseNotFoundError,
)
from imagegen.utils.timezone import timezone

logger = logging.getLogger(__name__)


class CreditManager:
    """
    Manages credit operations for user profiles.

    The only write path for purchased credits is `apply_purchase_credit`.
    Its guard is the purchase row itself: the UPDATE only matches while
    status is still 'pending', so concurrent webhook and poll calls for
    the same purchase cannot both grant.

    Usage:
        credit_manager = CreditManager()

        result = await credit_manager.apply_purchase_credit(purchase_id)
        if result.already_processed:
            ...
    """

    # =========================================================================
    # APPLY PURCHASE CREDIT
    # =========================================================================

    async def apply_purchase_credit(self, purchase_id: str) -> CreditGrantResult:
        """
        Grant a pending purchase's credits to its owner, exactly once.

        Args:
            purchase_id: Internal purchase id

        Returns:
            CreditGrantResult. `already_processed` is True when the purchase
            was no longer pending, in which case nothing was changed.

        Raises:
            PurchaseNotFoundError: No purchase with this id
            LedgerUpdateError: The grant could not be committed (nothing was written)
        """
        from imagegen.database.db import async_db_session

        user_id: Optional[str] = None

        try:
            async with async_db_session.begin() as session:
                now = timezone.now()

                flipped = (
                    await session.execute(
                        update(Purchase)
                        .where(
                            Purchase.id == purchase_id,
                            Purchase.status == PurchaseStatus.PENDING.value,
                        )
                        .values(status=PurchaseStatus.COMPLETED.value, completed_at=now)
                        .returning(Purchase.user_id, Purchase.product_id, Purchase.tokens_granted)
                    )
                ).first()

                if flipped is None:
                    existing = (
                        await session.execute(
                            select(Purchase.status, Purchase.user_id).where(Purchase.id == purchase_id)
                        )
                    ).first()

                    if existing is None:
                        raise PurchaseNotFoundError(purchase_id=purchase_id)

                    if existing.status != PurchaseStatus.COMPLETED.value:
                        logger.warning(
                            f"[CREDITS] Purchase {purchase_id} is {existing.status}, not granting credits"
                        )
                    else:
                        logger.info(f"[CREDITS] Purchase {purchase_id} already processed, skipping")

                    return CreditGrantResult(
                        purchase_id=purchase_id,
                        user_id=existing.user_id,
                        already_processed=True,
                    )

                user_id = flipped.user_id
                credits = flipped.tokens_granted

                profile_values = {'token_balance': Profile.token_balance + credits}

                product = await session.get(Product, flipped.product_id)
                if product is not None and product.is_unlimited:
                    profile_values.update(
                        subscription_plan=product.name,
                        subscription_status=SUBSCRIPTION_STATUS_ACTIVE,
                        subscription_end_date=timezone.add_months(now, settings.SUBSCRIPTION_PERIOD_MONTHS),
                        monthly_usage=0,
                    )

                balance_after = (
                    await session.execute(
                        update(Profile)
                        .where(Profile.id == user_id)
                        .values(**profile_values)
                        .returning(Profile.token_balance)
                    )
                ).scalar_one_or_none()

                if balance_after is None:
                    # Raising inside the transaction rolls back the status flip as well
                    raise LedgerUpdateError(
                        message=f"Profile not found for purchase {purchase_id}",
                        purchase_id=purchase_id,
                        user_id=user_id,
                    )

                session.add(
                    CreditLedgerEntry(
                        user_id=user_id,
                        amount=credits,
                        balance_after=balance_after,
                        type=LedgerEntryType.PURCHASE.value,
                        purchase_id=purchase_id,
                        description=f"Purchase of {product.name if product else flipped.product_id}",
                    )
                )

        except BillingError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"[CREDITS] Database error granting purchase {purchase_id}: {e}", exc_info=True)
            raise LedgerUpdateError(
                message=f"Failed to apply purchase credits: {e}",
                purchase_id=purchase_id,
                user_id=user_id,
            ) from e

        await invalidate_balance_cache(user_id)

        logger.info(
            f"[CREDITS] ✅ Granted {credits} credits to {user_id} for purchase {purchase_id}. "
            f"New balance: {balance_after}"
        )

        return CreditGrantResult(
            purchase_id=purchase_id,
            user_id=user_id,
            credits_added=credits,
            balance_after=balance_after,
        )

    # =========================================================================
    # PROFILES & BALANCE
    # =========================================================================

    async def ensure_profile(self, user_id: str, email: Optional[str] = None) -> Profile:
        """
        Return the user's profile, creating an empty one on first use.

        Args:
            user_id: Auth provider user id
            email: Email from the access token, stored when missing

        Returns:
            Profile row
        """
        from imagegen.database.db import async_db_session

        async with async_db_session.begin() as session:
            profile = await session.get(Profile, user_id)
            if profile is None:
                profile = Profile(id=user_id, email=email)
                session.add(profile)
                logger.info(f"[CREDITS] Created profile for {user_id}")
            elif email and not profile.email:
                profile.email = email

        return profile

    async def get_balance(self, user_id: str) -> Dict:
        """
        Get a user's credit balance and plan state (cached).

        Args:
            user_id: Auth provider user id

        Returns:
            Dict with user_id, token_balance, subscription fields
        """
        cached = await get_cached_balance(user_id)
        if cached is not None:
            return cached

        from imagegen.database.db import async_db_session

        async with async_db_session() as session:
            profile = await session.get(Profile, user_id)

        snapshot = {
            'user_id': user_id,
            'token_balance': profile.token_balance if profile else 0,
            'subscription_plan': profile.subscription_plan if profile else None,
            'subscription_status': profile.subscription_status if profile else None,
            'subscription_end_date': (
                profile.subscription_end_date.isoformat()
                if profile and profile.subscription_end_date
                else None
            ),
        }

        await set_cached_balance(user_id, snapshot)
        return snapshot


# Global instance
credit_manager = CreditManager()
