"""
Reconciliation Service

Pull path of payment reconciliation. Used when a webhook was lost or
has not arrived yet:
- Confirmation for one user (the "I already paid" button and the
  post-checkout polling loop)
- Sweep of recent pending purchases (CLI, cron)

Both ask AbacatePay for the billing status and grant through the credit
manager, so they are safe to run alongside webhooks.
"""

import logging
from datetime import timedelta
from typing import Dict, Optional

from imagegen.core.conf import settings
from imagegen.src.billing.credits.manager import CreditManager, credit_manager
from imagegen.src.billing.domain.models import Purchase
from imagegen.src.billing.domain.results import ConfirmationResult, ConfirmationStatus
from imagegen.src.billing.external.abacatepay.status import ProviderStatus, StatusResolver, status_resolver
from imagegen.src.billing.shared.config import (
    MESSAGE_ACTIVATED,
    MESSAGE_ALREADY_PROCESSED,
    MESSAGE_NOT_FOUND,
    MESSAGE_PENDING,
    PurchaseStatus,
)
from imagegen.src.billing.shared.exceptions import BillingError
from imagegen.utils.timezone import timezone
from .interfaces import ReconciliationManagerInterface
from .store import PurchaseStore, purchase_store

logger = logging.getLogger(__name__)


class ReconciliationService(ReconciliationManagerInterface):
    """
    Handles payment confirmation and pending purchase sweeps.

    Usage:
        from imagegen.src.billing.payments import reconciliation_service

        result = await reconciliation_service.confirm_for_user(user_id)
        if result.activated:
            ...

        results = await reconciliation_service.reconcile_pending_purchases(hours=48)
    """

    def __init__(
        self,
        resolver: Optional[StatusResolver] = None,
        store: Optional[PurchaseStore] = None,
        credits: Optional[CreditManager] = None,
    ):
        self.resolver = resolver or status_resolver
        self.store = store or purchase_store
        self.credits = credits or credit_manager

    # =========================================================================
    # CONFIRMATION
    # =========================================================================

    async def confirm_for_user(self, user_id: str, billing_id: Optional[str] = None) -> ConfirmationResult:
        """
        Confirm a user's AbacatePay purchase.

        Args:
            user_id: Authenticated caller; only their purchases are considered
            billing_id: Specific billing to check. Without it the caller's
                most recent pending purchase is used.

        Returns:
            ConfirmationResult: activated, pending or not_found

        Raises:
            LedgerUpdateError: Provider says paid but the grant could not be committed
        """
        if billing_id:
            purchase = await self.store.get_by_billing_id(billing_id, user_id=user_id)
        else:
            purchase = await self.store.latest_pending_for_user(user_id)

        if purchase is None:
            logger.info(f"[RECONCILIATION] No purchase to confirm for {user_id} (billing_id={billing_id})")
            return ConfirmationResult(status=ConfirmationStatus.NOT_FOUND, message=MESSAGE_NOT_FOUND)

        if purchase.is_completed:
            return ConfirmationResult(
                status=ConfirmationStatus.ACTIVATED,
                message=MESSAGE_ALREADY_PROCESSED,
                billing_id=purchase.abacate_billing_id,
            )

        if purchase.status != PurchaseStatus.PENDING.value:
            return ConfirmationResult(
                status=ConfirmationStatus.PENDING,
                message=MESSAGE_PENDING.format(status=purchase.status),
                billing_id=purchase.abacate_billing_id,
            )

        provider_status = await self.resolver.resolve(purchase.abacate_billing_id)

        if provider_status != ProviderStatus.PAID:
            logger.info(
                f"[RECONCILIATION] Purchase {purchase.id} not paid yet (provider status: {provider_status.value})"
            )
            return ConfirmationResult(
                status=ConfirmationStatus.PENDING,
                message=MESSAGE_PENDING.format(status=provider_status.value),
                provider_status=provider_status.value,
                billing_id=purchase.abacate_billing_id,
            )

        result = await self.credits.apply_purchase_credit(purchase.id)

        if result.already_processed:
            return ConfirmationResult(
                status=ConfirmationStatus.ACTIVATED,
                message=MESSAGE_ALREADY_PROCESSED,
                billing_id=purchase.abacate_billing_id,
            )

        logger.info(f"[RECONCILIATION] ✅ Confirmed purchase {purchase.id} for {user_id}")
        return ConfirmationResult(
            status=ConfirmationStatus.ACTIVATED,
            message=MESSAGE_ACTIVATED,
            credits_added=result.credits_added,
            billing_id=purchase.abacate_billing_id,
        )

    # =========================================================================
    # PENDING SWEEP
    # =========================================================================

    async def reconcile_pending_purchases(self, hours: Optional[int] = None) -> Dict:
        """
        Reconcile pending AbacatePay purchases whose webhook never landed.

        Args:
            hours: Look back period in hours

        Returns:
            Dict with checked, fixed, pending, failed counts and errors
        """
        hours = hours or settings.RECONCILIATION_LOOKBACK_HOURS
        results = {
            'checked': 0,
            'fixed': 0,
            'pending': 0,
            'failed': 0,
            'errors': []
        }

        since = timezone.now() - timedelta(hours=hours)
        pending = await self.store.list_pending_since(since)

        if not pending:
            logger.info("[RECONCILIATION] No pending purchases found")
            return results

        results['checked'] = len(pending)
        logger.info(f"[RECONCILIATION] Checking {len(pending)} pending purchases from the last {hours}h")

        for purchase in pending:
            try:
                granted = await self._reconcile_one(purchase)
            except BillingError as e:
                logger.error(f"[RECONCILIATION] Failed to reconcile purchase {purchase.id}: {e}")
                results['failed'] += 1
                results['errors'].append({'purchase_id': purchase.id, 'error': e.message})
                continue

            if granted:
                results['fixed'] += 1
            else:
                results['pending'] += 1

        logger.info(
            f"[RECONCILIATION] Done: checked={results['checked']}, fixed={results['fixed']}, "
            f"pending={results['pending']}, failed={results['failed']}"
        )
        return results

    async def _reconcile_one(self, purchase: Purchase) -> bool:
        status = await self.resolver.resolve(purchase.abacate_billing_id)
        if status != ProviderStatus.PAID:
            return False

        logger.warning(f"[RECONCILIATION] Found paid billing without credits: purchase {purchase.id}")
        result = await self.credits.apply_purchase_credit(purchase.id)
        return result.granted


# Global instance
reconciliation_service = ReconciliationService()
