"""
Confirmation Polling

Bounded polling of the confirmation endpoint after a checkout. The
caller gets a PollOutcome; when `exhausted` is set it should offer a
manual "I already paid" retry instead of polling forever.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from imagegen.core.conf import settings
from imagegen.src.billing.domain.results import ConfirmationResult
from imagegen.src.billing.shared.exceptions import BillingError

logger = logging.getLogger(__name__)

ConfirmFn = Callable[[], Awaitable[ConfirmationResult]]


@dataclass(frozen=True)
class PollOutcome:
    """Last answer seen and how many attempts it took."""
    result: Optional[ConfirmationResult]
    attempts: int

    @property
    def activated(self) -> bool:
        return self.result is not None and self.result.activated

    @property
    def exhausted(self) -> bool:
        """Attempts ran out while the payment was still pending (or unreachable)."""
        return self.result is None or self.result.should_keep_polling


class ConfirmationPoller:
    """
    Calls `confirm` until it stops answering pending.

    Usage:
        poller = ConfirmationPoller(lambda: api.confirm_payment(billing_id))
        outcome = await poller.run()
        if outcome.exhausted:
            ...
    """

    def __init__(
        self,
        confirm: ConfirmFn,
        max_attempts: Optional[int] = None,
        interval: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.confirm = confirm
        self.max_attempts = settings.BILLING_CONFIRM_POLL_MAX_ATTEMPTS if max_attempts is None else max_attempts
        self.interval = settings.BILLING_CONFIRM_POLL_INTERVAL_SECONDS if interval is None else interval
        self._sleep = sleep

    async def run(self) -> PollOutcome:
        result: Optional[ConfirmationResult] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                result = await self.confirm()
            except (httpx.HTTPError, BillingError) as e:
                # A failed attempt counts; the payment may still be pending
                logger.warning(f"[RECONCILIATION] Confirmation attempt {attempt} failed: {e}")
            else:
                if not result.should_keep_polling:
                    logger.info(f"[RECONCILIATION] Confirmation finished after {attempt} attempts: {result.status.value}")
                    return PollOutcome(result=result, attempts=attempt)

            if attempt < self.max_attempts:
                await self._sleep(self.interval)

        logger.info(f"[RECONCILIATION] Confirmation still pending after {self.max_attempts} attempts")
        return PollOutcome(result=result, attempts=self.max_attempts)
