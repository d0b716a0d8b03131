"""
Webhook Lock and Deduplication

Tracks provider webhook deliveries in `webhook_events` so the same
event is not processed twice by concurrent or repeated deliveries.
Purchase-level idempotency does not depend on this table; it only
short-circuits deliveries that are known to be done.
"""

import logging
from datetime import timedelta
from typing import Optional, Tuple

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError

from imagegen.core.conf import settings
from imagegen.src.billing.domain.models import WebhookEvent
from imagegen.utils.timezone import timezone

logger = logging.getLogger(__name__)


class WebhookLock:
    """
    Webhook lock for preventing duplicate processing.

    Status flow per event: processing -> completed | failed.
    A failed event, or one stuck in processing longer than the stuck
    window, may be picked up again.
    """

    @classmethod
    async def check_and_mark_webhook_processing(
        cls,
        event_id: str,
        event_type: str,
        provider: str,
    ) -> Tuple[bool, str]:
        """
        Check if a webhook can be processed and mark it as in-progress.

        Args:
            event_id: Provider event id or body digest
            event_type: Type of webhook event
            provider: abacatepay or stripe

        Returns:
            Tuple of (can_process: bool, reason: str)
        """
        from imagegen.database.db import async_db_session

        try:
            async with async_db_session.begin() as session:
                existing = await session.get(WebhookEvent, event_id, with_for_update=True)
                now = timezone.now()

                if existing is None:
                    session.add(WebhookEvent(id=event_id, provider=provider, event_type=event_type))
                    return True, "Processing"

                if existing.status == 'completed':
                    return False, "Event already processed"

                if existing.status == 'processing':
                    age = (now - existing.created_time).total_seconds()
                    if age < settings.WEBHOOK_PROCESSING_STUCK_SECONDS:
                        return False, "Event currently being processed"
                    logger.warning(f"[WEBHOOK LOCK] Event {event_id} stuck in processing, allowing retry")
                else:
                    logger.info(f"[WEBHOOK LOCK] Retrying failed event {event_id}")

                existing.status = 'processing'
                existing.error_message = None
                existing.created_time = now
                return True, "Processing"

        except IntegrityError:
            # Another delivery inserted the row first
            return False, "Event currently being processed"
        except Exception as e:
            logger.error(f"[WEBHOOK LOCK] Error checking/marking event {event_id}: {e}")
            # Prefer duplicate processing over dropping; purchases are guarded separately
            return True, f"Lock error: {e}"

    @classmethod
    async def mark_webhook_completed(cls, event_id: str) -> bool:
        """
        Mark a webhook event as successfully processed.

        Returns:
            True if marked successfully
        """
        from imagegen.database.db import async_db_session

        try:
            async with async_db_session.begin() as session:
                await session.execute(
                    update(WebhookEvent)
                    .where(WebhookEvent.id == event_id)
                    .values(status='completed', completed_at=timezone.now())
                )

            logger.debug(f"[WEBHOOK LOCK] Marked event {event_id} as completed")
            return True

        except Exception as e:
            logger.error(f"[WEBHOOK LOCK] Error marking event {event_id} completed: {e}")
            return False

    @classmethod
    async def mark_webhook_failed(cls, event_id: str, error_message: str) -> bool:
        """
        Mark a webhook event as failed so a redelivery is processed again.

        Returns:
            True if marked successfully
        """
        from imagegen.database.db import async_db_session

        try:
            async with async_db_session.begin() as session:
                await session.execute(
                    update(WebhookEvent)
                    .where(WebhookEvent.id == event_id)
                    .values(status='failed', error_message=error_message[:1000], completed_at=timezone.now())
                )

            logger.warning(f"[WEBHOOK LOCK] Marked event {event_id} as failed: {error_message[:100]}")
            return True

        except Exception as e:
            logger.error(f"[WEBHOOK LOCK] Error marking event {event_id} failed: {e}")
            return False

    @classmethod
    async def cleanup_old_events(cls, days: Optional[int] = None) -> int:
        """
        Clean up old webhook events to prevent table bloat.

        Args:
            days: Delete events older than this many days

        Returns:
            Number of events deleted
        """
        from imagegen.database.db import async_db_session

        cutoff = timezone.now() - timedelta(days=days or settings.WEBHOOK_EVENT_RETENTION_DAYS)

        async with async_db_session.begin() as session:
            result = await session.execute(delete(WebhookEvent).where(WebhookEvent.created_time < cutoff))
            deleted = result.rowcount or 0

        if deleted > 0:
            logger.info(f"[WEBHOOK LOCK] Cleaned up {deleted} old webhook events")

        return deleted
