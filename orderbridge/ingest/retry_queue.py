"""Durable retry queue for webhooks that failed on a transient condition

Entries keep the raw request (platform, tenant hint, body bytes, headers)
so a replay runs the whole pipeline again, signature check included.
"""

from datetime import datetime, timedelta
from typing import AsyncIterator, Dict, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from orderbridge.config import Settings, settings as default_settings
from orderbridge.database import utcnow
from orderbridge.models.queue import WebhookQueueEntry

logger = structlog.get_logger()


class RetryQueue:
    """Stores failed webhooks and hands them back when they are due"""

    def __init__(self, db: AsyncSession, config: Optional[Settings] = None):
        self.db = db
        self.config = config or default_settings

    def retry_delay(self, attempt: int) -> timedelta:
        """Backoff after ``attempt`` failed attempts: 2^attempt minutes, capped"""
        seconds = min((2 ** attempt) * 60, self.config.retry_max_delay_seconds)
        return timedelta(seconds=seconds)

    async def enqueue(
        self,
        platform: str,
        tenant_hint: Optional[str],
        raw_body: bytes,
        headers: Dict[str, str],
        error: str,
    ) -> WebhookQueueEntry:
        """Park a webhook for replay.

        The failed delivery counts as the first attempt; the first replay
        runs after ``retry_initial_delay_seconds``.
        """
        now = utcnow()
        entry = WebhookQueueEntry(
            platform=platform,
            tenant_hint=tenant_hint,
            raw_body=raw_body,
            headers={k.lower(): v for k, v in headers.items()},
            attempt_count=1,
            max_attempts=self.config.retry_max_attempts,
            next_attempt_at=now + timedelta(seconds=self.config.retry_initial_delay_seconds),
            last_error=error,
            created_at=now,
            updated_at=now,
        )
        self.db.add(entry)
        await self.db.commit()

        logger.warning(
            "Webhook queued for retry",
            entry_id=str(entry.id),
            platform=platform,
            error=error,
            next_attempt_at=entry.next_attempt_at.isoformat(),
        )
        return entry

    async def drain(self, now: Optional[datetime] = None) -> AsyncIterator[WebhookQueueEntry]:
        """Yield due entries, oldest first, at most one batch per call.

        Each entry is leased before it is yielded: its next_attempt_at moves
        ``retry_lease_seconds`` ahead and the lease is committed, so another
        drainer skips it until the caller marks it resolved or failed. An
        entry whose drainer dies becomes due again when the lease runs out.
        """
        now = now or utcnow()
        for _ in range(self.config.retry_batch_size):
            entry = await self._lease_next(now)
            if entry is None:
                return
            yield entry

    async def _lease_next(self, now: datetime) -> Optional[WebhookQueueEntry]:
        result = await self.db.execute(
            select(WebhookQueueEntry)
            .where(
                WebhookQueueEntry.processed_at.is_(None),
                WebhookQueueEntry.abandoned_at.is_(None),
                WebhookQueueEntry.next_attempt_at <= now,
            )
            .order_by(WebhookQueueEntry.next_attempt_at, WebhookQueueEntry.created_at)
            .limit(1)
            .with_for_update(skip_locked=True)
            .execution_options(populate_existing=True)
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            await self.db.commit()
            return None

        # Lease from the later of both clocks so this drain cannot pick it up again
        entry.next_attempt_at = max(now, utcnow()) + timedelta(seconds=self.config.retry_lease_seconds)
        entry.updated_at = utcnow()
        await self.db.commit()
        return entry

    async def mark_resolved(self, entry_id: UUID) -> None:
        entry = await self.db.get(WebhookQueueEntry, entry_id)
        if entry is None:
            return
        now = utcnow()
        entry.processed_at = now
        entry.updated_at = now
        await self.db.commit()
        logger.info(
            "Queued webhook resolved",
            entry_id=str(entry_id),
            platform=entry.platform,
            attempts=entry.attempt_count,
        )

    async def mark_failed(self, entry_id: UUID, error: str, permanent: bool = False) -> bool:
        """Record a failed replay and schedule the next one, or give up.

        Returns True when the entry was abandoned.
        """
        entry = await self.db.get(WebhookQueueEntry, entry_id)
        if entry is None:
            return False

        now = utcnow()
        entry.attempt_count += 1
        entry.last_error = error
        entry.updated_at = now

        if permanent or entry.attempt_count >= entry.max_attempts:
            entry.abandoned_at = now
            logger.error(
                "Queued webhook abandoned",
                entry_id=str(entry_id),
                platform=entry.platform,
                tenant_hint=entry.tenant_hint,
                attempts=entry.attempt_count,
                permanent=permanent,
                error=error,
            )
        else:
            entry.next_attempt_at = now + self.retry_delay(entry.attempt_count)
            logger.warning(
                "Queued webhook retry failed",
                entry_id=str(entry_id),
                platform=entry.platform,
                attempts=entry.attempt_count,
                next_attempt_at=entry.next_attempt_at.isoformat(),
                error=error,
            )

        await self.db.commit()
        return entry.is_abandoned

    async def purge_processed(self, older_than: Optional[datetime] = None) -> int:
        """Delete resolved entries; returns how many were removed"""
        cutoff = older_than or utcnow() - timedelta(hours=self.config.retry_retention_hours)
        result = await self.db.execute(
            delete(WebhookQueueEntry).where(
                WebhookQueueEntry.processed_at.is_not(None),
                WebhookQueueEntry.processed_at < cutoff,
            ).execution_options(synchronize_session=False)
        )
        await self.db.commit()
        logger.info("Processed webhook entries purged", count=result.rowcount)
        return result.rowcount
