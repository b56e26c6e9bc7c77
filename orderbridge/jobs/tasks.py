"""Background job tasks"""

from uuid import UUID
import asyncio
import structlog

from orderbridge.jobs.celery_app import celery_app
from orderbridge.config import settings

logger = structlog.get_logger()

_loop = None


def run_async(coro):
    """Helper to run async functions in sync context.

    One loop per worker process, so pooled database connections stay bound
    to the loop that opened them.
    """
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
    return _loop.run_until_complete(coro)


@celery_app.task(name="sweep_acceptance_timers")
def sweep_acceptance_timers():
    """Queue a fire task for every acceptance timer that is due"""

    async def _sweep():
        from orderbridge.database import SessionLocal
        from orderbridge.ingest.scheduler import AcceptanceScheduler

        async with SessionLocal() as db:
            scheduler = AcceptanceScheduler(db)
            return await scheduler.due_timer_ids(limit=settings.acceptance_sweep_batch_size)

    timer_ids = run_async(_sweep())
    for timer_id in timer_ids:
        fire_acceptance_timer.delay(str(timer_id))

    if timer_ids:
        logger.info("Acceptance timers due", count=len(timer_ids))


@celery_app.task(name="fire_acceptance_timer")
def fire_acceptance_timer(timer_id: str):
    """Auto-accept the timer's order if it is still pending"""

    async def _fire():
        from orderbridge.database import SessionLocal
        from orderbridge.ingest.notifier import get_notifier
        from orderbridge.ingest.scheduler import AcceptanceScheduler

        async with SessionLocal() as db:
            scheduler = AcceptanceScheduler(db, notifier=get_notifier())
            return await scheduler.fire(UUID(timer_id))

    outcome = run_async(_fire())
    logger.info("Acceptance timer processed", timer_id=timer_id, outcome=outcome.value)
    return outcome.value


@celery_app.task(name="drain_webhook_queue")
def drain_webhook_queue():
    """Replay queued webhooks that are due"""

    async def _drain():
        from orderbridge.database import SessionLocal
        from orderbridge.ingest.dispatcher import WebhookDispatcher
        from orderbridge.ingest.notifier import get_notifier

        async with SessionLocal() as db:
            dispatcher = WebhookDispatcher(db, notifier=get_notifier())
            return await dispatcher.replay_due()

    return run_async(_drain())


@celery_app.task(name="cleanup_webhook_queue")
def cleanup_webhook_queue():
    """Delete resolved queue entries past the retention window"""

    async def _cleanup():
        from orderbridge.database import SessionLocal
        from orderbridge.ingest.retry_queue import RetryQueue

        async with SessionLocal() as db:
            return await RetryQueue(db).purge_processed()

    deleted_count = run_async(_cleanup())
    logger.info("Cleaned up webhook queue", deleted_count=deleted_count)
