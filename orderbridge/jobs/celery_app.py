"""Celery application configuration"""

from celery import Celery
from celery.signals import worker_process_init

from orderbridge.config import settings
from orderbridge.log import configure_logging

# Create Celery app
celery_app = Celery(
    "orderbridge",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "orderbridge.jobs.tasks",
    ],
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Beat schedule for periodic tasks
    beat_schedule={
        "sweep-acceptance-timers": {
            "task": "sweep_acceptance_timers",
            "schedule": settings.acceptance_sweep_interval_seconds,
        },
        "drain-webhook-queue": {
            "task": "drain_webhook_queue",
            "schedule": settings.queue_drain_interval_seconds,
        },
        "cleanup-webhook-queue": {
            "task": "cleanup_webhook_queue",
            "schedule": 86400.0,  # Daily
        },
    },
)


@worker_process_init.connect
def setup_worker_logging(**kwargs):
    configure_logging()
