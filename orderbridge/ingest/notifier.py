"""Signal that an order has been accepted on the platform's behalf"""

from abc import ABC, abstractmethod

import structlog

from orderbridge.config import settings
from orderbridge.models.order import Order
from orderbridge.models.tenant import PlatformIntegration

logger = structlog.get_logger()


class AcceptanceNotifier(ABC):
    """Collaborator that tells a platform an order was accepted"""

    @abstractmethod
    async def notify_accepted(self, integration: PlatformIntegration, order: Order) -> None:
        """Raise on failure; the caller records and logs it"""


class CeleryAcceptanceNotifier(AcceptanceNotifier):
    """Publishes an acceptance task for the worker that owns platform API calls"""

    def __init__(self, task_name: str = None):
        self.task_name = task_name or settings.acceptance_notify_task

    async def notify_accepted(self, integration: PlatformIntegration, order: Order) -> None:
        from orderbridge.jobs.celery_app import celery_app

        celery_app.send_task(
            self.task_name,
            kwargs={
                "platform": integration.platform,
                "integration_id": str(integration.id),
                "order_id": str(order.id),
                "platform_order_id": order.platform_order_id,
            },
        )
        logger.info(
            "Acceptance notification published",
            platform=integration.platform,
            order_id=str(order.id),
            task=self.task_name,
        )


def get_notifier() -> AcceptanceNotifier:
    """FastAPI dependency / default notifier"""
    return CeleryAcceptanceNotifier()
