"""Acceptance deadlines and auto-accept for pending platform orders

Each new pending order gets a persisted AcceptanceTimer. A periodic sweep
(Celery beat) fires due timers; firing re-reads live state, so a timer
for an order that already left ``pending`` does nothing, however late or
often it fires.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from orderbridge.database import utcnow
from orderbridge.errors import SchedulingError
from orderbridge.ingest.notifier import AcceptanceNotifier
from orderbridge.models.acceptance import AcceptanceTimer, TimerOutcome, Urgency
from orderbridge.models.audit import AuditLog
from orderbridge.models.order import Order, OrderStatus
from orderbridge.models.tenant import PlatformIntegration
from orderbridge.platforms import get_adapter
from orderbridge.platforms.base import AcceptancePolicy
from orderbridge.schemas.order import UnifiedOrder

logger = structlog.get_logger()

SAME_DAY_HORIZON_HOURS = 24


@dataclass(frozen=True)
class AcceptanceWindow:
    deadline_at: datetime
    fire_at: datetime
    urgency: Urgency


def acceptance_deadline(
    placed_at: datetime,
    scheduled_for: Optional[datetime],
    policy: AcceptancePolicy,
) -> AcceptanceWindow:
    """deadline = placed_at + policy(hours until fulfilment)"""
    hours = 0.0
    if scheduled_for is not None:
        hours = max((scheduled_for - placed_at).total_seconds() / 3600, 0.0)

    step = policy.step_for(hours)
    deadline_at = placed_at + step.window
    fire_at = deadline_at - min(step.margin, step.window)
    urgency = Urgency.SAME_DAY if hours < SAME_DAY_HORIZON_HOURS else Urgency.ADVANCE
    return AcceptanceWindow(deadline_at=deadline_at, fire_at=fire_at, urgency=urgency)


def auto_accept_permitted(integration: PlatformIntegration, urgency: Urgency) -> bool:
    """Whether the integration's settings allow auto-accept for this urgency class"""
    if not integration.is_active:
        return False
    if integration.setting("auto_accept_orders"):
        return True
    return urgency == Urgency.SAME_DAY and bool(integration.setting("auto_accept_same_day"))


class AcceptanceScheduler:
    """Registers and fires acceptance timers"""

    def __init__(self, db: AsyncSession, notifier: Optional[AcceptanceNotifier] = None):
        self.db = db
        self.notifier = notifier

    async def register(self, order_id: UUID, order: UnifiedOrder) -> AcceptanceTimer:
        """Persist a timer; runs inside the caller's order transaction"""
        policy = get_adapter(order.platform).acceptance_policy
        window = acceptance_deadline(order.placed_at, order.scheduled_for, policy)

        timer = AcceptanceTimer(
            order_id=order_id,
            platform_integration_id=order.integration_id,
            urgency=window.urgency.value,
            deadline_at=window.deadline_at,
            fire_at=window.fire_at,
        )
        self.db.add(timer)
        await self.db.flush()

        logger.info(
            "Acceptance timer registered",
            order_id=str(order_id),
            platform=order.platform,
            urgency=window.urgency.value,
            deadline_at=window.deadline_at.isoformat(),
            fire_at=window.fire_at.isoformat(),
        )
        return timer

    async def due_timer_ids(self, now: Optional[datetime] = None, limit: int = 100) -> List[UUID]:
        now = now or utcnow()
        result = await self.db.execute(
            select(AcceptanceTimer.id)
            .where(AcceptanceTimer.fired_at.is_(None), AcceptanceTimer.fire_at <= now)
            .order_by(AcceptanceTimer.fire_at)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def fire(self, timer_id: UUID, now: Optional[datetime] = None) -> TimerOutcome:
        """Auto-accept the timer's order if it is still pending and allowed to"""
        if self.notifier is None:
            raise SchedulingError("No acceptance notifier configured")

        now = now or utcnow()
        timer = await self.db.get(AcceptanceTimer, timer_id, populate_existing=True)
        if timer is None:
            return TimerOutcome.MISSING
        if timer.fired_at is not None:
            return TimerOutcome.ALREADY_FIRED

        # Claim the timer so concurrent sweeps cannot both act on it
        claimed = await self.db.execute(
            update(AcceptanceTimer)
            .where(AcceptanceTimer.id == timer_id, AcceptanceTimer.fired_at.is_(None))
            .values(fired_at=now)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            await self.db.rollback()
            return TimerOutcome.ALREADY_FIRED
        timer.fired_at = now

        order = await self.db.get(Order, timer.order_id, populate_existing=True)
        integration = await self.db.get(PlatformIntegration, timer.platform_integration_id)

        if order is None or order.status != OrderStatus.PENDING.value:
            outcome = TimerOutcome.SKIPPED
        elif integration is None or not auto_accept_permitted(integration, Urgency(timer.urgency)):
            outcome = TimerOutcome.NOT_PERMITTED
            logger.warning(
                "Order still pending at acceptance deadline, auto-accept disabled",
                order_id=str(order.id),
                platform=order.platform,
                deadline_at=timer.deadline_at.isoformat(),
            )
        else:
            accepted = await self.db.execute(
                update(Order)
                .where(Order.id == order.id, Order.status == OrderStatus.PENDING.value)
                .values(status=OrderStatus.CONFIRMED.value, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if accepted.rowcount == 1:
                outcome = TimerOutcome.ACCEPTED
                self.db.add(
                    AuditLog(
                        organization_id=order.organization_id,
                        actor_type="system",
                        actor_name="acceptance_scheduler",
                        action="auto_accept_order",
                        resource_type="order",
                        resource_id=order.id,
                        data_json={
                            "before": {"status": OrderStatus.PENDING.value},
                            "after": {"status": OrderStatus.CONFIRMED.value},
                            "timer_id": str(timer.id),
                            "deadline_at": timer.deadline_at.isoformat(),
                        },
                    )
                )
            else:
                outcome = TimerOutcome.SKIPPED

        timer.outcome = outcome.value
        await self.db.commit()

        if outcome != TimerOutcome.ACCEPTED:
            logger.info("Acceptance timer fired", timer_id=str(timer_id), outcome=outcome.value)
            return outcome

        logger.info(
            "Order auto-accepted",
            order_id=str(order.id),
            platform=order.platform,
            platform_order_id=order.platform_order_id,
        )

        await self.db.refresh(order)
        try:
            await self.notifier.notify_accepted(integration, order)
        except Exception as e:
            error = SchedulingError(f"Platform acceptance notification failed: {e}")
            # The order stays confirmed; the platform must be told by hand
            logger.error(
                "Auto-accept notification failed",
                order_id=str(order.id),
                platform=order.platform,
                platform_order_id=order.platform_order_id,
                error=str(error),
                exc_info=True,
            )
            timer.outcome = TimerOutcome.NOTIFY_FAILED.value
            timer.last_error = str(error)
            await self.db.commit()
            return TimerOutcome.NOTIFY_FAILED

        return outcome
