"""Tests for acceptance deadlines and auto-accept"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from conftest import RecordingNotifier, encode, deliveroo_payload, uber_payload
from orderbridge.database import utcnow
from orderbridge.ingest.dispatcher import decode_body
from orderbridge.ingest.scheduler import (
    AcceptanceScheduler,
    acceptance_deadline,
    auto_accept_permitted,
)
from orderbridge.ingest.synchronizer import OrderSynchronizer
from orderbridge.models.acceptance import AcceptanceTimer, TimerOutcome, Urgency
from orderbridge.models.audit import AuditLog
from orderbridge.models.order import Order
from orderbridge.platforms import get_adapter
from orderbridge.platforms.base import DEFAULT_ACCEPTANCE_POLICY


PLACED = datetime(2026, 3, 1, 12, 0, 0)


def test_asap_order_deadline():
    window = acceptance_deadline(PLACED, None, DEFAULT_ACCEPTANCE_POLICY)
    assert window.deadline_at == PLACED + timedelta(minutes=15)
    assert window.fire_at == PLACED + timedelta(minutes=13)
    assert window.urgency == Urgency.SAME_DAY


def test_deadline_steps():
    next_day = acceptance_deadline(PLACED, PLACED + timedelta(hours=30), DEFAULT_ACCEPTANCE_POLICY)
    assert next_day.deadline_at == PLACED + timedelta(hours=2)
    assert next_day.urgency == Urgency.ADVANCE

    far = acceptance_deadline(PLACED, PLACED + timedelta(days=5), DEFAULT_ACCEPTANCE_POLICY)
    assert far.deadline_at == PLACED + timedelta(hours=24)
    assert far.fire_at == PLACED + timedelta(hours=23, minutes=30)


def test_deliveroo_asap_window_is_shorter():
    policy = get_adapter("deliveroo").acceptance_policy
    window = acceptance_deadline(PLACED, None, policy)
    assert window.deadline_at == PLACED + timedelta(minutes=3)
    assert window.fire_at == PLACED + timedelta(minutes=2, seconds=30)


@pytest.mark.parametrize("platform", ["uber_eats", "deliveroo", "just_eat"])
def test_deadline_is_monotonic_in_fulfilment_time(platform):
    """Test a later fulfilment time never yields an earlier deadline"""
    policy = get_adapter(platform).acceptance_policy
    previous = None
    for minutes in range(0, 6 * 24 * 60, 37):
        window = acceptance_deadline(PLACED, PLACED + timedelta(minutes=minutes), policy)
        if previous is not None:
            assert window.deadline_at >= previous
        previous = window.deadline_at


def test_scheduled_time_before_placement_counts_as_asap():
    window = acceptance_deadline(PLACED, PLACED - timedelta(hours=1), DEFAULT_ACCEPTANCE_POLICY)
    assert window.deadline_at == PLACED + timedelta(minutes=15)


@pytest.mark.asyncio
async def test_auto_accept_permitted(uber_integration):
    uber_integration.settings = {"auto_accept_orders": False, "auto_accept_same_day": True}
    assert auto_accept_permitted(uber_integration, Urgency.SAME_DAY)
    assert not auto_accept_permitted(uber_integration, Urgency.ADVANCE)

    uber_integration.settings = {"auto_accept_orders": True}
    assert auto_accept_permitted(uber_integration, Urgency.ADVANCE)

    uber_integration.settings = {}
    assert not auto_accept_permitted(uber_integration, Urgency.SAME_DAY)

    uber_integration.settings = {"auto_accept_orders": True}
    uber_integration.is_active = False
    assert not auto_accept_permitted(uber_integration, Urgency.SAME_DAY)


async def create_pending(db, integration, branch, payload, platform="uber_eats"):
    adapter = get_adapter(platform)
    order = adapter.normalize(decode_body(encode(payload)), integration)
    order = order.model_copy(update={"branch_id": branch.id})
    result = await OrderSynchronizer(db, AcceptanceScheduler(db)).upsert(order)
    timer = (
        await db.execute(select(AcceptanceTimer).where(AcceptanceTimer.order_id == result.order_id))
    ).scalar_one()
    return result.order_id, timer


async def stored_status(db, order_id):
    result = await db.execute(select(Order.status).where(Order.id == order_id))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_pending_order_auto_accepted_at_deadline(test_db, deliveroo_integration, test_branch):
    """Test a same-day Deliveroo order is confirmed when its timer fires"""
    placed = utcnow()
    order_id, timer = await create_pending(
        test_db, deliveroo_integration, test_branch,
        deliveroo_payload(placed_at=placed), platform="deliveroo",
    )
    assert timer.urgency == "same_day"
    assert timer.deadline_at == placed.replace(microsecond=0) + timedelta(minutes=3)

    notifier = RecordingNotifier()
    scheduler = AcceptanceScheduler(test_db, notifier)
    fire_time = timer.fire_at + timedelta(seconds=1)

    assert await scheduler.due_timer_ids(timer.fire_at - timedelta(seconds=1)) == []
    assert await scheduler.due_timer_ids(fire_time) == [timer.id]

    outcome = await scheduler.fire(timer.id, now=fire_time)

    assert outcome == TimerOutcome.ACCEPTED
    assert await stored_status(test_db, order_id) == "confirmed"
    assert notifier.calls == [(deliveroo_integration.id, order_id)]

    audit = (await test_db.execute(select(AuditLog))).scalar_one()
    assert audit.action == "auto_accept_order"
    assert audit.resource_id == order_id
    assert audit.actor_type == "system"


@pytest.mark.asyncio
async def test_timer_never_fires_twice(test_db, uber_integration, test_branch):
    order_id, timer = await create_pending(test_db, uber_integration, test_branch, uber_payload())
    notifier = RecordingNotifier()
    scheduler = AcceptanceScheduler(test_db, notifier)

    assert await scheduler.fire(timer.id) == TimerOutcome.ACCEPTED
    assert await scheduler.fire(timer.id) == TimerOutcome.ALREADY_FIRED
    assert len(notifier.calls) == 1
    assert await scheduler.due_timer_ids(utcnow() + timedelta(days=2)) == []


@pytest.mark.asyncio
async def test_timer_skips_order_no_longer_pending(test_db, uber_integration, test_branch):
    order_id, timer = await create_pending(test_db, uber_integration, test_branch, uber_payload())
    order = await test_db.get(Order, order_id)
    order.status = "preparing"
    await test_db.commit()

    notifier = RecordingNotifier()
    outcome = await AcceptanceScheduler(test_db, notifier).fire(timer.id)

    assert outcome == TimerOutcome.SKIPPED
    assert await stored_status(test_db, order_id) == "preparing"
    assert notifier.calls == []


@pytest.mark.asyncio
async def test_timer_respects_disabled_auto_accept(test_db, uber_integration, test_branch):
    uber_integration.settings = {"auto_accept_orders": False, "auto_accept_same_day": False}
    await test_db.commit()
    order_id, timer = await create_pending(test_db, uber_integration, test_branch, uber_payload())

    notifier = RecordingNotifier()
    outcome = await AcceptanceScheduler(test_db, notifier).fire(timer.id)

    assert outcome == TimerOutcome.NOT_PERMITTED
    assert await stored_status(test_db, order_id) == "pending"
    assert notifier.calls == []


@pytest.mark.asyncio
async def test_notify_failure_keeps_order_confirmed(test_db, uber_integration, test_branch):
    order_id, timer = await create_pending(test_db, uber_integration, test_branch, uber_payload())

    outcome = await AcceptanceScheduler(test_db, RecordingNotifier(fail=True)).fire(timer.id)

    assert outcome == TimerOutcome.NOTIFY_FAILED
    assert await stored_status(test_db, order_id) == "confirmed"
    stored = (
        await test_db.execute(
            select(AcceptanceTimer.outcome, AcceptanceTimer.last_error).where(AcceptanceTimer.id == timer.id)
        )
    ).one()
    assert stored.outcome == "notify_failed"
    assert "platform API unavailable" in stored.last_error


@pytest.mark.asyncio
async def test_fire_unknown_timer(test_db):
    from uuid import uuid4

    outcome = await AcceptanceScheduler(test_db, RecordingNotifier()).fire(uuid4())
    assert outcome == TimerOutcome.MISSING
