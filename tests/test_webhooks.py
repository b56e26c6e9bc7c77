"""Tests for the platform webhook endpoint"""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from conftest import (
    DELIVEROO_SECRET,
    JUST_EAT_SECRET,
    UBER_SECRET,
    deliveroo_payload,
    encode,
    just_eat_payload,
    sign,
    uber_payload,
)
from orderbridge.config import get_settings
from orderbridge.database import utcnow
from orderbridge.models.acceptance import AcceptanceTimer
from orderbridge.models.order import Order, OrderItem
from orderbridge.models.queue import WebhookQueueEntry


async def count(db, model, *criteria):
    result = await db.execute(select(func.count()).select_from(model).where(*criteria))
    return result.scalar()


async def post(client, platform, org, body, header, secret):
    return await client.post(
        f"/webhooks/{platform}",
        params={"org": str(org)} if org is not None else None,
        content=body,
        headers={header: sign(body, secret), "Content-Type": "application/json"},
    )


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_duplicate_delivery_creates_one_order(client: AsyncClient, test_db, uber_integration, test_branch):
    """Test the same signed order delivered twice yields one order and one timer"""
    body = encode(uber_payload(order_id="X123"))

    first = await post(client, "uber_eats", uber_integration.organization_id, body, "X-Uber-Signature", UBER_SECRET)
    second = await post(client, "uber_eats", uber_integration.organization_id, body, "X-Uber-Signature", UBER_SECRET)

    assert first.status_code == 200
    assert second.status_code == 200
    assert first.json()["status"] == "ok"
    assert first.json()["order_id"] == second.json()["order_id"]

    assert await count(test_db, Order, Order.platform_order_id == "X123") == 1
    assert await count(test_db, AcceptanceTimer) == 1

    order = (await test_db.execute(select(Order).where(Order.platform_order_id == "X123"))).scalar_one()
    assert order.branch_id == test_branch.id
    assert order.organization_id == uber_integration.organization_id
    assert order.status == "pending"


@pytest.mark.asyncio
async def test_modified_body_is_rejected(client: AsyncClient, test_db, uber_integration):
    """Test a body altered after signing is refused with nothing persisted"""
    body = encode(uber_payload())
    signature = sign(body, UBER_SECRET)
    tampered = body.replace(b"Margherita", b"Marinara!!")

    response = await client.post(
        "/webhooks/uber_eats",
        params={"org": str(uber_integration.organization_id)},
        content=tampered,
        headers={"X-Uber-Signature": signature},
    )

    assert response.status_code == 401
    assert response.json() == {"status": "error", "code": "unauthorized"}
    assert await count(test_db, Order) == 0
    assert await count(test_db, WebhookQueueEntry) == 0


@pytest.mark.asyncio
async def test_missing_signature_is_rejected(client: AsyncClient, test_db, uber_integration):
    response = await client.post(
        "/webhooks/uber_eats",
        params={"org": str(uber_integration.organization_id)},
        content=encode(uber_payload()),
    )
    assert response.status_code == 401
    assert await count(test_db, WebhookQueueEntry) == 0


@pytest.mark.asyncio
async def test_unknown_tenant_is_queued(client: AsyncClient, test_db, test_organization):
    """Test a webhook for an organization without an integration is parked for replay"""
    body = encode(uber_payload())
    before = utcnow()

    response = await post(client, "uber_eats", test_organization.id, body, "X-Uber-Signature", UBER_SECRET)

    assert response.status_code == 404
    assert response.json()["code"] == "integration_not_found"

    entry = (await test_db.execute(select(WebhookQueueEntry))).scalar_one()
    assert entry.attempt_count == 1
    assert entry.next_attempt_at > before
    assert entry.platform == "uber_eats"
    assert entry.tenant_hint == str(test_organization.id)
    assert entry.raw_body == body
    assert await count(test_db, Order) == 0


@pytest.mark.asyncio
async def test_unknown_tenant_opaque_mode(client: AsyncClient, test_db, test_organization):
    settings = get_settings().model_copy(update={"webhook_opaque_auth_errors": True})
    from orderbridge.main import app

    app.dependency_overrides[get_settings] = lambda: settings
    body = encode(uber_payload())

    response = await post(client, "uber_eats", test_organization.id, body, "X-Uber-Signature", UBER_SECRET)

    assert response.status_code == 401
    assert response.json()["code"] == "unauthorized"
    assert await count(test_db, WebhookQueueEntry) == 1


@pytest.mark.asyncio
async def test_missing_org_parameter(client: AsyncClient, test_db):
    body = encode(uber_payload())
    response = await post(client, "uber_eats", None, body, "X-Uber-Signature", UBER_SECRET)

    assert response.status_code == 400
    assert response.json()["code"] == "missing_org"
    assert await count(test_db, WebhookQueueEntry) == 0


@pytest.mark.asyncio
async def test_unknown_platform(client: AsyncClient, test_organization):
    body = encode({"id": "1"})
    response = await post(client, "foodpanda", test_organization.id, body, "X-Signature", "x")

    assert response.status_code == 404
    assert response.json()["code"] == "unknown_platform"


@pytest.mark.asyncio
async def test_invalid_json_after_valid_signature(client: AsyncClient, test_db, uber_integration):
    body = b"{not json"
    response = await post(client, "uber_eats", uber_integration.organization_id, body, "X-Uber-Signature", UBER_SECRET)

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_payload"
    assert await count(test_db, WebhookQueueEntry) == 0


@pytest.mark.asyncio
async def test_store_mismatch(client: AsyncClient, test_db, uber_integration):
    body = encode(uber_payload(store_id="another-store"))
    response = await post(client, "uber_eats", uber_integration.organization_id, body, "X-Uber-Signature", UBER_SECRET)

    assert response.status_code == 400
    assert response.json()["code"] == "store_mismatch"
    assert await count(test_db, Order) == 0


@pytest.mark.asyncio
async def test_ignored_event(client: AsyncClient, test_db, uber_integration):
    body = encode(uber_payload(event_type="store.status_changed"))
    response = await post(client, "uber_eats", uber_integration.organization_id, body, "X-Uber-Signature", UBER_SECRET)

    assert response.status_code == 200
    assert response.json()["status"] == "ignored"
    assert await count(test_db, Order) == 0


@pytest.mark.asyncio
async def test_deliveroo_lifecycle(client: AsyncClient, test_db, deliveroo_integration, test_branch):
    """Test create, update and cancel events converge on one order"""
    org = deliveroo_integration.organization_id

    created = encode(deliveroo_payload(event_type="order.created"))
    response = await post(client, "deliveroo", org, created, "X-Deliveroo-Signature", DELIVEROO_SECRET)
    assert response.status_code == 200
    order_id = response.json()["order_id"]

    updated = encode(deliveroo_payload(event_type="order.updated", status="in_progress"))
    response = await post(client, "deliveroo", org, updated, "X-Deliveroo-Signature", DELIVEROO_SECRET)
    assert response.status_code == 200
    assert response.json()["order_id"] == order_id

    status = (await test_db.execute(select(Order.status).where(Order.platform_order_id == "DR-0001"))).scalar_one()
    assert status == "preparing"

    cancelled = encode({"event_type": "order.cancelled", "order_id": "DR-0001"})
    response = await post(client, "deliveroo", org, cancelled, "X-Deliveroo-Signature", DELIVEROO_SECRET)
    assert response.status_code == 200

    status = (await test_db.execute(select(Order.status).where(Order.platform_order_id == "DR-0001"))).scalar_one()
    assert status == "cancelled"
    assert await count(test_db, Order) == 1


@pytest.mark.asyncio
async def test_just_eat_pre_order(client: AsyncClient, test_db, just_eat_integration, test_branch):
    placed = utcnow()
    body = encode(just_eat_payload(placed_at=placed, requested=placed + timedelta(hours=50)))

    response = await post(
        client, "just_eat", just_eat_integration.organization_id, body, "X-JustEat-Signature", JUST_EAT_SECRET
    )

    assert response.status_code == 200
    order = (await test_db.execute(select(Order).where(Order.platform_order_id == "JE-42"))).scalar_one()
    assert order.order_type == "pre_order"
    assert order.total_cents == 1850
    assert await count(test_db, OrderItem, OrderItem.order_id == order.id) == 1

    timer = (await test_db.execute(select(AcceptanceTimer))).scalar_one()
    assert timer.urgency == "advance"
    assert timer.deadline_at == placed.replace(microsecond=0) + timedelta(hours=24)


@pytest.mark.asyncio
async def test_platform_tag_with_hyphen(client: AsyncClient, test_db, uber_integration, test_branch):
    body = encode(uber_payload())
    response = await post(client, "uber-eats", uber_integration.organization_id, body, "X-Uber-Signature", UBER_SECRET)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_persistence_failure_is_queued(client: AsyncClient, test_db, uber_integration, test_branch, monkeypatch):
    """Test a storage failure acknowledges the platform and parks the event"""
    from orderbridge.errors import PersistenceError
    from orderbridge.ingest.synchronizer import OrderSynchronizer

    async def failing_upsert(self, order, items=None):
        raise PersistenceError("database unavailable")

    monkeypatch.setattr(OrderSynchronizer, "upsert", failing_upsert)
    body = encode(uber_payload())

    response = await post(client, "uber_eats", uber_integration.organization_id, body, "X-Uber-Signature", UBER_SECRET)

    assert response.status_code == 200
    assert response.json() == {"status": "queued"}
    entry = (await test_db.execute(select(WebhookQueueEntry))).scalar_one()
    assert entry.last_error == "database unavailable"


@pytest.mark.asyncio
async def test_tenant_lookup_failure_is_queued(client: AsyncClient, test_db, uber_integration, monkeypatch):
    """Test a database outage during tenant lookup parks the event for replay"""
    from sqlalchemy.exc import OperationalError

    async def unavailable(*args, **kwargs):
        raise OperationalError("SELECT platform_integrations", {}, Exception("connection refused"))

    org = uber_integration.organization_id
    body = encode(uber_payload(order_id="X777"))
    monkeypatch.setattr(test_db, "execute", unavailable)

    response = await post(client, "uber_eats", org, body, "X-Uber-Signature", UBER_SECRET)

    monkeypatch.undo()
    assert response.status_code == 200
    assert response.json() == {"status": "queued"}
    entry = (await test_db.execute(select(WebhookQueueEntry))).scalar_one()
    assert entry.tenant_hint == str(org)
    assert entry.raw_body == body
    assert entry.attempt_count == 1
    assert await count(test_db, Order) == 0
