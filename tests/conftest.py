"""Test configuration and fixtures"""

import json
from datetime import timedelta
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from orderbridge.main import app
from orderbridge.database import Base, get_db, utcnow
from orderbridge.ingest.notifier import AcceptanceNotifier, get_notifier
from orderbridge.ingest.signature import compute_signature
from orderbridge.models.tenant import Organization, Branch, PlatformIntegration, Platform


# Test database URL (use in-memory SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

UBER_SECRET = "uber-test-secret"
DELIVEROO_SECRET = "deliveroo-test-secret"
JUST_EAT_SECRET = "just-eat-test-secret"


class RecordingNotifier(AcceptanceNotifier):
    """Collects acceptance notifications instead of publishing them"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    async def notify_accepted(self, integration, order):
        if self.fail:
            raise RuntimeError("platform API unavailable")
        self.calls.append((integration.id, order.id))


def sign(body: bytes, secret: str) -> str:
    return compute_signature(body, secret)


def encode(payload: dict) -> bytes:
    return json.dumps(payload).encode("utf-8")


def iso(dt) -> str:
    return dt.replace(microsecond=0).isoformat() + "Z"


def uber_payload(order_id="X123", status="created", event_type=None, placed_at=None, store_id="uber-store-1"):
    payload = {
        "id": order_id,
        "display_id": "A1B2",
        "status": status,
        "placed_at": iso(placed_at or utcnow()),
        "eater": {"first_name": "Ada", "last_name": "Lovelace", "phone": "+447700900123"},
        "cart": {
            "items": [
                {
                    "id": "item-1",
                    "title": "Margherita Pizza",
                    "quantity": 2,
                    "price": {"unit_price": 1050, "total": 2100},
                    "selected_modifier_groups": [
                        {
                            "title": "Extras",
                            "selected_items": [{"title": "Extra basil", "price": 50}],
                        }
                    ],
                },
                {
                    "id": "item-2",
                    "title": "Tiramisu",
                    "quantity": 1,
                    "price": {"unit_price": 650, "total": 650},
                },
            ],
            "special_instructions": "Ring the bell",
        },
        "payment": {
            "charges": {
                "total": {"amount": 3050, "currency_code": "GBP"},
                "sub_total": 2750,
                "tax": 0,
                "tip": 300,
            }
        },
        "store": {"id": store_id, "name": "Test Kitchen"},
    }
    if event_type:
        payload["event_type"] = event_type
    return payload


def deliveroo_payload(order_id="DR-0001", event_type="order.created", status="pending", placed_at=None):
    return {
        "event_type": event_type,
        "order_id": order_id,
        "order": {
            "order_id": order_id,
            "placed_at": iso(placed_at or utcnow()),
            "status": status,
            "customer": {"first_name": "Grace", "last_name": "Hopper", "phone_number": "+447700900456"},
            "items": [
                {"id": "p-1", "name": "Pad Thai", "quantity": 3, "price": 29.97},
                {
                    "id": "p-2",
                    "name": "Spring Rolls",
                    "quantity": 1,
                    "price": 4.5,
                    "modifiers": [{"name": "Sweet chilli", "price": 0.5}],
                },
            ],
            "pricing": {
                "subtotal": 34.47,
                "delivery_fee": 2.99,
                "service_fee": 0.99,
                "total": 38.45,
                "currency": "GBP",
            },
            "delivery_address": {"street": "1 High St", "city": "London", "postcode": "N1 1AA"},
        },
    }


def just_eat_payload(order_id="JE-42", event_type="OrderPlaced", placed_at=None, requested=None,
                     restaurant_id="je-rest-1"):
    placed_at = placed_at or utcnow()
    order = {
        "orderId": order_id,
        "friendlyOrderReference": "42",
        "placedDate": iso(placed_at),
        "status": "new",
        "restaurant": {"id": restaurant_id, "name": "Test Kitchen"},
        "customer": {"name": "Alan Turing", "phoneNumber": "+447700900789"},
        "basket": {
            "items": [{"productId": "b-1", "name": "Burger", "quantity": 2, "price": 17.0}],
            "subTotal": 17.0,
            "deliveryCharge": 1.5,
            "total": 18.5,
        },
    }
    if requested is not None:
        order["requestedDeliveryDate"] = iso(requested)
    return {"eventType": event_type, "order": order}


@pytest.fixture
async def test_db():
    """Create test database"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def test_organization(test_db):
    """Create a test organization with one branch"""
    organization = Organization(id=uuid4(), name="Test Kitchen")
    test_db.add(organization)
    await test_db.flush()

    branch = Branch(
        id=uuid4(),
        organization_id=organization.id,
        name="Test Kitchen - Central",
        created_at=utcnow() - timedelta(days=30),
    )
    test_db.add(branch)
    await test_db.commit()

    return organization


@pytest.fixture
async def test_branch(test_db, test_organization):
    from sqlalchemy import select

    result = await test_db.execute(
        select(Branch).where(Branch.organization_id == test_organization.id)
    )
    return result.scalar_one()


async def _integration(db, organization, platform, secret, store_id=None, settings=None):
    integration = PlatformIntegration(
        id=uuid4(),
        organization_id=organization.id,
        platform=platform.value,
        platform_restaurant_id=store_id,
        credentials={"webhook_secret": secret},
        settings=settings or {"auto_accept_orders": False, "auto_accept_same_day": True},
    )
    db.add(integration)
    await db.commit()
    return integration


@pytest.fixture
async def uber_integration(test_db, test_organization):
    return await _integration(test_db, test_organization, Platform.UBER_EATS, UBER_SECRET, "uber-store-1")


@pytest.fixture
async def deliveroo_integration(test_db, test_organization):
    return await _integration(test_db, test_organization, Platform.DELIVEROO, DELIVEROO_SECRET)


@pytest.fixture
async def just_eat_integration(test_db, test_organization):
    return await _integration(test_db, test_organization, Platform.JUST_EAT, JUST_EAT_SECRET, "je-rest-1")


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
async def client(test_db, notifier):
    """Create test client with overridden database and notifier"""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
