"""Tests for tenant and branch resolution"""

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from orderbridge.database import utcnow
from orderbridge.errors import PersistenceError, TenantResolutionError
from orderbridge.ingest.resolver import TenantResolver
from orderbridge.models.tenant import Branch


@pytest.mark.asyncio
async def test_resolve_active_integration(test_db, uber_integration):
    resolver = TenantResolver(test_db)

    integration = await resolver.resolve("uber_eats", str(uber_integration.organization_id))

    assert integration.id == uber_integration.id


@pytest.mark.asyncio
async def test_resolve_rejects_unknown_or_malformed_hint(test_db, uber_integration):
    resolver = TenantResolver(test_db)

    with pytest.raises(TenantResolutionError):
        await resolver.resolve("uber_eats", "not-a-uuid")
    with pytest.raises(TenantResolutionError):
        await resolver.resolve("uber_eats", str(uuid4()))
    with pytest.raises(TenantResolutionError):
        await resolver.resolve("deliveroo", str(uber_integration.organization_id))


@pytest.mark.asyncio
async def test_resolve_branch_defaults_to_oldest_active(test_db, uber_integration, test_branch):
    newer = Branch(
        id=uuid4(),
        organization_id=uber_integration.organization_id,
        name="Test Kitchen - North",
        created_at=utcnow() - timedelta(days=1),
    )
    test_db.add(newer)
    await test_db.commit()

    branch_id = await TenantResolver(test_db).resolve_branch(uber_integration)

    assert branch_id == test_branch.id


@pytest.mark.asyncio
async def test_resolve_branch_uses_configured_branch(test_db, uber_integration, test_branch):
    other = Branch(id=uuid4(), organization_id=uber_integration.organization_id, name="Test Kitchen - East")
    test_db.add(other)
    uber_integration.settings = {**uber_integration.settings, "branch_id": str(other.id)}
    await test_db.commit()

    branch_id = await TenantResolver(test_db).resolve_branch(uber_integration)

    assert branch_id == other.id


@pytest.mark.asyncio
async def test_lookup_failure_raises_retryable_error(test_db, uber_integration, monkeypatch):
    """Test a database failure surfaces as a retryable PersistenceError"""
    org = str(uber_integration.organization_id)

    async def unavailable(*args, **kwargs):
        raise OperationalError("SELECT branches", {}, Exception("connection refused"))

    monkeypatch.setattr(test_db, "execute", unavailable)
    resolver = TenantResolver(test_db)

    with pytest.raises(PersistenceError):
        await resolver.resolve_branch(uber_integration)

    with pytest.raises(PersistenceError) as exc_info:
        await resolver.resolve("uber_eats", org)
    assert exc_info.value.retryable is True
