"""Tenant resolution for inbound webhooks"""

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from orderbridge.errors import IntegrationConfigError, PersistenceError, TenantResolutionError
from orderbridge.models.tenant import Branch, PlatformIntegration

logger = structlog.get_logger()


def _parse_uuid(value: Optional[str]) -> Optional[UUID]:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


class TenantResolver:
    """Maps (platform, tenant hint) to the single active integration.

    The tenant hint is the routing parameter of the webhook URL; payloads
    are never trusted for tenant identity. A database failure during a
    lookup raises PersistenceError, which the dispatcher queues for replay.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _lookup(self, query, action: str):
        try:
            return await self.db.execute(query)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Tenant lookup failed", action=action, error=str(e))
            raise PersistenceError(f"Tenant lookup failed: {e}") from e

    async def resolve(self, platform: str, tenant_hint: Optional[str]) -> PlatformIntegration:
        organization_id = _parse_uuid(tenant_hint)
        if organization_id is None:
            raise TenantResolutionError("Tenant hint is not an organization id")

        result = await self._lookup(
            select(PlatformIntegration)
            .where(
                PlatformIntegration.organization_id == organization_id,
                PlatformIntegration.platform == platform,
                PlatformIntegration.is_active.is_(True),
            )
            .limit(2),
            "resolve_integration",
        )
        integrations = result.scalars().all()

        if not integrations:
            raise TenantResolutionError("No active integration for tenant and platform")

        if len(integrations) > 1:
            logger.critical(
                "Multiple active integrations for tenant",
                platform=platform,
                organization_id=str(organization_id),
            )
            raise IntegrationConfigError("Ambiguous integration for tenant and platform")

        return integrations[0]

    async def resolve_branch(self, integration: PlatformIntegration) -> UUID:
        """Branch that receives this integration's orders.

        Policy: the integration's ``branch_id`` setting when it names an
        active branch of the organization, otherwise the organization's
        oldest active branch. Multi-branch tenants should set ``branch_id``.
        """
        configured = _parse_uuid(integration.setting("branch_id"))

        query = select(Branch.id).where(
            Branch.organization_id == integration.organization_id,
            Branch.is_active.is_(True),
        )
        if configured is not None:
            result = await self._lookup(query.where(Branch.id == configured), "resolve_branch")
            branch_id = result.scalar_one_or_none()
            if branch_id is not None:
                return branch_id
            logger.warning(
                "Configured branch not found, using default branch",
                integration_id=str(integration.id),
                branch_id=str(configured),
            )

        result = await self._lookup(
            query.order_by(Branch.created_at, Branch.id).limit(1),
            "resolve_branch",
        )
        branch_id = result.scalar_one_or_none()
        if branch_id is None:
            raise TenantResolutionError("Organization has no active branch")
        return branch_id
