"""Idempotent order persistence keyed on (integration, platform order id)"""

import uuid
from typing import Awaitable, Callable, List, Optional

from sqlalchemy import case, delete, insert, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from orderbridge.database import utcnow
from orderbridge.errors import PersistenceError
from orderbridge.ingest.scheduler import AcceptanceScheduler
from orderbridge.models.order import Order, OrderItem, OrderStatus, STATUS_RANK, TERMINAL_STATUSES
from orderbridge.models.tenant import PlatformIntegration
from orderbridge.schemas.order import OrderItemData, UnifiedOrder
from orderbridge.schemas.webhook import SyncResult

logger = structlog.get_logger()

# Columns a re-delivery may overwrite; identity and placement time never change
_MUTABLE_FIELDS = (
    "branch_id",
    "order_number",
    "order_type",
    "customer_name",
    "customer_phone",
    "subtotal_cents",
    "delivery_fee_cents",
    "tax_cents",
    "tip_cents",
    "total_cents",
    "currency",
    "payment_status",
    "payment_method",
    "platform_metadata",
    "raw_payload",
    "special_instructions",
    "scheduled_for",
)


def guarded_status(current, new: OrderStatus):
    """SQL expression for the status a row moves to when ``new`` arrives.

    Terminal states are kept, cancellation applies to any other state, and
    otherwise the status only moves forward.
    """
    terminal = [s.value for s in TERMINAL_STATUSES]
    if new == OrderStatus.CANCELLED:
        return case((current.in_(terminal), current), else_=new.value)

    behind = [s.value for s, rank in STATUS_RANK.items() if rank < STATUS_RANK[new]]
    if not behind:
        return current
    return case((current.in_(behind), new.value), else_=current)


def _order_values(order: UnifiedOrder) -> dict:
    values = order.model_dump(include=set(_MUTABLE_FIELDS))
    values["order_type"] = order.order_type.value
    return values


def _item_rows(order_id: uuid.UUID, items: List[OrderItemData]) -> List[dict]:
    return [
        {
            "id": uuid.uuid4(),
            "order_id": order_id,
            "position": position,
            "external_item_id": item.external_item_id,
            "name": item.name,
            "quantity": item.quantity,
            "unit_price_cents": item.unit_price_cents,
            "line_total_cents": item.line_total_cents,
            "special_instructions": item.special_instructions,
            "modifiers": [m.model_dump() for m in item.modifiers],
        }
        for position, item in enumerate(items)
    ]


class OrderSynchronizer:
    """Creates or updates orders so that re-deliveries converge on one row"""

    def __init__(self, db: AsyncSession, scheduler: Optional[AcceptanceScheduler] = None):
        self.db = db
        self.scheduler = scheduler

    def _insert(self):
        if self.db.bind.dialect.name == "postgresql":
            return postgresql.insert(Order)
        return sqlite.insert(Order)

    async def upsert(
        self,
        order: UnifiedOrder,
        items: Optional[List[OrderItemData]] = None,
    ) -> SyncResult:
        """Insert or update an order and replace its items in one transaction.

        Args:
            order: Normalized order
            items: Line items; defaults to ``order.items``

        Returns:
            SyncResult with the stored id, whether the row was created and
            the status after the status guard applied

        Raises:
            PersistenceError: On any database failure (transaction rolled back)
        """
        items = order.items if items is None else items
        candidate_id = uuid.uuid4()
        now = utcnow()
        values = _order_values(order)

        stmt = self._insert().values(
            id=candidate_id,
            organization_id=order.organization_id,
            platform_integration_id=order.integration_id,
            platform=order.platform,
            platform_order_id=order.platform_order_id,
            status=order.status.value,
            created_at=order.placed_at,
            received_at=now,
            updated_at=now,
            **values,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Order.platform_integration_id, Order.platform_order_id],
            set_={
                **values,
                "status": guarded_status(Order.status, order.status),
                "updated_at": now,
            },
        ).returning(Order.id, Order.status)

        try:
            row = (await self.db.execute(stmt)).one()
            order_id = row.id
            created = order_id == candidate_id
            status = OrderStatus(row.status)

            await self.db.execute(
                delete(OrderItem)
                .where(OrderItem.order_id == order_id)
                .execution_options(synchronize_session=False)
            )
            rows = _item_rows(order_id, items)
            if rows:
                await self.db.execute(insert(OrderItem), rows)

            if created and status == OrderStatus.PENDING and self.scheduler is not None:
                await self.scheduler.register(order_id, order)

            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Order upsert failed",
                platform=order.platform,
                platform_order_id=order.platform_order_id,
                error=str(e),
            )
            raise PersistenceError(f"Order upsert failed: {e}") from e

        logger.info(
            "Order synced",
            platform=order.platform,
            platform_order_id=order.platform_order_id,
            order_id=str(order_id),
            created=created,
            status=status.value,
            item_count=len(items),
        )
        return SyncResult(order_id=order_id, created=created, status=status)

    async def apply_status(
        self,
        integration: PlatformIntegration,
        platform_order_id: str,
        status: OrderStatus,
        build_order: Callable[[], Awaitable[UnifiedOrder]],
    ) -> SyncResult:
        """Move an existing order to ``status`` through the status guard.

        An order the system has never seen is built with ``build_order``
        and created through ``upsert``.
        """
        try:
            result = await self.db.execute(
                update(Order)
                .where(
                    Order.platform_integration_id == integration.id,
                    Order.platform_order_id == platform_order_id,
                )
                .values(status=guarded_status(Order.status, status), updated_at=utcnow())
                .returning(Order.id, Order.status)
                .execution_options(synchronize_session=False)
            )
            row = result.first()
            if row is not None:
                await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(f"Order status update failed: {e}") from e

        if row is None:
            logger.info(
                "Status event for unknown order, creating it",
                platform=integration.platform,
                platform_order_id=platform_order_id,
                status=status.value,
            )
            return await self.upsert(await build_order())

        applied = OrderStatus(row.status)
        if applied != status:
            logger.info(
                "Status transition refused",
                platform=integration.platform,
                order_id=str(row.id),
                requested=status.value,
                kept=applied.value,
            )
        return SyncResult(order_id=row.id, created=False, status=applied)
