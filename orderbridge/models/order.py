"""Order models"""

import enum
import uuid
from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    JSON,
    Text,
    Integer,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from orderbridge.database import Base, utcnow


class OrderStatus(str, enum.Enum):
    """Internal order state machine"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = (OrderStatus.COMPLETED, OrderStatus.CANCELLED)

# Position along pending -> completed; cancelled sits outside the chain
STATUS_RANK = {
    OrderStatus.PENDING: 0,
    OrderStatus.CONFIRMED: 1,
    OrderStatus.PREPARING: 2,
    OrderStatus.READY: 3,
    OrderStatus.OUT_FOR_DELIVERY: 4,
    OrderStatus.COMPLETED: 5,
}


class OrderType(str, enum.Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"
    PRE_ORDER = "pre_order"
    DINE_IN = "dine_in"


class Order(Base):
    """Orders received from delivery platforms"""
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint(
            "platform_integration_id",
            "platform_order_id",
            name="uq_orders_integration_platform_order",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id"), nullable=False, index=True)
    branch_id = Column(Uuid, ForeignKey("branches.id"))
    platform_integration_id = Column(Uuid, ForeignKey("platform_integrations.id"), nullable=False)

    # Platform identity
    platform = Column(String(50), nullable=False)
    platform_order_id = Column(String(255), nullable=False)
    order_number = Column(String(100))

    order_type = Column(String(50), default=OrderType.DELIVERY.value)
    status = Column(String(50), default=OrderStatus.PENDING.value, index=True)

    # Customer information
    customer_name = Column(String(255))
    customer_phone = Column(String(50))

    # Pricing (minor units)
    subtotal_cents = Column(Integer, nullable=False, default=0)
    delivery_fee_cents = Column(Integer, nullable=False, default=0)
    tax_cents = Column(Integer, nullable=False, default=0)
    tip_cents = Column(Integer, nullable=False, default=0)
    total_cents = Column(Integer, nullable=False, default=0)
    currency = Column(String(3))

    # Payment
    payment_status = Column(String(50))
    payment_method = Column(String(50))

    # Platform data
    platform_metadata = Column(JSON, default=dict)  # customer address, store id, delivery notes
    raw_payload = Column(JSON)
    special_instructions = Column(Text)

    # Timing
    created_at = Column(DateTime, nullable=False)  # Platform "placed at" time
    scheduled_for = Column(DateTime)  # Pre-orders
    received_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )
    acceptance_timer = relationship("AcceptanceTimer", back_populates="order", uselist=False)


class OrderItem(Base):
    """Line items of an order, replaced as a whole on every sync"""
    __tablename__ = "order_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    external_item_id = Column(String(255))
    name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price_cents = Column(Integer, nullable=False, default=0)
    line_total_cents = Column(Integer, nullable=False, default=0)
    special_instructions = Column(Text)
    # [{"name": "Extra cheese", "price_cents": 150, "group": "Toppings"}, ...]
    modifiers = Column(JSON, default=list)

    # Relationships
    order = relationship("Order", back_populates="items")
