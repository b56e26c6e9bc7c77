"""Unified order schemas shared by every platform adapter"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from uuid import UUID
from pydantic import BaseModel, Field

from orderbridge.models.order import OrderStatus, OrderType


class ModifierData(BaseModel):
    """Modifier selected on a line item"""
    name: str
    price_cents: int = Field(default=0, ge=0)
    group: Optional[str] = None


class OrderItemData(BaseModel):
    """Normalized line item"""
    external_item_id: Optional[str] = None
    name: str
    quantity: int = Field(gt=0)
    unit_price_cents: int = Field(ge=0)
    line_total_cents: int = Field(ge=0)
    special_instructions: Optional[str] = None
    modifiers: List[ModifierData] = []


class UnifiedOrder(BaseModel):
    """Platform-agnostic order produced by a payload normalizer"""
    organization_id: UUID
    branch_id: Optional[UUID] = None  # Assigned after normalization
    integration_id: UUID
    platform: str
    platform_order_id: str
    order_number: Optional[str] = None
    order_type: OrderType = OrderType.DELIVERY
    status: OrderStatus = OrderStatus.PENDING

    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None

    subtotal_cents: int = Field(default=0, ge=0)
    delivery_fee_cents: int = Field(default=0, ge=0)
    tax_cents: int = Field(default=0, ge=0)
    tip_cents: int = Field(default=0, ge=0)
    total_cents: int = Field(default=0, ge=0)
    currency: Optional[str] = None

    payment_status: Optional[str] = None
    payment_method: Optional[str] = None

    platform_metadata: Dict[str, Any] = {}
    raw_payload: Optional[Dict[str, Any]] = None
    special_instructions: Optional[str] = None

    placed_at: datetime
    scheduled_for: Optional[datetime] = None

    items: List[OrderItemData] = []
