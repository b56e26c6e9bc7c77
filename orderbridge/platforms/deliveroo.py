"""Deliveroo order webhook adapter"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from orderbridge.errors import DecodeError
from orderbridge.models.order import OrderStatus
from orderbridge.models.tenant import Platform, PlatformIntegration
from orderbridge.platforms.base import (
    AcceptancePolicy,
    AcceptanceStep,
    DEFAULT_ACCEPTANCE_POLICY,
    PlatformAdapter,
    decoding,
    derive_order_type,
    to_naive_utc,
)
from orderbridge.platforms.money import to_minor_units, unit_price_from_line
from orderbridge.schemas.order import ModifierData, OrderItemData, UnifiedOrder
from orderbridge.schemas.webhook import EventKind


class DeliverooCustomer(BaseModel):
    first_name: str = ""
    last_name: str = ""
    phone_number: Optional[str] = None


class DeliverooModifier(BaseModel):
    id: Optional[str] = None
    name: str
    price: Decimal = Decimal(0)


class DeliverooItem(BaseModel):
    id: Optional[str] = None
    name: str
    quantity: int
    price: Decimal  # Line total
    modifiers: List[DeliverooModifier] = []
    special_instructions: Optional[str] = None


class DeliverooPricing(BaseModel):
    subtotal: Decimal
    delivery_fee: Decimal = Decimal(0)
    service_fee: Decimal = Decimal(0)
    total: Decimal
    currency: Optional[str] = None


class DeliverooAddress(BaseModel):
    street: str = ""
    city: str = ""
    postcode: str = ""


class DeliverooOrder(BaseModel):
    order_id: str
    placed_at: datetime
    status: str
    customer: DeliverooCustomer
    items: List[DeliverooItem]
    pricing: DeliverooPricing
    delivery_address: Optional[DeliverooAddress] = None
    special_instructions: Optional[str] = None


class DeliverooEnvelope(BaseModel):
    """Fields every Deliveroo event carries, including minimal cancellations"""
    event_type: str
    order_id: Optional[str] = None
    order: Optional[Dict[str, Any]] = None


class DeliverooPayload(BaseModel):
    """Order webhook body; amounts are major-unit decimals"""
    event_type: str
    order_id: Optional[str] = None
    order: DeliverooOrder


class DeliverooAdapter(PlatformAdapter):
    """Deliveroo sends order.created / order.updated / order.cancelled events"""

    platform = Platform.DELIVEROO
    signature_header = "x-deliveroo-signature"

    status_map = {
        "pending": OrderStatus.PENDING,
        "accepted": OrderStatus.CONFIRMED,
        "acknowledged": OrderStatus.CONFIRMED,
        "in_progress": OrderStatus.PREPARING,
        "preparation_started": OrderStatus.PREPARING,
        "ready_for_collection": OrderStatus.READY,
        "collected": OrderStatus.OUT_FOR_DELIVERY,
        "delivered": OrderStatus.COMPLETED,
        "cancelled": OrderStatus.CANCELLED,
        "rejected": OrderStatus.CANCELLED,
    }

    event_kinds = {
        "order.created": EventKind.CREATED,
        "order.updated": EventKind.UPDATED,
        "order.cancelled": EventKind.CANCELLED,
    }

    # Deliveroo expects ASAP orders to be accepted within three minutes
    acceptance_policy = AcceptancePolicy(
        steps=(
            AcceptanceStep(24, timedelta(minutes=3), timedelta(seconds=30)),
        ) + DEFAULT_ACCEPTANCE_POLICY.steps[1:]
    )

    def event_type(self, payload: Dict[str, Any]) -> Optional[str]:
        return self.parse(DeliverooEnvelope, payload).event_type

    def event_kind(self, payload: Dict[str, Any]) -> EventKind:
        return self.event_kinds.get(self.event_type(payload), EventKind.IGNORED)

    def platform_order_id(self, payload: Dict[str, Any]) -> str:
        envelope = self.parse(DeliverooEnvelope, payload)
        order_id = envelope.order_id or (envelope.order or {}).get("order_id")
        if not order_id:
            raise DecodeError("Deliveroo event carries no order id")
        return str(order_id)

    def external_status(self, payload: Dict[str, Any]) -> Optional[str]:
        return self.parse(DeliverooPayload, payload).order.status

    def store_id(self, payload: Dict[str, Any]) -> Optional[str]:
        # Deliveroo routes per site; the body names no store
        return None

    def normalize(self, payload: Dict[str, Any], integration: PlatformIntegration) -> UnifiedOrder:
        order = self.parse(DeliverooPayload, payload).order

        with decoding(self.platform):
            items = []
            for item in order.items:
                line_total = to_minor_units(item.price)
                items.append(
                    OrderItemData(
                        external_item_id=item.id,
                        name=item.name,
                        quantity=item.quantity,
                        unit_price_cents=unit_price_from_line(line_total, item.quantity),
                        line_total_cents=line_total,
                        special_instructions=item.special_instructions,
                        modifiers=[
                            ModifierData(name=modifier.name, price_cents=to_minor_units(modifier.price))
                            for modifier in item.modifiers
                        ],
                    )
                )

            customer_name = f"{order.customer.first_name} {order.customer.last_name}".strip() or None
            address = None
            if order.delivery_address:
                address = ", ".join(
                    part
                    for part in (
                        order.delivery_address.street,
                        order.delivery_address.city,
                        order.delivery_address.postcode,
                    )
                    if part
                )
            placed_at = to_naive_utc(order.placed_at)

            return UnifiedOrder(
                organization_id=integration.organization_id,
                integration_id=integration.id,
                platform=self.platform.value,
                platform_order_id=order.order_id,
                order_number=order.order_id[-8:],
                order_type=derive_order_type(placed_at, None),
                status=self.map_status(order.status),
                customer_name=customer_name,
                customer_phone=order.customer.phone_number,
                subtotal_cents=to_minor_units(order.pricing.subtotal),
                delivery_fee_cents=to_minor_units(order.pricing.delivery_fee),
                tax_cents=0,  # Included in item prices
                tip_cents=0,
                total_cents=to_minor_units(order.pricing.total),
                currency=self.currency_for(integration, order.pricing.currency),
                payment_status="paid",
                payment_method=self.platform.value,
                platform_metadata={
                    "service_fee_cents": to_minor_units(order.pricing.service_fee),
                    "customer": {
                        "name": customer_name,
                        "phone": order.customer.phone_number,
                        "address": address,
                        "delivery_instructions": order.special_instructions,
                    },
                },
                raw_payload=order.model_dump(mode="json"),
                special_instructions=order.special_instructions,
                placed_at=placed_at,
                items=items,
            )
