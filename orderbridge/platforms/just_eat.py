"""Just Eat order webhook adapter"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from orderbridge.errors import DecodeError
from orderbridge.models.order import OrderStatus
from orderbridge.models.tenant import Platform, PlatformIntegration
from orderbridge.platforms.base import (
    PlatformAdapter,
    decoding,
    derive_order_type,
    to_naive_utc,
)
from orderbridge.platforms.money import to_minor_units, unit_price_from_line
from orderbridge.schemas.order import OrderItemData, UnifiedOrder
from orderbridge.schemas.webhook import EventKind


class JustEatModel(BaseModel):
    """Just Eat bodies use camelCase keys"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JustEatAddress(JustEatModel):
    street: str = ""
    city: str = ""
    postcode: str = ""


class JustEatCustomer(JustEatModel):
    name: str
    phone_number: Optional[str] = None
    address: Optional[JustEatAddress] = None


class JustEatItem(JustEatModel):
    product_id: Optional[str] = None
    name: str
    quantity: int
    price: Decimal  # Line total
    instructions: Optional[str] = None


class JustEatBasket(JustEatModel):
    items: List[JustEatItem]
    sub_total: Decimal
    delivery_charge: Decimal = Decimal(0)
    total: Decimal


class JustEatRestaurant(JustEatModel):
    id: str
    name: Optional[str] = None


class JustEatOrder(JustEatModel):
    order_id: str
    friendly_order_reference: Optional[str] = None
    placed_date: datetime
    requested_delivery_date: Optional[datetime] = None  # Pre-orders
    status: str = "new"
    restaurant: Optional[JustEatRestaurant] = None
    customer: JustEatCustomer
    basket: JustEatBasket
    delivery_instructions: Optional[str] = None
    payment_method: Optional[str] = None


class JustEatEnvelope(JustEatModel):
    event_type: str
    order: Dict[str, Any]


class JustEatPayload(JustEatModel):
    """Order webhook body; amounts are major-unit decimals"""
    event_type: str
    order: JustEatOrder


class JustEatAdapter(PlatformAdapter):
    """Just Eat sends OrderPlaced / OrderAccepted / OrderCancelled events"""

    platform = Platform.JUST_EAT
    signature_header = "x-justeat-signature"

    status_map = {
        "new": OrderStatus.PENDING,
        "acknowledged": OrderStatus.CONFIRMED,
        "accepted": OrderStatus.CONFIRMED,
        "cooking": OrderStatus.PREPARING,
        "ready": OrderStatus.READY,
        "collected": OrderStatus.OUT_FOR_DELIVERY,
        "delivered": OrderStatus.COMPLETED,
        "cancelled": OrderStatus.CANCELLED,
        "rejected": OrderStatus.CANCELLED,
    }

    event_kinds = {
        "OrderPlaced": EventKind.CREATED,
        "OrderAccepted": EventKind.UPDATED,
        "OrderCancelled": EventKind.CANCELLED,
    }

    def event_type(self, payload: Dict[str, Any]) -> Optional[str]:
        return self.parse(JustEatEnvelope, payload).event_type

    def event_kind(self, payload: Dict[str, Any]) -> EventKind:
        return self.event_kinds.get(self.event_type(payload), EventKind.IGNORED)

    def platform_order_id(self, payload: Dict[str, Any]) -> str:
        order = self.parse(JustEatEnvelope, payload).order
        order_id = order.get("orderId") or order.get("order_id")
        if not order_id:
            raise DecodeError("Just Eat event carries no orderId")
        return str(order_id)

    def external_status(self, payload: Dict[str, Any]) -> Optional[str]:
        envelope = self.parse(JustEatEnvelope, payload)
        # The acceptance event is the status change itself
        if envelope.event_type == "OrderAccepted":
            return "accepted"
        return envelope.order.get("status")

    def store_id(self, payload: Dict[str, Any]) -> Optional[str]:
        order = payload.get("order") if isinstance(payload, dict) else None
        restaurant = order.get("restaurant") if isinstance(order, dict) else None
        return restaurant.get("id") if isinstance(restaurant, dict) else None

    def normalize(self, payload: Dict[str, Any], integration: PlatformIntegration) -> UnifiedOrder:
        order = self.parse(JustEatPayload, payload).order

        with decoding(self.platform):
            items = []
            for item in order.basket.items:
                line_total = to_minor_units(item.price)
                items.append(
                    OrderItemData(
                        external_item_id=item.product_id,
                        name=item.name,
                        quantity=item.quantity,
                        unit_price_cents=unit_price_from_line(line_total, item.quantity),
                        line_total_cents=line_total,
                        special_instructions=item.instructions,
                    )
                )

            address = None
            if order.customer.address:
                address = ", ".join(
                    part
                    for part in (
                        order.customer.address.street,
                        order.customer.address.city,
                        order.customer.address.postcode,
                    )
                    if part
                )
            placed_at = to_naive_utc(order.placed_date)
            scheduled_for = to_naive_utc(order.requested_delivery_date)

            return UnifiedOrder(
                organization_id=integration.organization_id,
                integration_id=integration.id,
                platform=self.platform.value,
                platform_order_id=order.order_id,
                order_number=order.friendly_order_reference,
                order_type=derive_order_type(placed_at, scheduled_for),
                status=self.map_status(order.status),
                customer_name=order.customer.name,
                customer_phone=order.customer.phone_number,
                subtotal_cents=to_minor_units(order.basket.sub_total),
                delivery_fee_cents=to_minor_units(order.basket.delivery_charge),
                tax_cents=0,  # Included in prices
                tip_cents=0,
                total_cents=to_minor_units(order.basket.total),
                currency=self.currency_for(integration),
                payment_status="paid",
                payment_method=self.platform.value,
                platform_metadata={
                    "store_id": order.restaurant.id if order.restaurant else None,
                    "platform_payment_method": order.payment_method,
                    "customer": {
                        "name": order.customer.name,
                        "phone": order.customer.phone_number,
                        "address": address,
                        "delivery_instructions": order.delivery_instructions,
                    },
                },
                raw_payload=order.model_dump(mode="json", by_alias=True),
                special_instructions=order.delivery_instructions,
                placed_at=placed_at,
                scheduled_for=scheduled_for,
                items=items,
            )
