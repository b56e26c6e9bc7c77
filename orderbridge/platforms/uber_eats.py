"""Uber Eats order webhook adapter"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from orderbridge.models.order import OrderStatus
from orderbridge.models.tenant import Platform, PlatformIntegration
from orderbridge.platforms.base import (
    PlatformAdapter,
    decoding,
    derive_order_type,
    to_naive_utc,
)
from orderbridge.platforms.money import to_minor_units
from orderbridge.schemas.order import ModifierData, OrderItemData, UnifiedOrder
from orderbridge.schemas.webhook import EventKind


class UberEater(BaseModel):
    first_name: str = ""
    last_name: str = ""
    phone: Optional[str] = None


class UberModifierItem(BaseModel):
    id: Optional[str] = None
    title: str
    price: Decimal = Decimal(0)


class UberModifierGroup(BaseModel):
    id: Optional[str] = None
    title: Optional[str] = None
    selected_items: List[UberModifierItem] = []


class UberItemPrice(BaseModel):
    total: Decimal
    unit_price: Decimal


class UberCartItem(BaseModel):
    id: Optional[str] = None
    instance_id: Optional[str] = None
    title: str
    quantity: int
    price: UberItemPrice
    special_instructions: Optional[str] = None
    selected_modifier_groups: List[UberModifierGroup] = []


class UberCart(BaseModel):
    items: List[UberCartItem]
    special_instructions: Optional[str] = None


class UberMoney(BaseModel):
    amount: Decimal
    currency_code: Optional[str] = None


class UberCharges(BaseModel):
    total: UberMoney
    sub_total: Optional[Decimal] = None
    tax: Optional[Decimal] = None
    tip: Optional[Decimal] = None


class UberPayment(BaseModel):
    charges: UberCharges


class UberStore(BaseModel):
    id: str
    name: Optional[str] = None


class UberEatsOrderPayload(BaseModel):
    """Order webhook body; all amounts are minor units"""
    event_type: Optional[str] = None
    id: str
    display_id: Optional[str] = None
    status: str
    placed_at: datetime
    eater: UberEater
    cart: UberCart
    payment: UberPayment
    store: UberStore


class UberEatsAdapter(PlatformAdapter):
    """Uber Eats pushes the full order on every notification"""

    platform = Platform.UBER_EATS
    signature_header = "x-uber-signature"

    status_map = {
        "created": OrderStatus.PENDING,
        "accepted": OrderStatus.CONFIRMED,
        "denied": OrderStatus.CANCELLED,
        "finished": OrderStatus.PREPARING,
        "ready_for_pickup": OrderStatus.READY,
        "delivered": OrderStatus.COMPLETED,
        "cancelled": OrderStatus.CANCELLED,
    }

    event_kinds = {
        "orders.notification": EventKind.CREATED,
        "orders.status_changed": EventKind.UPDATED,
        "orders.cancel": EventKind.CANCELLED,
    }

    def event_type(self, payload: Dict[str, Any]) -> Optional[str]:
        return payload.get("event_type") if isinstance(payload, dict) else None

    def event_kind(self, payload: Dict[str, Any]) -> EventKind:
        event_type = self.event_type(payload)
        # Without a discriminator every delivery carries the whole order
        if event_type is None:
            return EventKind.CREATED
        return self.event_kinds.get(event_type, EventKind.IGNORED)

    def platform_order_id(self, payload: Dict[str, Any]) -> str:
        return self.parse(UberEatsOrderPayload, payload).id

    def external_status(self, payload: Dict[str, Any]) -> Optional[str]:
        return self.parse(UberEatsOrderPayload, payload).status

    def store_id(self, payload: Dict[str, Any]) -> Optional[str]:
        store = payload.get("store") if isinstance(payload, dict) else None
        return store.get("id") if isinstance(store, dict) else None

    def normalize(self, payload: Dict[str, Any], integration: PlatformIntegration) -> UnifiedOrder:
        order = self.parse(UberEatsOrderPayload, payload)

        with decoding(self.platform):
            charges = order.payment.charges
            total = to_minor_units(charges.total.amount, exponent=0)
            subtotal = (
                to_minor_units(charges.sub_total, exponent=0)
                if charges.sub_total is not None
                else total
            )

            items = []
            for item in order.cart.items:
                modifiers = [
                    ModifierData(
                        name=modifier.title,
                        price_cents=to_minor_units(modifier.price, exponent=0),
                        group=group.title,
                    )
                    for group in item.selected_modifier_groups
                    for modifier in group.selected_items
                ]
                items.append(
                    OrderItemData(
                        external_item_id=item.id,
                        name=item.title,
                        quantity=item.quantity,
                        unit_price_cents=to_minor_units(item.price.unit_price, exponent=0),
                        line_total_cents=to_minor_units(item.price.total, exponent=0),
                        special_instructions=item.special_instructions,
                        modifiers=modifiers,
                    )
                )

            customer_name = f"{order.eater.first_name} {order.eater.last_name}".strip() or None
            placed_at = to_naive_utc(order.placed_at)

            return UnifiedOrder(
                organization_id=integration.organization_id,
                integration_id=integration.id,
                platform=self.platform.value,
                platform_order_id=order.id,
                order_number=order.display_id,
                order_type=derive_order_type(placed_at, None),
                status=self.map_status(order.status),
                customer_name=customer_name,
                customer_phone=order.eater.phone,
                subtotal_cents=subtotal,
                tax_cents=to_minor_units(charges.tax, exponent=0),
                tip_cents=to_minor_units(charges.tip, exponent=0),
                total_cents=total,
                currency=self.currency_for(integration, charges.total.currency_code),
                payment_status="paid",
                payment_method=self.platform.value,
                platform_metadata={
                    "store_id": order.store.id,
                    "store_name": order.store.name,
                    "customer": {"name": customer_name, "phone": order.eater.phone},
                },
                raw_payload=order.model_dump(mode="json"),
                special_instructions=order.cart.special_instructions,
                placed_at=placed_at,
                items=items,
            )
