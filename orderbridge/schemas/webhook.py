"""Webhook dispatch schemas"""

import enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel

from orderbridge.models.order import OrderStatus


class EventKind(str, enum.Enum):
    """Which dispatcher path an inbound event takes"""
    CREATED = "created"
    UPDATED = "updated"
    CANCELLED = "cancelled"
    IGNORED = "ignored"


class SyncResult(BaseModel):
    """Outcome of applying an event to the order store"""
    order_id: UUID
    created: bool
    status: OrderStatus


class DispatchResult(BaseModel):
    """Outcome of a processed webhook"""
    platform: str
    event_kind: EventKind
    event_type: Optional[str] = None
    integration_id: Optional[UUID] = None
    order_id: Optional[UUID] = None
    created: bool = False
    status: Optional[OrderStatus] = None


class WebhookAck(BaseModel):
    """Response body sent back to the platform"""
    status: str
    code: Optional[str] = None
    order_id: Optional[UUID] = None
