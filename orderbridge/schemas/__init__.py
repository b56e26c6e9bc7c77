"""Pydantic schemas"""

from orderbridge.schemas.order import (
    ModifierData,
    OrderItemData,
    UnifiedOrder,
)
from orderbridge.schemas.webhook import (
    EventKind,
    SyncResult,
    DispatchResult,
    WebhookAck,
)

__all__ = [
    "ModifierData",
    "OrderItemData",
    "UnifiedOrder",
    "EventKind",
    "SyncResult",
    "DispatchResult",
    "WebhookAck",
]
