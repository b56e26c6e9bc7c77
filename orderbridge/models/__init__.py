"""Database models"""

from orderbridge.models.tenant import Organization, Branch, PlatformIntegration, Platform
from orderbridge.models.order import Order, OrderItem, OrderStatus, OrderType
from orderbridge.models.queue import WebhookQueueEntry
from orderbridge.models.acceptance import AcceptanceTimer, Urgency, TimerOutcome
from orderbridge.models.audit import AuditLog

__all__ = [
    "Organization",
    "Branch",
    "PlatformIntegration",
    "Platform",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderType",
    "WebhookQueueEntry",
    "AcceptanceTimer",
    "Urgency",
    "TimerOutcome",
    "AuditLog",
]
