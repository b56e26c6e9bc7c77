"""Webhook ingestion pipeline"""

from orderbridge.ingest.dispatcher import WebhookDispatcher, decode_body
from orderbridge.ingest.notifier import AcceptanceNotifier, CeleryAcceptanceNotifier, get_notifier
from orderbridge.ingest.resolver import TenantResolver
from orderbridge.ingest.retry_queue import RetryQueue
from orderbridge.ingest.scheduler import (
    AcceptanceScheduler,
    AcceptanceWindow,
    acceptance_deadline,
    auto_accept_permitted,
)
from orderbridge.ingest.signature import compute_signature, verify
from orderbridge.ingest.synchronizer import OrderSynchronizer, guarded_status

__all__ = [
    "WebhookDispatcher",
    "decode_body",
    "AcceptanceNotifier",
    "CeleryAcceptanceNotifier",
    "get_notifier",
    "TenantResolver",
    "RetryQueue",
    "AcceptanceScheduler",
    "AcceptanceWindow",
    "acceptance_deadline",
    "auto_accept_permitted",
    "compute_signature",
    "verify",
    "OrderSynchronizer",
    "guarded_status",
]
