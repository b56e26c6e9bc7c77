"""Webhook dispatcher: verify, resolve, normalize and apply one platform event"""

import json
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from orderbridge.config import Settings, settings as default_settings
from orderbridge.errors import (
    AuthenticationError,
    DecodeError,
    IngestError,
    MissingTenantError,
    PersistenceError,
    TenantResolutionError,
)
from orderbridge.ingest.notifier import AcceptanceNotifier
from orderbridge.ingest.resolver import TenantResolver
from orderbridge.ingest.retry_queue import RetryQueue
from orderbridge.ingest.scheduler import AcceptanceScheduler
from orderbridge.ingest.signature import verify
from orderbridge.ingest.synchronizer import OrderSynchronizer
from orderbridge.models.order import OrderStatus
from orderbridge.models.tenant import PlatformIntegration
from orderbridge.platforms import PlatformAdapter, get_adapter
from orderbridge.schemas.order import UnifiedOrder
from orderbridge.schemas.webhook import DispatchResult, EventKind, SyncResult, WebhookAck

logger = structlog.get_logger()


def decode_body(raw_body: bytes) -> Dict[str, Any]:
    """Parse a webhook body, keeping JSON numbers exact"""
    try:
        payload = json.loads(raw_body, parse_float=Decimal)
    except ValueError as e:
        raise DecodeError(f"Body is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise DecodeError("Body must be a JSON object")
    return payload


class WebhookDispatcher:
    """Runs one inbound webhook through the ingestion pipeline.

    The session, notifier and settings are passed in so the same
    dispatcher serves HTTP requests and queue replays.
    """

    def __init__(
        self,
        db: AsyncSession,
        notifier: Optional[AcceptanceNotifier] = None,
        config: Optional[Settings] = None,
    ):
        self.db = db
        self.config = config or default_settings
        self.resolver = TenantResolver(db)
        self.scheduler = AcceptanceScheduler(db, notifier)
        self.synchronizer = OrderSynchronizer(db, self.scheduler)
        self.queue = RetryQueue(db, self.config)

    async def dispatch(
        self,
        platform: str,
        tenant_hint: Optional[str],
        raw_body: bytes,
        headers: Mapping[str, str],
    ) -> DispatchResult:
        """Process a webhook or raise the IngestError describing why not"""
        adapter = get_adapter(platform)
        headers = {k.lower(): v for k, v in headers.items()}
        request_id = headers.get("x-request-id")

        if not tenant_hint:
            raise MissingTenantError("Webhook URL has no org parameter")

        signature = headers.get(adapter.signature_header)
        if not signature:
            logger.warning("Webhook signature missing", platform=adapter.platform.value, request_id=request_id)
            raise AuthenticationError("Missing signature header")

        integration = await self.resolver.resolve(adapter.platform.value, tenant_hint)

        if not integration.webhook_secret:
            logger.warning("Webhook secret not configured", platform=adapter.platform.value, request_id=request_id)
            raise AuthenticationError("Integration has no webhook secret")

        if not verify(raw_body, signature, integration.webhook_secret):
            logger.warning("Webhook signature invalid", platform=adapter.platform.value, request_id=request_id)
            raise AuthenticationError("Invalid signature")

        try:
            payload = decode_body(raw_body)
            adapter.check_store(payload, integration)
            event_type = adapter.event_type(payload)
            kind = adapter.event_kind(payload)
            sync = await self._apply(adapter, kind, payload, integration)
        except DecodeError as e:
            logger.error(
                "Webhook payload rejected",
                platform=adapter.platform.value,
                integration_id=str(integration.id),
                code=e.code,
                error=str(e),
                raw_payload=raw_body.decode("utf-8", errors="replace"),
            )
            raise

        if sync is None:
            logger.info(
                "Webhook event ignored",
                platform=adapter.platform.value,
                integration_id=str(integration.id),
                event_type=event_type,
            )
            return DispatchResult(
                platform=adapter.platform.value,
                event_kind=kind,
                event_type=event_type,
                integration_id=integration.id,
            )

        logger.info(
            "Webhook processed",
            platform=adapter.platform.value,
            integration_id=str(integration.id),
            event_type=event_type,
            event_kind=kind.value,
            order_id=str(sync.order_id),
            created=sync.created,
            status=sync.status.value,
        )
        return DispatchResult(
            platform=adapter.platform.value,
            event_kind=kind,
            event_type=event_type,
            integration_id=integration.id,
            order_id=sync.order_id,
            created=sync.created,
            status=sync.status,
        )

    async def _apply(
        self,
        adapter: PlatformAdapter,
        kind: EventKind,
        payload: Dict[str, Any],
        integration: PlatformIntegration,
    ) -> Optional[SyncResult]:
        if kind == EventKind.IGNORED:
            return None

        if kind == EventKind.CREATED:
            order = await self._build(adapter, payload, integration)
            return await self.synchronizer.upsert(order)

        if kind == EventKind.CANCELLED:
            status = OrderStatus.CANCELLED
        else:
            status = adapter.map_status(adapter.external_status(payload))

        async def build_order() -> UnifiedOrder:
            return await self._build(adapter, payload, integration, status)

        return await self.synchronizer.apply_status(
            integration,
            adapter.platform_order_id(payload),
            status,
            build_order,
        )

    async def _build(
        self,
        adapter: PlatformAdapter,
        payload: Dict[str, Any],
        integration: PlatformIntegration,
        status: Optional[OrderStatus] = None,
    ) -> UnifiedOrder:
        order = adapter.normalize(payload, integration)
        update = {"branch_id": await self.resolver.resolve_branch(integration)}
        if status is not None:
            update["status"] = status
        return order.model_copy(update=update)

    async def handle(
        self,
        platform: str,
        tenant_hint: Optional[str],
        raw_body: bytes,
        headers: Mapping[str, str],
    ) -> Tuple[int, WebhookAck]:
        """Dispatch for HTTP: returns the status code and body to answer with"""
        try:
            result = await self.dispatch(platform, tenant_hint, raw_body, headers)
        except IngestError as e:
            return await self._failure(e, platform, tenant_hint, raw_body, headers)
        except Exception:
            logger.exception("Unexpected webhook failure", platform=platform)
            await self.db.rollback()
            return 500, WebhookAck(status="error", code="internal_error")

        if result.event_kind == EventKind.IGNORED:
            return 200, WebhookAck(status="ignored")
        return 200, WebhookAck(status="ok", order_id=result.order_id)

    async def _failure(
        self,
        error: IngestError,
        platform: str,
        tenant_hint: Optional[str],
        raw_body: bytes,
        headers: Mapping[str, str],
    ) -> Tuple[int, WebhookAck]:
        if error.retryable:
            try:
                await self.queue.enqueue(
                    get_adapter(platform).platform.value,
                    tenant_hint,
                    raw_body,
                    dict(headers),
                    str(error),
                )
            except SQLAlchemyError:
                logger.exception("Failed to queue webhook", platform=platform)
                await self.db.rollback()
                return 500, WebhookAck(status="error", code="internal_error")

            if isinstance(error, PersistenceError):
                return 200, WebhookAck(status="queued")

        status_code, code = error.status_code, error.code
        if isinstance(error, TenantResolutionError) and self.config.webhook_opaque_auth_errors:
            status_code, code = AuthenticationError.status_code, AuthenticationError.code
        if status_code >= 500:
            logger.error("Webhook failed", platform=platform, code=error.code, error=str(error))
            code = "internal_error"
        return status_code, WebhookAck(status="error", code=code)

    async def replay_due(self, queue: Optional[RetryQueue] = None) -> Dict[str, int]:
        """Re-dispatch every due queue entry once; returns outcome counts"""
        queue = queue or self.queue
        stats = {"resolved": 0, "retrying": 0, "abandoned": 0}

        async for entry in queue.drain():
            entry_id = entry.id
            platform, tenant_hint = entry.platform, entry.tenant_hint
            raw_body, headers = entry.raw_body, dict(entry.headers or {})

            try:
                await self.dispatch(platform, tenant_hint, raw_body, headers)
            except IngestError as e:
                await self.db.rollback()
                abandoned = await queue.mark_failed(entry_id, str(e), permanent=not e.retryable)
            except Exception as e:
                logger.exception("Unexpected failure replaying webhook", entry_id=str(entry_id))
                await self.db.rollback()
                abandoned = await queue.mark_failed(entry_id, str(e))
            else:
                await queue.mark_resolved(entry_id)
                stats["resolved"] += 1
                continue

            stats["abandoned" if abandoned else "retrying"] += 1

        logger.info("Webhook queue drained", **stats)
        return stats
