"""Delivery platform webhook endpoint"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from orderbridge.config import Settings, get_settings
from orderbridge.database import get_db
from orderbridge.ingest.dispatcher import WebhookDispatcher
from orderbridge.ingest.notifier import AcceptanceNotifier, get_notifier

router = APIRouter()
logger = structlog.get_logger()


@router.post("/{platform}")
async def handle_platform_webhook(
    platform: str,
    request: Request,
    org: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    notifier: AcceptanceNotifier = Depends(get_notifier),
    config: Settings = Depends(get_settings),
):
    """
    Receive an order event from a delivery platform.
    The ``org`` query parameter routes the event to its organization; the
    body is read once and verified byte for byte.
    """
    raw_body = await request.body()

    dispatcher = WebhookDispatcher(db, notifier=notifier, config=config)
    status_code, ack = await dispatcher.handle(platform, org, raw_body, dict(request.headers))

    return JSONResponse(
        status_code=status_code,
        content=ack.model_dump(mode="json", exclude_none=True),
    )
