"""Base delivery platform adapter interface"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from orderbridge.config import settings
from orderbridge.errors import DecodeError
from orderbridge.models.order import OrderStatus, OrderType
from orderbridge.models.tenant import Platform, PlatformIntegration
from orderbridge.schemas.order import UnifiedOrder
from orderbridge.schemas.webhook import EventKind

PayloadModel = TypeVar("PayloadModel", bound=BaseModel)


@dataclass(frozen=True)
class AcceptanceStep:
    """Acceptance window for orders fulfilled less than ``max_hours`` out"""
    max_hours: Optional[float]  # None: no upper bound
    window: timedelta
    margin: timedelta  # Fire this much before the deadline


@dataclass(frozen=True)
class AcceptancePolicy:
    """Step function from hours-until-fulfilment to acceptance window.

    Steps are ordered by ``max_hours`` with non-decreasing windows, so a
    further fulfilment time never yields an earlier deadline.
    """
    steps: Tuple[AcceptanceStep, ...]

    def step_for(self, hours_until_fulfillment: float) -> AcceptanceStep:
        for step in self.steps:
            if step.max_hours is None or hours_until_fulfillment < step.max_hours:
                return step
        return self.steps[-1]


DEFAULT_ACCEPTANCE_POLICY = AcceptancePolicy(
    steps=(
        AcceptanceStep(24, timedelta(minutes=15), timedelta(minutes=2)),
        AcceptanceStep(48, timedelta(hours=2), timedelta(minutes=10)),
        AcceptanceStep(None, timedelta(hours=24), timedelta(minutes=30)),
    )
)


@contextmanager
def decoding(platform: Platform):
    """Turn schema and value errors raised while normalizing into DecodeError"""
    try:
        yield
    except DecodeError:
        raise
    except (ValidationError, ValueError, TypeError, KeyError) as e:
        raise DecodeError(f"{platform.value} payload rejected: {e}") from e


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def derive_order_type(
    placed_at: datetime,
    scheduled_for: Optional[datetime],
    default: OrderType = OrderType.DELIVERY,
) -> OrderType:
    """A fulfilment time later than the placement time makes a pre-order"""
    if scheduled_for is not None and scheduled_for > placed_at:
        return OrderType.PRE_ORDER
    return default


class PlatformAdapter(ABC):
    """Converts one platform's webhook payloads into unified orders.

    Adapters hold no state and perform no I/O; the dispatcher selects one
    by platform tag.
    """

    platform: Platform
    signature_header: str  # Lower-cased header name
    status_map: Dict[str, OrderStatus] = {}
    acceptance_policy: AcceptancePolicy = DEFAULT_ACCEPTANCE_POLICY

    @abstractmethod
    def event_type(self, payload: Dict[str, Any]) -> Optional[str]:
        """Raw event discriminator as sent by the platform"""

    @abstractmethod
    def event_kind(self, payload: Dict[str, Any]) -> EventKind:
        """Dispatcher path for this payload"""

    @abstractmethod
    def platform_order_id(self, payload: Dict[str, Any]) -> str:
        """External order id, the idempotency key within an integration"""

    @abstractmethod
    def external_status(self, payload: Dict[str, Any]) -> Optional[str]:
        """Status string in the platform's vocabulary"""

    @abstractmethod
    def store_id(self, payload: Dict[str, Any]) -> Optional[str]:
        """Platform store id named in the payload, if any"""

    @abstractmethod
    def normalize(self, payload: Dict[str, Any], integration: PlatformIntegration) -> UnifiedOrder:
        """Full unified order for this payload"""

    def map_status(self, external_status: Optional[str]) -> OrderStatus:
        """Total lookup; unrecognized statuses become pending for a human to review"""
        if not external_status:
            return OrderStatus.PENDING
        return self.status_map.get(str(external_status).strip().lower(), OrderStatus.PENDING)

    def check_store(self, payload: Dict[str, Any], integration: PlatformIntegration) -> None:
        expected = integration.platform_restaurant_id
        actual = self.store_id(payload)
        if expected and actual and str(actual) != str(expected):
            raise DecodeError(
                f"Store id {actual} does not match integration store {expected}",
                code="store_mismatch",
            )

    def parse(self, model: Type[PayloadModel], payload: Dict[str, Any]) -> PayloadModel:
        with decoding(self.platform):
            if not isinstance(payload, dict):
                raise DecodeError(f"{self.platform.value} payload must be a JSON object")
            return model.model_validate(payload)

    def currency_for(self, integration: PlatformIntegration, sent: Optional[str] = None) -> str:
        return (sent or integration.setting("currency") or settings.default_currency).upper()
