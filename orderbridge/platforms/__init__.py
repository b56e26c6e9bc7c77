"""Delivery platform adapters, selected by platform tag"""

from typing import Dict, List

from orderbridge.errors import UnknownPlatformError
from orderbridge.platforms.base import PlatformAdapter, AcceptancePolicy, AcceptanceStep
from orderbridge.platforms.uber_eats import UberEatsAdapter
from orderbridge.platforms.deliveroo import DeliverooAdapter
from orderbridge.platforms.just_eat import JustEatAdapter

_adapters: Dict[str, PlatformAdapter] = {}


def register_adapter(adapter: PlatformAdapter) -> None:
    """Make a platform available to the dispatcher"""
    _adapters[adapter.platform.value] = adapter


def get_adapter(platform: str) -> PlatformAdapter:
    """Adapter for a platform tag; accepts ``uber-eats`` and ``uber_eats``"""
    adapter = _adapters.get(platform.strip().lower().replace("-", "_"))
    if not adapter:
        raise UnknownPlatformError(f"Unknown platform: {platform}")
    return adapter


def registered_platforms() -> List[str]:
    return sorted(_adapters)


register_adapter(UberEatsAdapter())
register_adapter(DeliverooAdapter())
register_adapter(JustEatAdapter())

__all__ = [
    "PlatformAdapter",
    "AcceptancePolicy",
    "AcceptanceStep",
    "UberEatsAdapter",
    "DeliverooAdapter",
    "JustEatAdapter",
    "register_adapter",
    "get_adapter",
    "registered_platforms",
]
