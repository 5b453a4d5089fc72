"""Selection of tile sources by service type."""

from __future__ import annotations

from typing import Callable, Dict, List

import requests

from tileharvest.core.errors import UnsupportedServiceError
from tileharvest.core.models import WMTS_SERVICE_TYPE, HarvestConfig

from .base import TileSource
from .wmts import WMTSSource

SourceFactory = Callable[[requests.Session, HarvestConfig], TileSource]


class SourceRegistry:
    """Map service-type tags to tile-source factories."""

    def __init__(self) -> None:
        self._factories: Dict[str, SourceFactory] = {}

    def register(self, service_type: str, factory: SourceFactory) -> None:
        self._factories[service_type.upper()] = factory

    def service_types(self) -> List[str]:
        return sorted(self._factories)

    def create(
        self,
        service_type: str,
        session: requests.Session,
        config: HarvestConfig,
    ) -> TileSource:
        factory = self._factories.get(service_type.upper())
        if factory is None:
            raise UnsupportedServiceError(
                f"No tile source registered for service type {service_type!r}"
            )
        return factory(session, config)


def default_registry() -> SourceRegistry:
    registry = SourceRegistry()
    registry.register(WMTS_SERVICE_TYPE, WMTSSource)
    return registry
