"""WMTS tile source."""

from __future__ import annotations

from typing import List, Optional

import requests

from tileharvest.core.models import (
    WMTS_SERVICE_TYPE,
    HarvestConfig,
    LayerCapabilities,
    MapService,
    RasterTile,
    TileCoordinate,
)

from .capabilities import CapabilitiesResolver
from .fetch import TileFetcher


class WMTSSource:
    """Resolve layers from GetCapabilities and download tiles with GetTile."""

    service_type = WMTS_SERVICE_TYPE

    def __init__(self, session: requests.Session, config: HarvestConfig) -> None:
        self._resolver = CapabilitiesResolver(session, timeout=config.timeout_seconds)
        self._fetcher = TileFetcher(session, timeout=config.timeout_seconds)

    def resolve_layers(self, service: MapService) -> List[LayerCapabilities]:
        return self._resolver.resolve(service)

    def fetch_tile(
        self,
        service: MapService,
        layer: str,
        coordinate: TileCoordinate,
    ) -> Optional[RasterTile]:
        return self._fetcher.fetch(service.url, layer, service.matrix_set, coordinate)
