"""Protocol definitions for tile-source components."""

from __future__ import annotations

from typing import List, Optional, Protocol

from tileharvest.core.models import LayerCapabilities, MapService, RasterTile, TileCoordinate


class TileSource(Protocol):
    """Interface for resolving layers and fetching tiles from one service type."""

    service_type: str

    def resolve_layers(self, service: MapService) -> List[LayerCapabilities]:
        """Return capabilities of the requested layers, in request order."""

    def fetch_tile(
        self,
        service: MapService,
        layer: str,
        coordinate: TileCoordinate,
    ) -> Optional[RasterTile]:
        """Return the tile at ``coordinate`` or ``None`` when it cannot be fetched."""
