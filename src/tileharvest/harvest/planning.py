"""Expansion of a request into per-layer coordinate sets."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from tileharvest.core.models import (
    STORE_SRS,
    LayerCapabilities,
    MapService,
    TileCoordinate,
    TileRequest,
)
from tileharvest.logging import get_logger
from tileharvest.sources.base import TileSource
from tileharvest.tiling.grid import calculate_coordinates
from tileharvest.tiling.projection import reproject_extent

LOGGER = get_logger(__name__)


@dataclass
class LayerPlan:
    """Coordinates to harvest for one layer of one service."""

    source: TileSource
    service: MapService
    layer: LayerCapabilities
    coordinates: List[TileCoordinate]


def plan_service(source: TileSource, service: MapService, request: TileRequest) -> List[LayerPlan]:
    """Resolve the service's layers and compute their covered coordinates."""

    layers = source.resolve_layers(service)
    bounds = reproject_extent(request.extent, STORE_SRS).to_bounds()
    plans: List[LayerPlan] = []
    for layer in layers:
        coordinates = calculate_coordinates(layer, bounds, request.min_zoom, request.max_zoom)
        LOGGER.info(
            "planned %d tile(s) for layer %s",
            len(coordinates),
            layer.identifier,
            extra={"service": service.url, "min_zoom": request.min_zoom, "max_zoom": request.max_zoom},
        )
        plans.append(LayerPlan(source=source, service=service, layer=layer, coordinates=coordinates))
    return plans
