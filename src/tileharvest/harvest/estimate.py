"""Store-size estimation from a handful of sampled tiles per zoom level."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional, Sequence

import requests

from tileharvest.core.models import HarvestConfig, SizeEstimate, TileCoordinate, TileRequest
from tileharvest.logging import get_logger
from tileharvest.sources.registry import SourceRegistry, default_registry

from .manager import build_session
from .planning import LayerPlan, plan_service

LOGGER = get_logger(__name__)


def _round3(value: float) -> float:
    return float(Decimal(repr(value)).quantize(Decimal("0.001"), rounding=ROUND_HALF_UP))


def select_samples(coordinates: Sequence[TileCoordinate]) -> List[TileCoordinate]:
    """Pick the corners, the centre and the centre's two diagonal neighbours.

    ``coordinates`` must share one tile matrix. The neighbours may fall
    outside the covered rectangle; they are sampled anyway.
    """

    if not coordinates:
        return []
    first = coordinates[0]
    xs = [coordinate.x for coordinate in coordinates]
    ys = [coordinate.y for coordinate in coordinates]
    min_x, max_x = min(xs), max(xs)
    min_y, max_y = min(ys), max(ys)
    center_x = (min_x + max_x) // 2
    center_y = (min_y + max_y) // 2
    points = [
        (min_x, min_y),
        (max_x, max_y),
        (center_x, center_y),
        (center_x - 1, center_y + 1),
        (center_x + 1, center_y - 1),
    ]
    return [TileCoordinate(x=x, y=y, zoom=first.zoom, matrix=first.matrix) for x, y in points]


def _group_by_matrix(coordinates: Sequence[TileCoordinate]) -> Dict[str, List[TileCoordinate]]:
    groups: Dict[str, List[TileCoordinate]] = {}
    for coordinate in coordinates:
        groups.setdefault(coordinate.matrix, []).append(coordinate)
    return groups


class SizeEstimator:
    """Extrapolate tile count and store size without a full download."""

    def __init__(
        self,
        config: Optional[HarvestConfig] = None,
        *,
        session: Optional[requests.Session] = None,
        registry: Optional[SourceRegistry] = None,
    ) -> None:
        self._config = config or HarvestConfig()
        self._session = session or build_session(self._config)
        self._registry = registry or default_registry()

    def estimate(self, request: TileRequest) -> SizeEstimate:
        total = SizeEstimate()
        for service in request.services:
            source = self._registry.create(service.service_type, self._session, self._config)
            plans = plan_service(source, service, request)
            total = total.combine(self._estimate_plans(plans))
        LOGGER.info("size estimate", extra=total.to_dict())
        return total

    def _estimate_plans(self, plans: Sequence[LayerPlan]) -> SizeEstimate:
        estimate_kb = 0.0
        tile_count = 0
        for plan in plans:
            LOGGER.info("estimating size for layer %s", plan.layer.identifier)
            estimate_kb += self._layer_bytes(plan) / 1024
            tile_count += len(plan.coordinates)
        tile_size_kb = _round3(estimate_kb / tile_count) if tile_count else 0.0
        return SizeEstimate(
            tile_count=tile_count,
            tile_size_kb=tile_size_kb,
            store_size_mb=_round3(estimate_kb / 1024),
        )

    def _layer_bytes(self, plan: LayerPlan) -> float:
        estimation = 0.0
        for matrix, coordinates in _group_by_matrix(plan.coordinates).items():
            total_bytes = 0
            valid = 0
            for sample in select_samples(coordinates):
                tile = plan.source.fetch_tile(plan.service, plan.layer.identifier, sample)
                if tile is not None:
                    total_bytes += tile.size_bytes
                    valid += 1
            average = total_bytes / valid if valid else 0.0
            LOGGER.info(
                "average tile size %.3f KB from %d sample(s)",
                average / 1024,
                valid,
                extra={"layer": plan.layer.identifier, "matrix": matrix},
            )
            estimation += average * len(coordinates)
        return estimation
