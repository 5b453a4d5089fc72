from typing import List, Optional

import pytest

from tileharvest.core.models import (
    BoundingExtent,
    HarvestConfig,
    LayerCapabilities,
    MapService,
    RasterTile,
    SizeEstimate,
    TileCoordinate,
    TileMatrixLimits,
    TileRequest,
)
from tileharvest.harvest import SizeEstimator, select_samples
from tileharvest.sources.registry import SourceRegistry

WORLD = BoundingExtent(-180.0, -85.0, 180.0, 85.0, "EPSG:4326")


class StubSource:
    service_type = "STUB"

    def __init__(self, tile_bytes: Optional[int]) -> None:
        self.tile_bytes = tile_bytes
        self.fetched: List[TileCoordinate] = []

    def resolve_layers(self, service: MapService) -> List[LayerCapabilities]:
        return [
            LayerCapabilities(
                identifier=name,
                limits=(
                    TileMatrixLimits.from_identifier("z1", min_row=0, max_row=1, min_col=0, max_col=1),
                    TileMatrixLimits.from_identifier("z2", min_row=0, max_row=3, min_col=0, max_col=3),
                ),
            )
            for name in service.layers
        ]

    def fetch_tile(self, service: MapService, layer: str, coordinate: TileCoordinate) -> Optional[RasterTile]:
        self.fetched.append(coordinate)
        if self.tile_bytes is None:
            return None
        return RasterTile(coordinate, b"\0" * self.tile_bytes)


def _estimator(source: StubSource) -> SizeEstimator:
    registry = SourceRegistry()
    registry.register("STUB", lambda session, config: source)
    return SizeEstimator(HarvestConfig(), session=object(), registry=registry)  # type: ignore[arg-type]


def _request(min_zoom: int = 1, max_zoom: int = 2) -> TileRequest:
    service = MapService(url="https://tiles.example.org/wmts", layers=("ortho",), service_type="STUB")
    return TileRequest(services=(service,), extent=WORLD, min_zoom=min_zoom, max_zoom=max_zoom)


def test_select_samples_corners_centre_and_diagonals() -> None:
    coordinates = [TileCoordinate(x, y, 10, "z10") for x in range(503, 507) for y in range(383, 388)]

    samples = select_samples(coordinates)

    assert [(s.x, s.y) for s in samples] == [(503, 383), (506, 387), (504, 385), (503, 386), (505, 384)]
    assert {s.matrix for s in samples} == {"z10"}


def test_select_samples_of_nothing() -> None:
    assert select_samples([]) == []


def test_estimate_extrapolates_sample_average() -> None:
    source = StubSource(tile_bytes=2048)

    estimate = _estimator(source).estimate(_request())

    assert estimate.tile_count == 20
    assert estimate.tile_size_kb == pytest.approx(2.0)
    assert estimate.store_size_mb == pytest.approx(0.039)
    assert len(source.fetched) == 10


def test_estimate_with_every_sample_failing_is_zero() -> None:
    estimate = _estimator(StubSource(tile_bytes=None)).estimate(_request())

    assert estimate == SizeEstimate(tile_count=20, tile_size_kb=0.0, store_size_mb=0.0)


def test_combine_weights_by_tile_count() -> None:
    first = SizeEstimate(tile_count=10, tile_size_kb=4.0, store_size_mb=0.039)
    second = SizeEstimate(tile_count=30, tile_size_kb=8.0, store_size_mb=0.234)

    combined = first.combine(second)

    assert combined.tile_count == 40
    assert combined.tile_size_kb == pytest.approx(7.0)
    assert combined.store_size_mb == pytest.approx(0.273)
    reversed_order = second.combine(first)
    assert reversed_order.tile_count == combined.tile_count
    assert reversed_order.tile_size_kb == pytest.approx(combined.tile_size_kb)
    assert reversed_order.store_size_mb == pytest.approx(combined.store_size_mb)


def test_combine_of_empty_estimates() -> None:
    assert SizeEstimate().combine(SizeEstimate()) == SizeEstimate()
