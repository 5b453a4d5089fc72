"""Dataclasses describing core tileharvest entities."""

from __future__ import annotations

import io
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from PIL import Image

from .errors import InvalidRequestError

STORE_SRS = "EPSG:3857"
GEOGRAPHIC_SRS = "EPSG:4326"
WMTS_SERVICE_TYPE = "WMTS"

SRS_PATTERN = re.compile(r"^[A-Za-z]+:\d+$")
GLOBAL_BOUNDS = (-180.0, -90.0, 180.0, 90.0)


@dataclass(frozen=True)
class BoundingExtent:
    """Axis-aligned extent expressed in a single spatial reference system."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float
    srs: str = GEOGRAPHIC_SRS

    def __post_init__(self) -> None:
        if not SRS_PATTERN.match(self.srs or ""):
            raise InvalidRequestError(
                f"SRS must look like AUTHORITY:CODE (e.g. EPSG:4326), got {self.srs!r}"
            )
        if self.min_x > self.max_x:
            raise InvalidRequestError("min_x must be less than or equal to max_x")
        if self.min_y > self.max_y:
            raise InvalidRequestError("min_y must be less than or equal to max_y")

    def to_bounds(self) -> Tuple[float, float, float, float]:
        return (self.min_x, self.min_y, self.max_x, self.max_y)

    def union(self, other: "BoundingExtent") -> "BoundingExtent":
        """Return the smallest extent covering both; both must share an SRS."""

        if other.srs != self.srs:
            raise ValueError(f"Cannot union extents in {self.srs} and {other.srs}")
        return BoundingExtent(
            min(self.min_x, other.min_x),
            min(self.min_y, other.min_y),
            max(self.max_x, other.max_x),
            max(self.max_y, other.max_y),
            self.srs,
        )


@dataclass(frozen=True)
class TileMatrixLimits:
    """Addressable row/column range of one tile matrix of a layer."""

    matrix: str
    zoom_level: int
    min_row: int
    max_row: int
    min_col: int
    max_col: int

    @classmethod
    def from_identifier(
        cls,
        matrix: str,
        *,
        min_row: int,
        max_row: int,
        min_col: int,
        max_col: int,
    ) -> "TileMatrixLimits":
        """Build limits deriving the zoom level from the last number in ``matrix``."""

        digits = re.findall(r"\d+", matrix)
        zoom_level = int(digits[-1]) if digits else 0
        return cls(
            matrix=matrix,
            zoom_level=zoom_level,
            min_row=min_row,
            max_row=max_row,
            min_col=min_col,
            max_col=max_col,
        )


@dataclass(frozen=True)
class LayerCapabilities:
    """Tile-matrix limits and geographic extent advertised for a layer."""

    identifier: str
    limits: Tuple[TileMatrixLimits, ...] = field(default_factory=tuple)
    extent: BoundingExtent = field(default_factory=lambda: BoundingExtent(*GLOBAL_BOUNDS))

    def limits_for_zoom(self, zoom: int) -> Optional[TileMatrixLimits]:
        for limits in self.limits:
            if limits.zoom_level == zoom:
                return limits
        return None


@dataclass(frozen=True)
class TileCoordinate:
    """Column/row of a tile in the source's (top-down) row numbering."""

    x: int
    y: int
    zoom: int
    matrix: str


@dataclass
class RasterTile:
    """Encoded tile image bound to the coordinate it was fetched for."""

    coordinate: TileCoordinate
    data: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    def image(self) -> Image.Image:
        image = Image.open(io.BytesIO(self.data))
        image.load()
        return image


@dataclass(frozen=True)
class ProgressState:
    """Tile counters reported for a running job."""

    job_id: int
    total_tiles: int
    processed_tiles: int


@dataclass(frozen=True)
class SizeEstimate:
    """Extrapolated tile count and sizes for a request."""

    tile_count: int = 0
    tile_size_kb: float = 0.0
    store_size_mb: float = 0.0

    def combine(self, other: "SizeEstimate") -> "SizeEstimate":
        """Merge two estimates weighting the per-tile size by tile count."""

        tile_count = self.tile_count + other.tile_count
        if tile_count > 0:
            weighted = self.tile_size_kb * self.tile_count + other.tile_size_kb * other.tile_count
            tile_size_kb = weighted / tile_count
        else:
            tile_size_kb = 0.0
        return SizeEstimate(
            tile_count=tile_count,
            tile_size_kb=tile_size_kb,
            store_size_mb=self.store_size_mb + other.store_size_mb,
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "tile_count": self.tile_count,
            "tile_size_kb": self.tile_size_kb,
            "store_size_mb": self.store_size_mb,
        }


@dataclass(frozen=True)
class MapService:
    """A tile service endpoint and the layers requested from it."""

    url: str
    layers: Tuple[str, ...]
    service_type: str = WMTS_SERVICE_TYPE
    matrix_set: str = STORE_SRS

    def __post_init__(self) -> None:
        if not self.url:
            raise InvalidRequestError("service url cannot be empty")
        if not self.layers:
            raise InvalidRequestError("at least one layer must be specified")
        if not self.service_type:
            raise InvalidRequestError("service type cannot be empty")


@dataclass(frozen=True)
class TileRequest:
    """Services, extent and zoom range of a harvest job."""

    services: Tuple[MapService, ...]
    extent: BoundingExtent
    min_zoom: int
    max_zoom: int

    def __post_init__(self) -> None:
        if not self.services:
            raise InvalidRequestError("at least one map service must be provided")
        if self.min_zoom < 0 or self.max_zoom < 0:
            raise InvalidRequestError("zoom levels must be at least 0")
        if self.min_zoom > self.max_zoom:
            raise InvalidRequestError("min_zoom must be less than or equal to max_zoom")

    @property
    def zoom_levels(self) -> range:
        return range(self.min_zoom, self.max_zoom + 1)


@dataclass
class HarvestConfig:
    """Runtime options for fetching tiles and running jobs."""

    timeout_seconds: int = 30
    user_agent: str = "tileharvest/0.1"
    fetch_workers: int = 1
    job_workers: int = 2
    cancel_check_interval: int = 10
    store_version: str = "1.0"
    store_description: str = "Layer generated by tileharvest"


@dataclass
class TileStoreMetadata:
    """Metadata rows written into a finished MBTiles file."""

    name: str
    bounds: Tuple[float, float, float, float]
    minzoom: int
    maxzoom: int
    description: str
    version: str
    format: str = "png"
    type: str = "baselayer"

    def to_rows(self) -> List[Tuple[str, str]]:
        bounds_values = ",".join(f"{value:.6f}" for value in self.bounds)
        return [
            ("name", self.name),
            ("type", self.type),
            ("version", self.version),
            ("description", self.description),
            ("format", self.format),
            ("bounds", bounds_values),
            ("minzoom", str(self.minzoom)),
            ("maxzoom", str(self.maxzoom)),
        ]
