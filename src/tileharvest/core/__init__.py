"""Core data models for tileharvest."""

from .errors import (
    CapabilitiesError,
    HarvestError,
    InvalidRequestError,
    StoreError,
    UnsupportedServiceError,
)
from .models import (
    BoundingExtent,
    HarvestConfig,
    LayerCapabilities,
    MapService,
    ProgressState,
    RasterTile,
    SizeEstimate,
    TileCoordinate,
    TileMatrixLimits,
    TileRequest,
    TileStoreMetadata,
)

__all__ = [
    "BoundingExtent",
    "CapabilitiesError",
    "HarvestConfig",
    "HarvestError",
    "InvalidRequestError",
    "LayerCapabilities",
    "MapService",
    "ProgressState",
    "RasterTile",
    "SizeEstimate",
    "StoreError",
    "TileCoordinate",
    "TileMatrixLimits",
    "TileRequest",
    "TileStoreMetadata",
    "UnsupportedServiceError",
]
