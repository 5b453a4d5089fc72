"""Tile-source interfaces and implementations for tileharvest."""

from tileharvest.sources.base import TileSource
from tileharvest.sources.capabilities import (
    CapabilitiesResolver,
    build_capabilities_url,
    parse_capabilities,
)
from tileharvest.sources.fetch import TileFetcher, build_tile_url
from tileharvest.sources.registry import SourceRegistry, default_registry
from tileharvest.sources.wmts import WMTSSource

__all__ = [
    "CapabilitiesResolver",
    "SourceRegistry",
    "TileFetcher",
    "TileSource",
    "WMTSSource",
    "build_capabilities_url",
    "build_tile_url",
    "default_registry",
    "parse_capabilities",
]
