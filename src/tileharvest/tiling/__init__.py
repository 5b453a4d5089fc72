"""Tile-grid and reprojection helpers for tileharvest."""

from .grid import calculate_coordinates, invert_row, tile_range_for_extent
from .projection import reproject_extent

__all__ = [
    "calculate_coordinates",
    "invert_row",
    "reproject_extent",
    "tile_range_for_extent",
]
