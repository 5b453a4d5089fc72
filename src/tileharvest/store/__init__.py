"""Tile-store output for tileharvest."""

from .compositing import merge_tiles
from .mbtiles import MBTilesStore

__all__ = ["MBTilesStore", "merge_tiles"]
