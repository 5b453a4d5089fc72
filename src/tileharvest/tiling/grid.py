"""Web Mercator tile-grid arithmetic for WMTS tile matrices."""

from __future__ import annotations

from typing import List, Optional, Sequence

import mercantile

from tileharvest.core.models import LayerCapabilities, TileCoordinate, TileMatrixLimits
from tileharvest.logging import get_logger

LOGGER = get_logger(__name__)


def invert_row(row: int, zoom: int) -> int:
    """Flip a row between top-down (WMTS/XYZ) and bottom-up (TMS) numbering."""

    return (1 << zoom) - 1 - row


def tile_range_for_extent(
    limits: TileMatrixLimits,
    bounds: Sequence[float],
    zoom: int,
) -> Optional[TileMatrixLimits]:
    """Clip ``limits`` to the tiles whose EPSG:3857 footprint meets ``bounds``.

    Footprints touching the extent edge count as intersecting. Returns ``None``
    when no tile of the matrix meets the extent.
    """

    ext_min_x, ext_min_y, ext_max_x, ext_max_y = bounds

    cols = []
    for x in range(limits.min_col, limits.max_col + 1):
        footprint = mercantile.xy_bounds(x, 0, zoom)
        if not (footprint.right < ext_min_x or footprint.left > ext_max_x):
            cols.append(x)
    if not cols:
        return None

    rows = []
    for y in range(limits.min_row, limits.max_row + 1):
        footprint = mercantile.xy_bounds(0, y, zoom)
        if not (footprint.top < ext_min_y or footprint.bottom > ext_max_y):
            rows.append(y)
    if not rows:
        return None

    return TileMatrixLimits(
        matrix=limits.matrix,
        zoom_level=limits.zoom_level,
        min_row=rows[0],
        max_row=rows[-1],
        min_col=cols[0],
        max_col=cols[-1],
    )


def calculate_coordinates(
    layer: LayerCapabilities,
    bounds: Sequence[float],
    min_zoom: int,
    max_zoom: int,
) -> List[TileCoordinate]:
    """Return every tile of ``layer`` covering ``bounds`` (EPSG:3857) per zoom level."""

    coordinates: List[TileCoordinate] = []
    for zoom in range(min_zoom, max_zoom + 1):
        limits = layer.limits_for_zoom(zoom)
        if limits is None:
            LOGGER.debug(
                "layer declares no tile matrix for zoom",
                extra={"layer": layer.identifier, "zoom": zoom},
            )
            continue
        clipped = tile_range_for_extent(limits, bounds, zoom)
        if clipped is None:
            continue
        for x in range(clipped.min_col, clipped.max_col + 1):
            for y in range(clipped.min_row, clipped.max_row + 1):
                coordinates.append(TileCoordinate(x=x, y=y, zoom=zoom, matrix=clipped.matrix))
    return coordinates
