"""Extent reprojection built on pyproj."""

from __future__ import annotations

from functools import lru_cache

from pyproj import Transformer
from pyproj.exceptions import CRSError

from tileharvest.core.errors import InvalidRequestError
from tileharvest.core.models import BoundingExtent


@lru_cache(maxsize=32)
def _transformer(src_srs: str, dst_srs: str) -> Transformer:
    try:
        return Transformer.from_crs(src_srs, dst_srs, always_xy=True)
    except CRSError as exc:
        raise InvalidRequestError(f"Unsupported SRS transform {src_srs} -> {dst_srs}: {exc}") from exc


def reproject_extent(extent: BoundingExtent, dst_srs: str) -> BoundingExtent:
    """Return ``extent`` expressed in ``dst_srs``.

    The min and max corners are transformed independently and stay in their
    slots; the result is not re-sorted.
    """

    if extent.srs == dst_srs:
        return extent
    transformer = _transformer(extent.srs, dst_srs)
    min_x, min_y = transformer.transform(extent.min_x, extent.min_y)
    max_x, max_y = transformer.transform(extent.max_x, extent.max_y)
    return BoundingExtent(min_x, min_y, max_x, max_y, dst_srs)
