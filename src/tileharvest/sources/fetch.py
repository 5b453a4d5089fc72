"""Single-tile WMTS download and decode."""

from __future__ import annotations

import io
from typing import Optional

import requests
from PIL import Image

from tileharvest.core.models import RasterTile, TileCoordinate
from tileharvest.logging import get_logger

LOGGER = get_logger(__name__)

TILE_URL_TEMPLATE = (
    "{url}?SERVICE=WMTS&VERSION=1.0.0&REQUEST=GetTile&LAYER={layer}"
    "&TILEMATRIXSET={matrix_set}&TILEMATRIX={matrix}&TILEROW={row}&TILECOL={col}"
    "&FORMAT=image/png"
)


def build_tile_url(
    service_url: str,
    layer: str,
    matrix_set: str,
    matrix: str,
    row: int,
    col: int,
) -> str:
    return TILE_URL_TEMPLATE.format(
        url=service_url,
        layer=layer,
        matrix_set=matrix_set,
        matrix=matrix,
        row=row,
        col=col,
    )


def encode_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


class TileFetcher:
    """Download tiles, turning every failure into a missing tile."""

    def __init__(self, session: requests.Session, *, timeout: int = 30) -> None:
        self._session = session
        self._timeout = timeout

    def fetch(
        self,
        service_url: str,
        layer: str,
        matrix_set: str,
        coordinate: TileCoordinate,
    ) -> Optional[RasterTile]:
        url = build_tile_url(
            service_url,
            layer,
            matrix_set,
            coordinate.matrix,
            coordinate.y,
            coordinate.x,
        )
        context = {
            "layer": layer,
            "matrix": coordinate.matrix,
            "x": coordinate.x,
            "y": coordinate.y,
            "url": url,
        }
        try:
            response = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as exc:
            LOGGER.warning("tile request failed: %s", exc, extra=context)
            return None
        if response.status_code != 200:
            LOGGER.warning("tile request returned %s", response.status_code, extra=context)
            return None
        try:
            with Image.open(io.BytesIO(response.content)) as image:
                image.load()
                data = encode_png(image)
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            LOGGER.warning("tile could not be decoded: %s", exc, extra=context)
            return None
        LOGGER.debug("downloaded tile", extra=context)
        return RasterTile(coordinate=coordinate, data=data)
