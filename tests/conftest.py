from __future__ import annotations

import io
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import parse_qs, urlsplit

import pytest
import requests
from PIL import Image

MatrixLimits = Tuple[str, int, int, int, int]

WMTS_NS = "http://www.opengis.net/wmts/1.0"
OWS_NS = "http://www.opengis.net/ows/1.1"


def build_capabilities(
    layers: Mapping[str, Sequence[MatrixLimits]],
    *,
    matrix_set: str = "EPSG:3857",
    corners: Optional[Mapping[str, Tuple[float, float, float, float]]] = None,
) -> bytes:
    """Render a namespaced WMTS capabilities document for ``layers``."""

    corners = corners or {}
    parts: List[str] = [
        f'<?xml version="1.0" encoding="UTF-8"?>'
        f'<Capabilities xmlns="{WMTS_NS}" xmlns:ows="{OWS_NS}" version="1.0.0"><Contents>'
    ]
    for identifier, limits in layers.items():
        parts.append(f"<Layer><ows:Title>{identifier}</ows:Title>")
        if identifier in corners:
            min_x, min_y, max_x, max_y = corners[identifier]
            parts.append(
                "<ows:WGS84BoundingBox>"
                f"<ows:LowerCorner>{min_x} {min_y}</ows:LowerCorner>"
                f"<ows:UpperCorner>{max_x} {max_y}</ows:UpperCorner>"
                "</ows:WGS84BoundingBox>"
            )
        parts.append(f"<ows:Identifier>{identifier}</ows:Identifier>")
        parts.append(f"<TileMatrixSetLink><TileMatrixSet>{matrix_set}</TileMatrixSet><TileMatrixSetLimits>")
        for matrix, min_row, max_row, min_col, max_col in limits:
            parts.append(
                "<TileMatrixLimits>"
                f"<TileMatrix>{matrix}</TileMatrix>"
                f"<MinTileRow>{min_row}</MinTileRow><MaxTileRow>{max_row}</MaxTileRow>"
                f"<MinTileCol>{min_col}</MinTileCol><MaxTileCol>{max_col}</MaxTileCol>"
                "</TileMatrixLimits>"
            )
        parts.append("</TileMatrixSetLimits></TileMatrixSetLink></Layer>")
    parts.append("</Contents></Capabilities>")
    return "".join(parts).encode("utf-8")


def make_png(color: Tuple[int, ...], size: Tuple[int, int] = (256, 256), mode: str = "RGBA") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeResponse:
    def __init__(self, status_code: int, content: bytes = b"") -> None:
        self.status_code = status_code
        self.content = content


TileKey = Tuple[str, str, int, int]


class FakeSession:
    """Serve capabilities and tiles by inspecting the request query string.

    Tiles are keyed by ``(layer, matrix, row, col)``; ``tile_factory`` covers
    keys missing from ``tiles``. A ``None`` tile answers with HTTP 404.
    """

    def __init__(
        self,
        capabilities: bytes = b"",
        *,
        tiles: Optional[Dict[TileKey, Optional[bytes]]] = None,
        tile_factory: Optional[Callable[[TileKey], Optional[bytes]]] = None,
        capabilities_status: int = 200,
    ) -> None:
        self.capabilities = capabilities
        self.capabilities_status = capabilities_status
        self.tiles = tiles or {}
        self.tile_factory = tile_factory
        self.urls: List[str] = []
        self.headers: Dict[str, str] = {}

    def get(self, url: str, timeout: Optional[float] = None) -> FakeResponse:
        self.urls.append(url)
        query = {key: values[0] for key, values in parse_qs(urlsplit(url).query).items()}
        if query.get("REQUEST") == "GetCapabilities":
            return FakeResponse(self.capabilities_status, self.capabilities)
        key = (query["LAYER"], query["TILEMATRIX"], int(query["TILEROW"]), int(query["TILECOL"]))
        if key in self.tiles:
            data = self.tiles[key]
        elif self.tile_factory is not None:
            data = self.tile_factory(key)
        else:
            data = None
        if data is None:
            return FakeResponse(404)
        return FakeResponse(200, data)


class FailingSession:
    def __init__(self) -> None:
        self.headers: Dict[str, str] = {}

    def get(self, url: str, timeout: Optional[float] = None) -> FakeResponse:
        raise requests.ConnectionError(f"cannot reach {url}")


@pytest.fixture
def capabilities_document() -> Callable[..., bytes]:
    return build_capabilities


@pytest.fixture
def png() -> Callable[..., bytes]:
    return make_png


@pytest.fixture
def fake_session() -> type:
    return FakeSession


@pytest.fixture
def failing_session() -> FailingSession:
    return FailingSession()
