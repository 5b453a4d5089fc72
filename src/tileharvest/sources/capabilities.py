"""WMTS GetCapabilities retrieval and parsing."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Dict, Iterator, List, Optional, Sequence

import requests

from tileharvest.core.errors import CapabilitiesError
from tileharvest.core.models import (
    GLOBAL_BOUNDS,
    GEOGRAPHIC_SRS,
    BoundingExtent,
    LayerCapabilities,
    MapService,
    TileMatrixLimits,
)
from tileharvest.logging import get_logger

LOGGER = get_logger(__name__)


def build_capabilities_url(service_url: str, service_type: str) -> str:
    return f"{service_url}?SERVICE={service_type}&REQUEST=GetCapabilities"


def _local_name(element: ET.Element) -> str:
    return element.tag.rsplit("}", 1)[-1]


def _children(element: ET.Element, name: str) -> Iterator[ET.Element]:
    return (child for child in element if _local_name(child) == name)


def _child(element: ET.Element, name: str) -> Optional[ET.Element]:
    return next(_children(element, name), None)


def _descendants(element: ET.Element, name: str) -> Iterator[ET.Element]:
    return (node for node in element.iter() if node is not element and _local_name(node) == name)


def _text(element: Optional[ET.Element]) -> str:
    if element is None or element.text is None:
        return ""
    return element.text.strip()


def _required_int(limit: ET.Element, name: str) -> int:
    node = _child(limit, name)
    if node is None:
        raise CapabilitiesError(f"TileMatrixLimits element missing {name}")
    try:
        return int(_text(node))
    except ValueError as exc:
        raise CapabilitiesError(f"Invalid {name} value: {_text(node)!r}") from exc


def _layer_extent(layer: ET.Element) -> BoundingExtent:
    lower = next(_descendants(layer, "LowerCorner"), None)
    upper = next(_descendants(layer, "UpperCorner"), None)
    if lower is None or upper is None:
        return BoundingExtent(*GLOBAL_BOUNDS, srs=GEOGRAPHIC_SRS)
    try:
        min_lon, min_lat = (float(value) for value in _text(lower).split()[:2])
        max_lon, max_lat = (float(value) for value in _text(upper).split()[:2])
    except ValueError as exc:
        raise CapabilitiesError(f"Invalid bounding box corners in layer: {exc}") from exc
    if min_lon > max_lon:
        # Box crosses the antimeridian; widen it to the full longitude range.
        min_lon, max_lon = GLOBAL_BOUNDS[0], GLOBAL_BOUNDS[2]
    if min_lat > max_lat:
        min_lat, max_lat = max_lat, min_lat
    return BoundingExtent(min_lon, min_lat, max_lon, max_lat, GEOGRAPHIC_SRS)


def _layer_limits(layer: ET.Element, matrix_set: str) -> List[TileMatrixLimits]:
    limits: List[TileMatrixLimits] = []
    for link in _children(layer, "TileMatrixSetLink"):
        set_node = _child(link, "TileMatrixSet")
        if set_node is None:
            raise CapabilitiesError("TileMatrixSetLink element missing TileMatrixSet")
        if _text(set_node) != matrix_set:
            continue
        for limit in _descendants(link, "TileMatrixLimits"):
            matrix = _text(_child(limit, "TileMatrix"))
            if not matrix:
                raise CapabilitiesError("TileMatrixLimits element missing TileMatrix")
            limits.append(
                TileMatrixLimits.from_identifier(
                    matrix,
                    min_row=_required_int(limit, "MinTileRow"),
                    max_row=_required_int(limit, "MaxTileRow"),
                    min_col=_required_int(limit, "MinTileCol"),
                    max_col=_required_int(limit, "MaxTileCol"),
                )
            )
    return limits


def parse_capabilities(
    document: bytes | str,
    layers: Sequence[str],
    matrix_set: str,
) -> List[LayerCapabilities]:
    """Extract the requested layers from a capabilities document.

    Layers are returned in the order of ``layers``. Every requested layer must
    be present and declare limits for ``matrix_set``; otherwise the whole
    document is rejected.
    """

    try:
        root = ET.fromstring(document)
    except ET.ParseError as exc:
        raise CapabilitiesError(f"Failed to parse capabilities: {exc}") from exc

    wanted = set(layers)
    found: Dict[str, LayerCapabilities] = {}
    for node in root.iter():
        if _local_name(node) != "Layer":
            continue
        identifier = _text(_child(node, "Identifier"))
        if not identifier or identifier not in wanted or identifier in found:
            continue
        found[identifier] = LayerCapabilities(
            identifier=identifier,
            limits=tuple(_layer_limits(node, matrix_set)),
            extent=_layer_extent(node),
        )

    ordered: List[LayerCapabilities] = []
    for name in layers:
        layer = found.get(name)
        if layer is None:
            raise CapabilitiesError(f"Layer {name!r} not found in capabilities")
        if not layer.limits:
            raise CapabilitiesError(
                f"Layer {name!r} has no tile matrix limits for matrix set {matrix_set!r}"
            )
        ordered.append(layer)
    return ordered


class CapabilitiesResolver:
    """Fetch a service's capabilities and resolve the requested layers."""

    def __init__(self, session: requests.Session, *, timeout: int = 30) -> None:
        self._session = session
        self._timeout = timeout

    def resolve(self, service: MapService) -> List[LayerCapabilities]:
        url = build_capabilities_url(service.url, service.service_type)
        LOGGER.info("fetching capabilities", extra={"url": url})
        try:
            response = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as exc:
            raise CapabilitiesError(f"Capabilities request error for {url}: {exc}") from exc
        if response.status_code != 200:
            raise CapabilitiesError(
                f"Capabilities request failed for {url}: {response.status_code}"
            )
        layers = parse_capabilities(response.content, service.layers, service.matrix_set)
        LOGGER.info(
            "resolved %d layer(s)",
            len(layers),
            extra={"url": service.url, "layers": [layer.identifier for layer in layers]},
        )
        return layers
