"""Configuration and request loading with YAML and JSON support."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from tileharvest.core.errors import InvalidRequestError
from tileharvest.core.models import (
    STORE_SRS,
    WMTS_SERVICE_TYPE,
    BoundingExtent,
    HarvestConfig,
    MapService,
    TileRequest,
)


@dataclass
class PipelineConfig:
    """Top-level configuration object for tileharvest."""

    output_dir: Path = Path("output")
    harvest: HarvestConfig = field(default_factory=HarvestConfig)

    def resolve_relative_paths(self, base_dir: Path) -> None:
        """Resolve relative directories against the provided base directory."""

        if not self.output_dir.is_absolute():
            self.output_dir = base_dir / self.output_dir


def _load_payload(path: Path) -> Dict[str, Any]:
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        with path.open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle) or {}
    elif suffix == ".json":
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle) or {}
    else:
        raise ValueError(f"Unsupported configuration format: {suffix}")
    if not isinstance(payload, dict):
        raise ValueError(f"{path.name} must contain a mapping at the top level")
    return payload


class ConfigLoader:
    """Load pipeline configuration files in YAML or JSON format."""

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self._base_dir = base_dir or Path.cwd()

    def load(self, path: Path | str) -> PipelineConfig:
        """Parse a configuration file and return a populated dataclass."""

        config_path = self._resolve_path(Path(path))
        payload = _load_payload(config_path)
        config = self._build_config(payload)
        config.resolve_relative_paths(config_path.parent)
        return config

    def _resolve_path(self, path: Path) -> Path:
        if path.is_absolute():
            return path
        return (self._base_dir / path).resolve()

    def _build_config(self, payload: Dict[str, Any]) -> PipelineConfig:
        output_dir = Path(payload.get("output_dir", "output"))
        harvest_payload = payload.get("harvest") or {}
        if not isinstance(harvest_payload, dict):
            raise ValueError("harvest section must be a mapping")
        harvest_data = dict(harvest_payload)
        for key in ("timeout_seconds", "fetch_workers", "job_workers", "cancel_check_interval"):
            if key in harvest_data and harvest_data[key] is not None:
                harvest_data[key] = int(harvest_data[key])
        for key in ("fetch_workers", "job_workers", "cancel_check_interval"):
            if key in harvest_data and harvest_data[key] < 1:
                raise ValueError(f"harvest.{key} must be at least 1")
        harvest = HarvestConfig(**harvest_data)
        return PipelineConfig(output_dir=output_dir, harvest=harvest)


def load_config(path: Path | str, *, base_dir: Optional[Path] = None) -> PipelineConfig:
    """Convenience wrapper around :class:`ConfigLoader`."""

    loader = ConfigLoader(base_dir=base_dir)
    return loader.load(path)


def build_request(payload: Dict[str, Any]) -> TileRequest:
    """Build a :class:`TileRequest` from a decoded request document."""

    services_payload = payload.get("services") or []
    if not isinstance(services_payload, list):
        raise InvalidRequestError("services must be a list")
    services = []
    for entry in services_payload:
        if not isinstance(entry, dict):
            raise InvalidRequestError("services entries must be mappings")
        layers = entry.get("layers") or []
        if isinstance(layers, str):
            layers = [layers]
        services.append(
            MapService(
                url=str(entry.get("url") or ""),
                layers=tuple(str(layer) for layer in layers),
                service_type=str(entry.get("type") or WMTS_SERVICE_TYPE),
                matrix_set=str(entry.get("matrix_set") or STORE_SRS),
            )
        )

    bbox = payload.get("bbox")
    if not isinstance(bbox, dict):
        raise InvalidRequestError("bbox must be a mapping with min_x, min_y, max_x, max_y and srs")
    try:
        extent = BoundingExtent(
            float(bbox["min_x"]),
            float(bbox["min_y"]),
            float(bbox["max_x"]),
            float(bbox["max_y"]),
            str(bbox.get("srs") or ""),
        )
        min_zoom = int(payload["min_zoom"])
        max_zoom = int(payload["max_zoom"])
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidRequestError(f"Invalid request field: {exc}") from exc
    return TileRequest(
        services=tuple(services),
        extent=extent,
        min_zoom=min_zoom,
        max_zoom=max_zoom,
    )


def load_request(path: Path | str) -> TileRequest:
    """Read a harvest request document in YAML or JSON format."""

    return build_request(_load_payload(Path(path)))
