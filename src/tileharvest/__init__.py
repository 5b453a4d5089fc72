"""tileharvest: harvest WMTS tiles into MBTiles files."""

from __future__ import annotations

import importlib
from typing import Any

__all__ = [
    "BoundingExtent",
    "CapabilitiesResolver",
    "HarvestConfig",
    "HarvestError",
    "HarvestManager",
    "JobRunner",
    "JobState",
    "MBTilesStore",
    "MapService",
    "ProgressTracker",
    "SizeEstimator",
    "SourceRegistry",
    "TileRequest",
    "WMTSSource",
]

_MODULE_MAP = {
    "BoundingExtent": ("tileharvest.core", "BoundingExtent"),
    "CapabilitiesResolver": ("tileharvest.sources", "CapabilitiesResolver"),
    "HarvestConfig": ("tileharvest.core", "HarvestConfig"),
    "HarvestError": ("tileharvest.core", "HarvestError"),
    "HarvestManager": ("tileharvest.harvest", "HarvestManager"),
    "JobRunner": ("tileharvest.harvest", "JobRunner"),
    "JobState": ("tileharvest.harvest", "JobState"),
    "MBTilesStore": ("tileharvest.store", "MBTilesStore"),
    "MapService": ("tileharvest.core", "MapService"),
    "ProgressTracker": ("tileharvest.harvest", "ProgressTracker"),
    "SizeEstimator": ("tileharvest.harvest", "SizeEstimator"),
    "SourceRegistry": ("tileharvest.sources", "SourceRegistry"),
    "TileRequest": ("tileharvest.core", "TileRequest"),
    "WMTSSource": ("tileharvest.sources", "WMTSSource"),
}


def __getattr__(name: str) -> Any:
    if name not in _MODULE_MAP:
        raise AttributeError(f"module 'tileharvest' has no attribute '{name}'")
    module_name, attr = _MODULE_MAP[name]
    module = importlib.import_module(module_name)
    return getattr(module, attr)
