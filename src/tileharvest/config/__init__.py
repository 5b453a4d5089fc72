"""Configuration loading utilities for tileharvest."""

from .loader import ConfigLoader, PipelineConfig, build_request, load_config, load_request

__all__ = ["ConfigLoader", "PipelineConfig", "build_request", "load_config", "load_request"]
