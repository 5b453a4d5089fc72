"""CLI entry point for tileharvest."""

from __future__ import annotations

import argparse
import concurrent.futures
import json
import re
import sys
from pathlib import Path
from typing import Iterable

from tileharvest.config import PipelineConfig, load_config, load_request
from tileharvest.core.errors import HarvestError, InvalidRequestError
from tileharvest.core.models import STORE_SRS, WMTS_SERVICE_TYPE, MapService
from tileharvest.harvest import HarvestManager, JobRunner, JobState, SizeEstimator, build_session
from tileharvest.logging import configure_logging, get_logger
from tileharvest.sources import default_registry

LOGGER = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID_REQUEST = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="tileharvest command-line interface")
    parser.add_argument("--log-json", action="store_true", help="Emit logs in JSON format")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    subcommands = parser.add_subparsers(dest="command", required=True)

    harvest = subcommands.add_parser("harvest", help="Harvest WMTS tiles into an MBTiles file")
    harvest.add_argument(
        "--request",
        type=Path,
        required=True,
        help="Harvest request document (YAML or JSON)",
    )
    harvest.add_argument(
        "--output",
        type=Path,
        default=None,
        help="MBTiles output path (defaults to output_dir/<first layer>.mbtiles)",
    )
    harvest.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to pipeline configuration file (YAML or JSON)",
    )
    harvest.add_argument(
        "--poll-seconds",
        type=float,
        default=2.0,
        help="Interval between progress log lines (default: 2)",
    )

    estimate = subcommands.add_parser("estimate", help="Estimate tile count and MBTiles size")
    estimate.add_argument(
        "--request",
        type=Path,
        required=True,
        help="Harvest request document (YAML or JSON)",
    )
    estimate.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to pipeline configuration file (YAML or JSON)",
    )

    capabilities = subcommands.add_parser(
        "capabilities",
        help="Show tile matrix limits advertised for WMTS layers",
    )
    capabilities.add_argument("--url", required=True, help="Service base URL")
    capabilities.add_argument(
        "--layer",
        dest="layers",
        action="append",
        required=True,
        help="Layer identifier (repeatable)",
    )
    capabilities.add_argument(
        "--type",
        dest="service_type",
        default=WMTS_SERVICE_TYPE,
        help="Service type (default: WMTS)",
    )
    capabilities.add_argument(
        "--matrix-set",
        default=STORE_SRS,
        help=f"Tile matrix set identifier (default: {STORE_SRS})",
    )
    capabilities.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to pipeline configuration file (YAML or JSON)",
    )
    return parser


def main(argv: Iterable[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    configure_logging(level=args.log_level, json_logs=args.log_json, log_file=args.log_file)

    if args.command == "harvest":
        return _handle_harvest(args)
    if args.command == "estimate":
        return _handle_estimate(args)
    if args.command == "capabilities":
        return _handle_capabilities(args)
    parser.error("Unknown command")
    return EXIT_FAILED


def _resolve_config(path: Path | None) -> PipelineConfig:
    if path is None:
        return PipelineConfig()
    resolved = path.resolve()
    if not resolved.exists():
        raise SystemExit(f"Configuration file not found: {resolved}")
    return load_config(resolved)


def _slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", value.lower()).strip("_") or "layer"


def _handle_harvest(args: argparse.Namespace) -> int:
    cfg = _resolve_config(args.config)
    try:
        request = load_request(args.request)
    except InvalidRequestError as exc:
        LOGGER.error("Invalid request: %s", exc)
        return EXIT_INVALID_REQUEST

    output = args.output or (cfg.output_dir / f"{_slugify(request.services[0].layers[0])}.mbtiles")
    manager = HarvestManager(cfg.harvest)
    runner = JobRunner(manager, max_workers=cfg.harvest.job_workers)
    job_id = runner.submit(request, output)
    try:
        while True:
            try:
                status = runner.wait(job_id, timeout=args.poll_seconds)
                break
            except concurrent.futures.TimeoutError:
                progress = runner.status(job_id)
                LOGGER.info(
                    "job %d: %d/%d tiles",
                    job_id,
                    progress.processed_tiles,
                    progress.total_tiles,
                    extra={"job_id": job_id, "state": progress.state.value},
                )
    except KeyboardInterrupt:
        runner.stop(job_id)
        status = runner.wait(job_id)
    finally:
        runner.shutdown()

    print(
        json.dumps(
            {
                "job_id": status.job_id,
                "state": status.state.value,
                "processed_tiles": status.processed_tiles,
                "total_tiles": status.total_tiles,
                "output": str(output),
                "error": status.error,
            }
        )
    )
    if status.state == JobState.COMPLETED:
        return EXIT_OK
    if status.error_category == InvalidRequestError.category:
        return EXIT_INVALID_REQUEST
    return EXIT_FAILED


def _handle_estimate(args: argparse.Namespace) -> int:
    cfg = _resolve_config(args.config)
    try:
        request = load_request(args.request)
        estimate = SizeEstimator(cfg.harvest).estimate(request)
    except InvalidRequestError as exc:
        LOGGER.error("Invalid request: %s", exc)
        return EXIT_INVALID_REQUEST
    except HarvestError as exc:
        LOGGER.error("Estimate failed: %s", exc)
        return EXIT_FAILED

    print(json.dumps(estimate.to_dict()))
    return EXIT_OK


def _handle_capabilities(args: argparse.Namespace) -> int:
    cfg = _resolve_config(args.config)
    try:
        service = MapService(
            url=args.url,
            layers=tuple(args.layers),
            service_type=args.service_type,
            matrix_set=args.matrix_set,
        )
        source = default_registry().create(service.service_type, build_session(cfg.harvest), cfg.harvest)
        layers = source.resolve_layers(service)
    except InvalidRequestError as exc:
        LOGGER.error("Unable to resolve layers: %s", exc)
        return EXIT_INVALID_REQUEST

    for layer in layers:
        print(f"{layer.identifier}\t{','.join(f'{value:g}' for value in layer.extent.to_bounds())}")
        for limits in layer.limits:
            print(
                f"  {limits.matrix}\tzoom={limits.zoom_level}"
                f"\trows={limits.min_row}-{limits.max_row}\tcols={limits.min_col}-{limits.max_col}"
            )
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
