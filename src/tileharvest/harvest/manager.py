"""Harvest orchestration: plan, fetch, merge and store tiles for a job."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, Sequence, Tuple

import requests

from tileharvest.core.errors import HarvestError
from tileharvest.core.models import (
    GEOGRAPHIC_SRS,
    HarvestConfig,
    RasterTile,
    TileCoordinate,
    TileRequest,
    TileStoreMetadata,
)
from tileharvest.logging import get_logger
from tileharvest.sources.registry import SourceRegistry, default_registry
from tileharvest.store.mbtiles import MBTilesStore
from tileharvest.tiling.projection import reproject_extent

from .planning import LayerPlan, plan_service
from .progress import ProgressTracker

LOGGER = get_logger(__name__)


class JobState(str, Enum):
    QUEUED = "QUEUED"
    INITIALIZING = "INITIALIZING"
    RUNNING = "RUNNING"
    FINALIZING = "FINALIZING"
    COMPLETED = "COMPLETED"
    ABORTED = "ABORTED"
    FAILED = "FAILED"

    @property
    def terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.ABORTED, JobState.FAILED)


@dataclass(frozen=True)
class HarvestResult:
    """Outcome of a harvest that was not aborted by an error."""

    job_id: int
    state: JobState
    total_tiles: int
    processed_tiles: int
    output_path: Path


def build_session(config: HarvestConfig) -> requests.Session:
    session = requests.Session()
    session.headers.update({"User-Agent": config.user_agent})
    return session


def _batched(items: Sequence[TileCoordinate], size: int) -> Iterator[Sequence[TileCoordinate]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class HarvestManager:
    """Drive grid planning, tile fetching and store updates for harvest jobs."""

    def __init__(
        self,
        config: Optional[HarvestConfig] = None,
        *,
        progress: Optional[ProgressTracker] = None,
        session: Optional[requests.Session] = None,
        registry: Optional[SourceRegistry] = None,
    ) -> None:
        self._config = config or HarvestConfig()
        self._progress = progress or ProgressTracker()
        self._session = session or build_session(self._config)
        self._registry = registry or default_registry()

    @property
    def progress(self) -> ProgressTracker:
        return self._progress

    def plan(self, request: TileRequest) -> List[LayerPlan]:
        plans: List[LayerPlan] = []
        for service in request.services:
            source = self._registry.create(service.service_type, self._session, self._config)
            plans.extend(plan_service(source, service, request))
        return plans

    def harvest(
        self,
        request: TileRequest,
        output_path: Path,
        *,
        job_id: int,
        stop_event: Optional[threading.Event] = None,
        on_state: Optional[Callable[[JobState], None]] = None,
    ) -> HarvestResult:
        """Harvest every layer of ``request`` into the MBTiles file at ``output_path``.

        Invalid requests and store failures propagate as their own
        :class:`HarvestError` subclasses; anything else is wrapped in a plain
        ``HarvestError``. A set ``stop_event`` ends the job as ``ABORTED``,
        leaving the tiles written so far and no metadata.
        """

        output_path = Path(output_path)
        stop = stop_event or threading.Event()
        notify = on_state or (lambda state: None)
        try:
            notify(JobState.INITIALIZING)
            plans = self.plan(request)
            total = sum(len(plan.coordinates) for plan in plans)
            self._progress.update(job_id, total, 0)
            LOGGER.info(
                "job %d: %d tile(s) across %d layer(s)",
                job_id,
                total,
                len(plans),
                extra={"job_id": job_id, "output": str(output_path)},
            )

            notify(JobState.RUNNING)
            with MBTilesStore(output_path) as store:
                processed, finished = self._process(job_id, plans, store, stop, total)
                if not finished:
                    LOGGER.info(
                        "job %d has been stopped, exiting tile processing",
                        job_id,
                        extra={"job_id": job_id, "processed": processed, "total": total},
                    )
                    notify(JobState.ABORTED)
                    return HarvestResult(job_id, JobState.ABORTED, total, processed, output_path)
                notify(JobState.FINALIZING)
                store.write_metadata(self._metadata(request, plans))

            LOGGER.info("job %d completed", job_id, extra={"job_id": job_id, "output": str(output_path)})
            notify(JobState.COMPLETED)
            return HarvestResult(job_id, JobState.COMPLETED, total, processed, output_path)
        except HarvestError as exc:
            LOGGER.error("job %d failed: %s", job_id, exc, extra={"job_id": job_id, "category": exc.category})
            notify(JobState.FAILED)
            raise
        except Exception as exc:
            LOGGER.exception("job %d failed", job_id, extra={"job_id": job_id})
            notify(JobState.FAILED)
            raise HarvestError(f"Harvest job {job_id} failed: {exc}") from exc
        finally:
            self._progress.clear(job_id)

    def _process(
        self,
        job_id: int,
        plans: Sequence[LayerPlan],
        store: MBTilesStore,
        stop: threading.Event,
        total: int,
    ) -> Tuple[int, bool]:
        interval = max(1, self._config.cancel_check_interval)
        executor = (
            ThreadPoolExecutor(max_workers=self._config.fetch_workers, thread_name_prefix="tile-fetch")
            if self._config.fetch_workers > 1
            else None
        )
        processed = 0
        try:
            for plan in plans:
                LOGGER.info(
                    "harvesting layer %s",
                    plan.layer.identifier,
                    extra={"job_id": job_id, "tiles": len(plan.coordinates)},
                )
                for batch in _batched(plan.coordinates, interval):
                    if stop.is_set():
                        return processed, False
                    for tile in self._fetch_batch(plan, batch, executor, stop):
                        if stop.is_set():
                            return processed, False
                        if tile is not None:
                            store.put_tile(tile)
                        processed += 1
                        self._progress.update(job_id, total, processed)
                        if processed % interval == 0:
                            store.commit()
                            if stop.is_set():
                                return processed, False
                    if stop.is_set():
                        return processed, False
        finally:
            if executor is not None:
                executor.shutdown(wait=True)
        return processed, True

    def _fetch_batch(
        self,
        plan: LayerPlan,
        batch: Sequence[TileCoordinate],
        executor: Optional[ThreadPoolExecutor],
        stop: threading.Event,
    ) -> Iterable[Optional[RasterTile]]:
        def fetch(coordinate: TileCoordinate) -> Optional[RasterTile]:
            return plan.source.fetch_tile(plan.service, plan.layer.identifier, coordinate)

        def sequential() -> Iterator[Optional[RasterTile]]:
            for coordinate in batch:
                if stop.is_set():
                    return
                yield fetch(coordinate)

        if executor is None:
            return sequential()
        # The pool downloads the whole batch even if stop is set part way through.
        return executor.map(fetch, batch)

    def _metadata(self, request: TileRequest, plans: Sequence[LayerPlan]) -> TileStoreMetadata:
        bounds = reproject_extent(request.extent, GEOGRAPHIC_SRS)
        for plan in plans:
            bounds = bounds.union(plan.layer.extent)
        return TileStoreMetadata(
            name=request.services[0].layers[0],
            bounds=bounds.to_bounds(),
            minzoom=request.min_zoom,
            maxzoom=request.max_zoom,
            description=self._config.store_description,
            version=self._config.store_version,
        )
