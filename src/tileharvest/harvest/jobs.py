"""Bounded worker pool running harvest jobs in the background."""

from __future__ import annotations

import itertools
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from tileharvest.core.errors import HarvestError
from tileharvest.core.models import TileRequest
from tileharvest.logging import get_logger

from .manager import HarvestManager, JobState

LOGGER = get_logger(__name__)


class JobNotFoundError(LookupError):
    """Raised when a job id was never submitted to the runner."""


@dataclass(frozen=True)
class JobStatus:
    """Externally visible state of a job."""

    job_id: int
    state: JobState
    processed_tiles: int
    total_tiles: int
    error: Optional[str] = None
    error_category: Optional[str] = None


@dataclass
class _Job:
    job_id: int
    request: TileRequest
    output_path: Path
    stop_event: threading.Event = field(default_factory=threading.Event)
    state: JobState = JobState.QUEUED
    total_tiles: int = 0
    processed_tiles: int = 0
    error: Optional[str] = None
    error_category: Optional[str] = None
    future: Optional[Future] = None


class JobRunner:
    """Run harvest jobs on a fixed-size thread pool, one worker per job."""

    def __init__(self, manager: HarvestManager, *, max_workers: int = 2) -> None:
        self._manager = manager
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="harvest-job")
        self._jobs: Dict[int, _Job] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)

    def submit(self, request: TileRequest, output_path: Path) -> int:
        with self._lock:
            job = _Job(job_id=next(self._ids), request=request, output_path=Path(output_path))
            self._jobs[job.job_id] = job
        job.future = self._executor.submit(self._run, job)
        LOGGER.info("job %d queued", job.job_id, extra={"job_id": job.job_id, "output": str(output_path)})
        return job.job_id

    def status(self, job_id: int) -> JobStatus:
        job = self._get(job_id)
        # Terminal transitions copy progress into the job under this lock before it is cleared.
        with self._lock:
            total, processed = job.total_tiles, job.processed_tiles
            if not job.state.terminal:
                progress = self._manager.progress.get(job_id)
                if progress is not None:
                    total, processed = progress.total_tiles, progress.processed_tiles
            return JobStatus(
                job_id=job_id,
                state=job.state,
                processed_tiles=processed,
                total_tiles=total,
                error=job.error,
                error_category=job.error_category,
            )

    def stop(self, job_id: int) -> None:
        job = self._get(job_id)
        LOGGER.info("stop requested for job %d", job_id, extra={"job_id": job_id})
        job.stop_event.set()

    def wait(self, job_id: int, timeout: Optional[float] = None) -> JobStatus:
        job = self._get(job_id)
        if job.future is not None:
            job.future.result(timeout=timeout)
        return self.status(job_id)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _get(self, job_id: int) -> _Job:
        with self._lock:
            job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Unknown job id {job_id}")
        return job

    def _on_state(self, job: _Job, state: JobState) -> None:
        with self._lock:
            snapshot = self._manager.progress.get(job.job_id) if state.terminal else None
            job.state = state
            if snapshot is not None:
                job.total_tiles = snapshot.total_tiles
                job.processed_tiles = snapshot.processed_tiles

    def _run(self, job: _Job) -> None:
        try:
            self._manager.harvest(
                job.request,
                job.output_path,
                job_id=job.job_id,
                stop_event=job.stop_event,
                on_state=lambda state: self._on_state(job, state),
            )
        except HarvestError as exc:
            with self._lock:
                job.state = JobState.FAILED
                job.error = f"{exc.category}: {exc}"
                job.error_category = exc.category
