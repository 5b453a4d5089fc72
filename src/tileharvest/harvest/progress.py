"""Thread-safe job progress registry."""

from __future__ import annotations

import threading
from typing import Dict, Optional

from tileharvest.core.models import ProgressState


class ProgressTracker:
    """Map job ids to tile counters shared between a job and status readers.

    For every job ``processed_tiles <= total_tiles`` holds and
    ``processed_tiles`` never decreases while the entry exists.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._states: Dict[int, ProgressState] = {}

    def update(self, job_id: int, total_tiles: int, processed_tiles: int) -> ProgressState:
        if total_tiles < 0 or processed_tiles < 0:
            raise ValueError("tile counters must be non-negative")
        if processed_tiles > total_tiles:
            raise ValueError(
                f"processed tiles ({processed_tiles}) exceed total tiles ({total_tiles})"
            )
        with self._lock:
            current = self._states.get(job_id)
            if current is not None:
                processed_tiles = max(processed_tiles, current.processed_tiles)
                total_tiles = max(total_tiles, processed_tiles)
            state = ProgressState(
                job_id=job_id,
                total_tiles=total_tiles,
                processed_tiles=processed_tiles,
            )
            self._states[job_id] = state
            return state

    def get(self, job_id: int) -> Optional[ProgressState]:
        with self._lock:
            return self._states.get(job_id)

    def clear(self, job_id: int) -> None:
        with self._lock:
            self._states.pop(job_id, None)
