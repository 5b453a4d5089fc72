"""Harvest orchestration, progress tracking and size estimation."""

from .estimate import SizeEstimator, select_samples
from .jobs import JobNotFoundError, JobRunner, JobStatus
from .manager import HarvestManager, HarvestResult, JobState, build_session
from .planning import LayerPlan, plan_service
from .progress import ProgressTracker

__all__ = [
    "HarvestManager",
    "HarvestResult",
    "JobNotFoundError",
    "JobRunner",
    "JobState",
    "JobStatus",
    "LayerPlan",
    "ProgressTracker",
    "SizeEstimator",
    "build_session",
    "plan_service",
    "select_samples",
]
