"""
Content jobs: state machine, persistence, pipeline, worker, variations and budget.

Usage:
    from services.jobs import JobStore, JobPipeline, JobWorker, JobQueue

    store = JobStore(db_pool)
    pipeline = JobPipeline(store, media)
    worker = JobWorker(store, pipeline, queue)
    await worker.start()
"""

from .budget import BudgetSummary, parse_budget, summarize_budget
from .pipeline import JobPipeline, LeaseLost
from .state import Checkpoint, JobStage, JobStatus, resume_stage
from .store import JobStore
from .variations import JobIncomplete, JobNotFound, VariationService, clamp_variation_count
from .worker import JobQueue, JobWorker

__all__ = [
    "BudgetSummary",
    "Checkpoint",
    "JobIncomplete",
    "JobNotFound",
    "JobPipeline",
    "JobQueue",
    "JobStage",
    "JobStatus",
    "JobStore",
    "JobWorker",
    "LeaseLost",
    "VariationService",
    "clamp_variation_count",
    "parse_budget",
    "resume_stage",
    "summarize_budget",
]
