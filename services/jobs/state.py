"""
Job state machine.

    PENDING
      -> PROCESSING/TRANSFORM (10) -> PROCESSING/TRANSFORM (40, transformed image)
      -> PROCESSING/ANIMATE   (50) -> PROCESSING/ANIMATE   (80, animated video)
      -> PROCESSING/FORMAT    (90)
      -> COMPLETED/COMPLETED (100, final video, cost, completed_at)

    any PROCESSING state -> FAILED (progress 0, error_message)

Stage artifacts double as checkpoints: a job picked up again after a crash
resumes at the first stage whose artifact is still missing.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class JobStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class JobStage(str, Enum):
    TRANSFORM = "TRANSFORM"
    ANIMATE = "ANIMATE"
    FORMAT = "FORMAT"
    COMPLETED = "COMPLETED"

    @property
    def order(self) -> int:
        return STAGE_ORDER.index(self)


STAGE_ORDER = [JobStage.TRANSFORM, JobStage.ANIMATE, JobStage.FORMAT, JobStage.COMPLETED]


@dataclass(frozen=True)
class Checkpoint:
    """A (status, stage, progress) triple the pipeline writes to the job row."""
    status: JobStatus
    stage: JobStage
    progress: int


STARTED = Checkpoint(JobStatus.PROCESSING, JobStage.TRANSFORM, 10)
TRANSFORMED = Checkpoint(JobStatus.PROCESSING, JobStage.TRANSFORM, 40)
ANIMATING = Checkpoint(JobStatus.PROCESSING, JobStage.ANIMATE, 50)
ANIMATED = Checkpoint(JobStatus.PROCESSING, JobStage.ANIMATE, 80)
FORMATTING = Checkpoint(JobStatus.PROCESSING, JobStage.FORMAT, 90)
FINISHED = Checkpoint(JobStatus.COMPLETED, JobStage.COMPLETED, 100)


def resume_stage(job: dict) -> JobStage:
    """First stage whose output is not yet persisted on the job row."""
    if job.get("animated_video_url"):
        return JobStage.FORMAT
    if job.get("transformed_image_url"):
        return JobStage.ANIMATE
    return JobStage.TRANSFORM


def is_forward(current: Optional[str], new: JobStage) -> bool:
    """Stages only move forward (or stay put)."""
    if current is None:
        return True
    return new.order >= JobStage(current).order
