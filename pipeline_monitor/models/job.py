"""Processing job domain models."""

from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATUSES


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED})
ACTIVE_STATUSES = frozenset({JobStatus.QUEUED, JobStatus.PROCESSING})


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class OutputFileType(str, Enum):
    VIDEO = "video"
    THUMBNAIL = "thumbnail"
    PREVIEW = "preview"
    SUBTITLE = "subtitle"
    METADATA = "metadata"


class JobAction(str, Enum):
    PAUSE = "pause"
    CANCEL = "cancel"
    RETRY = "retry"


# Statuses a job must be in for each action to be accepted.
ACTION_PRECONDITIONS: dict[JobAction, frozenset[JobStatus]] = {
    JobAction.CANCEL: ACTIVE_STATUSES,
    JobAction.RETRY: frozenset({JobStatus.FAILED}),
    JobAction.PAUSE: frozenset({JobStatus.PROCESSING}),
}

# Server statuses that confirm an optimistic action has taken effect.
ACTION_CONFIRMATIONS: dict[JobAction, frozenset[JobStatus]] = {
    JobAction.CANCEL: TERMINAL_STATUSES,
    JobAction.RETRY: frozenset({JobStatus.QUEUED, JobStatus.PROCESSING, JobStatus.COMPLETED}),
    JobAction.PAUSE: frozenset(
        {JobStatus.QUEUED, JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}
    ),
}


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class Task(_Frozen):
    """One pipeline stage within a job."""

    id: str = Field(min_length=1)
    name: str
    status: TaskStatus = TaskStatus.PENDING
    progress_percent: int = Field(default=0, ge=0, le=100)
    estimated_seconds_remaining: Optional[int] = Field(default=None, ge=0)
    error: Optional[str] = None

    @model_validator(mode="after")
    def error_only_when_failed(self) -> "Task":
        """A task carries an error message if and only if it failed."""
        if (self.error is not None) != (self.status == TaskStatus.FAILED):
            raise ValueError("error must be set exactly when status is failed")
        return self


class OutputFile(_Frozen):
    """One artifact produced by the pipeline."""

    id: str = Field(min_length=1)
    type: OutputFileType = OutputFileType.VIDEO
    quality: Optional[str] = None
    format: str = "mp4"
    size_bytes: int = Field(default=0, ge=0)
    url: str = ""


class VideoMetadata(_Frozen):
    """Technical properties of the source media; zero/"Unknown" until analysed."""

    duration_seconds: float = Field(default=0.0, ge=0)
    resolution: str = "Unknown"
    bitrate: int = Field(default=0, ge=0)
    codec: str = "Unknown"
    fps: float = Field(default=0.0, ge=0)
    aspect_ratio: str = "Unknown"
    audio_codec: str = "Unknown"
    audio_channels: int = Field(default=0, ge=0)


class PendingAction(_Frozen):
    """Client-only marker for an action awaiting server confirmation."""

    action: JobAction
    issued_at: datetime
    state: Literal["in_flight", "acknowledged", "rejected"] = "in_flight"

    def confirmed_by(self, status: JobStatus) -> bool:
        """Whether an observed server status settles this marker."""
        if self.state == "rejected":
            # The remote call failed; the next observation is authoritative.
            return True
        if self.action == JobAction.PAUSE and self.state == "acknowledged":
            return True
        return status in ACTION_CONFIRMATIONS[self.action]


class Job(_Frozen):
    """One transcoding request tracked by the monitor."""

    id: str = Field(min_length=1)
    source_name: str = "Unknown File"
    source_size_bytes: int = Field(default=0, ge=0)
    status: JobStatus = JobStatus.QUEUED
    progress_percent: int = Field(default=0, ge=0, le=100)
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = Field(default=None, ge=0)
    tasks: tuple[Task, ...] = ()
    output_files: tuple[OutputFile, ...] = ()
    metadata: VideoMetadata = Field(default_factory=VideoMetadata)
    pending_action: Optional[PendingAction] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    @property
    def failed_tasks(self) -> tuple[Task, ...]:
        return tuple(t for t in self.tasks if t.status == TaskStatus.FAILED)

    def can(self, action: JobAction) -> bool:
        """Whether the action is valid from the current status."""
        return self.status in ACTION_PRECONDITIONS[action]
