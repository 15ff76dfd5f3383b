"""Pydantic domain models for the pipeline monitor."""

from pipeline_monitor.models.job import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Job,
    JobAction,
    JobStatus,
    OutputFile,
    OutputFileType,
    PendingAction,
    Task,
    TaskStatus,
    VideoMetadata,
)
from pipeline_monitor.models.snapshot import Snapshot

__all__ = [
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "Job",
    "JobAction",
    "JobStatus",
    "OutputFile",
    "OutputFileType",
    "PendingAction",
    "Snapshot",
    "Task",
    "TaskStatus",
    "VideoMetadata",
]
