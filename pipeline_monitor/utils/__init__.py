"""Utility modules for the pipeline monitor."""

from pipeline_monitor.utils.errors import (
    InvalidJobActionError,
    JobNotFoundError,
    JobServiceAPIError,
    JobServiceError,
    PipelineMonitorError,
)
from pipeline_monitor.utils.retry import with_retry

__all__ = [
    "PipelineMonitorError",
    "JobServiceError",
    "JobServiceAPIError",
    "InvalidJobActionError",
    "JobNotFoundError",
    "with_retry",
]
