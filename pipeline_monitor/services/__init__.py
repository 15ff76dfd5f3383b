"""Service layer for the pipeline monitor."""

from pipeline_monitor.services.normalizer import normalize_job, normalize_jobs
from pipeline_monitor.services.reconciler import reconcile
from pipeline_monitor.services.poller import Poller, PollerState
from pipeline_monitor.services.job_api import HttpJobService, JobService, create_job_service
from pipeline_monitor.services.dispatcher import ActionDispatcher, DispatchResult
from pipeline_monitor.services.monitor import (
    MonitorNotification,
    PipelineMonitor,
    create_pipeline_monitor,
)

__all__ = [
    "normalize_job",
    "normalize_jobs",
    "reconcile",
    "Poller",
    "PollerState",
    "HttpJobService",
    "JobService",
    "create_job_service",
    "ActionDispatcher",
    "DispatchResult",
    "MonitorNotification",
    "PipelineMonitor",
    "create_pipeline_monitor",
]
