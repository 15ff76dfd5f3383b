"""FastAPI routes exposing the job snapshot and job actions."""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from pipeline_monitor.api.deps import get_monitor_dep
from pipeline_monitor.models.job import Job, JobAction, JobStatus
from pipeline_monitor.services.dispatcher import DispatchResult
from pipeline_monitor.services.monitor import MonitorNotification, PipelineMonitor
from pipeline_monitor.services.poller import PollerState
from pipeline_monitor.services.views import JobStats, SortKey, filter_jobs, job_stats, sort_jobs
from pipeline_monitor.utils.errors import (
    InvalidJobActionError,
    JobNotFoundError,
    JobServiceError,
    PipelineMonitorError,
)

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(tags=["jobs"])


# ==================== Error Response Model ====================


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
    error_type: str


ERROR_RESPONSES: Dict[int, Dict[str, Any]] = {
    404: {"model": ErrorResponse, "description": "Job not in the current snapshot"},
    409: {"model": ErrorResponse, "description": "Action not valid for the job's status"},
}


# ==================== Exception Handlers ====================


async def pipeline_monitor_exception_handler(
    request: Request, exc: PipelineMonitorError
) -> JSONResponse:
    """Handle application-specific errors."""
    status_code = 500

    if isinstance(exc, JobNotFoundError):
        status_code = 404
    elif isinstance(exc, InvalidJobActionError):
        status_code = 409
    elif isinstance(exc, JobServiceError):
        status_code = 502  # Bad Gateway for remote service errors

    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(detail=str(exc), error_type=type(exc).__name__).model_dump(),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(detail=str(exc.detail), error_type="HTTPException").model_dump(),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(detail="Internal server error", error_type="InternalError").model_dump(),
    )


# ==================== Response Models ====================


class MonitorStatusResponse(BaseModel):
    """Poller and snapshot state."""

    poller_state: PollerState
    polling: bool
    snapshot_version: int
    job_count: int
    active_jobs: bool
    consecutive_failures: int
    notifications: List[MonitorNotification]


# ==================== Endpoints ====================


@router.get("/jobs", response_model=List[Job])
async def list_jobs(
    status: str = Query("all", description="Job status to show, or 'all'"),
    sort: SortKey = Query("started_at"),
    descending: bool = Query(True),
    monitor: PipelineMonitor = Depends(get_monitor_dep),
) -> List[Job]:
    """Current reconciled jobs, filtered and sorted for display."""
    if status != "all" and status not in {s.value for s in JobStatus}:
        raise HTTPException(status_code=422, detail=f"Unknown status filter: {status}")
    jobs = filter_jobs(monitor.jobs(), status)
    return sort_jobs(jobs, key=sort, descending=descending)


@router.get("/jobs/stats", response_model=JobStats)
async def get_job_stats(monitor: PipelineMonitor = Depends(get_monitor_dep)) -> JobStats:
    """Job counts per status."""
    return job_stats(monitor.jobs())


@router.get("/jobs/{job_id}", response_model=Job, responses={404: ERROR_RESPONSES[404]})
async def get_job(job_id: str, monitor: PipelineMonitor = Depends(get_monitor_dep)) -> Job:
    """Detail for one job as of the latest snapshot."""
    job = monitor.get_snapshot().get(job_id)
    if job is None:
        raise JobNotFoundError(job_id)
    return job


@router.get("/selection", response_model=Optional[Job])
async def get_selection(monitor: PipelineMonitor = Depends(get_monitor_dep)) -> Optional[Job]:
    """The selected job as of the latest snapshot, or null."""
    return monitor.selected_job()


@router.put("/selection/{job_id}", response_model=Job, responses={404: ERROR_RESPONSES[404]})
async def select_job(job_id: str, monitor: PipelineMonitor = Depends(get_monitor_dep)) -> Optional[Job]:
    """Make a job the selected one for the detail view."""
    return monitor.select(job_id)


@router.delete("/selection", status_code=204)
async def clear_selection(monitor: PipelineMonitor = Depends(get_monitor_dep)) -> None:
    """Clear the selection."""
    monitor.select(None)


@router.post("/jobs/{job_id}/{action}", response_model=DispatchResult, responses=ERROR_RESPONSES)
async def dispatch_job_action(
    job_id: str,
    action: JobAction,
    monitor: PipelineMonitor = Depends(get_monitor_dep),
) -> DispatchResult:
    """
    Pause, cancel or retry a job.

    The optimistic change is visible immediately; a failed remote call is
    reported in the result and the next poll corrects the job.
    """
    return await monitor.dispatch(job_id, action)


@router.get("/monitor", response_model=MonitorStatusResponse)
async def get_monitor_status(
    monitor: PipelineMonitor = Depends(get_monitor_dep),
) -> MonitorStatusResponse:
    """Poller state, snapshot version and recent notifications."""
    snapshot = monitor.get_snapshot()
    return MonitorStatusResponse(
        poller_state=monitor.poller.state,
        polling=monitor.poller.running,
        snapshot_version=monitor.version,
        job_count=len(snapshot),
        active_jobs=snapshot.has_active_jobs(),
        consecutive_failures=monitor.poller.consecutive_failures,
        notifications=list(monitor.notifications),
    )
