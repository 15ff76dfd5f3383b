"""Pause/cancel/retry with optimistic local feedback."""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from pydantic import BaseModel

from pipeline_monitor.models.job import Job, JobAction, JobStatus, PendingAction
from pipeline_monitor.models.snapshot import Snapshot
from pipeline_monitor.services import reconciler
from pipeline_monitor.services.job_api import JobService
from pipeline_monitor.utils.errors import InvalidJobActionError, JobNotFoundError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DispatchResult(BaseModel):
    """Outcome of one dispatched action."""

    job_id: str
    action: JobAction
    ok: bool
    error: Optional[str] = None
    job: Optional[Job] = None


def optimistic_update(action: JobAction, marker: PendingAction) -> dict[str, Any]:
    """Fields changed locally before the remote call resolves."""
    if action == JobAction.CANCEL:
        return {
            "status": JobStatus.CANCELLED,
            "completed_at": marker.issued_at,
            "pending_action": marker,
        }
    if action == JobAction.RETRY:
        # Tasks stay visible until the service accepts the retry.
        return {
            "status": JobStatus.QUEUED,
            "progress_percent": 0,
            "completed_at": None,
            "pending_action": marker,
        }
    # No paused status is modeled; only the marker records the request.
    return {"pending_action": marker}


class ActionDispatcher:
    """Issues job actions and folds their effects into the snapshot."""

    def __init__(
        self,
        service: JobService,
        get_snapshot: Callable[[], Snapshot],
        publish: Callable[[Snapshot], None],
        rearm: Callable[[], None],
        on_error: Optional[Callable[[Exception], None]] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.service = service
        self._get_snapshot = get_snapshot
        self._publish = publish
        self._rearm = rearm
        self._on_error = on_error
        self._clock = clock

    def _validate(self, job_id: str, action: Any) -> tuple[Job, JobAction]:
        job = self._get_snapshot().get(job_id)
        try:
            action = JobAction(action)
        except ValueError:
            status = job.status.value if job is not None else "missing"
            raise InvalidJobActionError(job_id, str(action), status)
        if job is None:
            raise JobNotFoundError(job_id, action.value)
        if not job.can(action):
            raise InvalidJobActionError(job_id, action.value, job.status.value)
        return job, action

    def _settle(self, job_id: str, marker: PendingAction, update: dict[str, Any]) -> None:
        """Record the remote outcome, unless a poll already settled the marker."""
        current = self._get_snapshot().get(job_id)
        if current is None or current.pending_action != marker:
            return
        self._publish(reconciler.apply(self._get_snapshot(), job_id, update))

    async def dispatch(self, job_id: str, action: Any) -> DispatchResult:
        """
        Apply an action optimistically, then issue it remotely.

        Args:
            job_id: Id of a job in the current snapshot
            action: "pause", "cancel" or "retry"

        Returns:
            DispatchResult; remote failures are reported here, not raised

        Raises:
            JobNotFoundError: If the job is not in the snapshot
            InvalidJobActionError: If the action is not valid for the job's status
        """
        job, action = self._validate(job_id, action)
        marker = PendingAction(action=action, issued_at=self._clock())
        self._publish(reconciler.apply(self._get_snapshot(), job_id, optimistic_update(action, marker)))
        logger.info(f"Dispatching {action.value} for job {job_id} (was {job.status.value})")

        try:
            await self.service.issue_job_action(job_id, action)
        except Exception as e:
            logger.warning(f"{action.value} for job {job_id} failed: {e}")
            self._settle(
                job_id, marker, {"pending_action": marker.model_copy(update={"state": "rejected"})}
            )
            if self._on_error is not None:
                self._on_error(e)
            result = DispatchResult(job_id=job_id, action=action, ok=False, error=str(e))
        else:
            update: dict[str, Any] = {
                "pending_action": marker.model_copy(update={"state": "acknowledged"})
            }
            if action == JobAction.RETRY:
                update["tasks"] = ()
            self._settle(job_id, marker, update)
            result = DispatchResult(job_id=job_id, action=action, ok=True)
        finally:
            self._rearm()

        return result.model_copy(update={"job": self._get_snapshot().get(job_id)})
