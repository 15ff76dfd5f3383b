"""Pipeline monitor: the interface the presentation layer talks to."""

import logging
from collections import deque
from datetime import datetime
from typing import Any, Callable, Iterable, Literal, Optional

from pydantic import BaseModel

from pipeline_monitor.models.job import Job
from pipeline_monitor.models.snapshot import Snapshot
from pipeline_monitor.services import reconciler
from pipeline_monitor.services.dispatcher import ActionDispatcher, DispatchResult, utcnow
from pipeline_monitor.services.job_api import JobService
from pipeline_monitor.services.normalizer import normalize_jobs
from pipeline_monitor.services.poller import Poller
from pipeline_monitor.utils.errors import JobNotFoundError

logger = logging.getLogger(__name__)

Subscriber = Callable[[Snapshot], None]


class MonitorNotification(BaseModel):
    """A non-fatal failure surfaced to the presentation layer."""

    kind: Literal["fetch", "action"]
    message: str
    error_type: str
    occurred_at: datetime


class PipelineMonitor:
    """Tracks remote processing jobs and exposes a consistent snapshot."""

    def __init__(
        self,
        service: JobService,
        poll_interval: float = 10.0,
        backoff_factor: float = 1.0,
        max_interval: float = 300.0,
        max_notifications: int = 50,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """
        Initialize the PipelineMonitor.

        Args:
            service: Remote collaborator for fetching jobs and issuing actions
            poll_interval: Seconds between polls while jobs are active
            backoff_factor: Poll interval multiplier per consecutive failure
            max_interval: Upper bound for the backed-off poll interval
            max_notifications: How many recent notifications to keep
            clock: Source of observation timestamps
        """
        self.service = service
        self._clock = clock
        self._snapshot = Snapshot()
        self._subscribers: list[Subscriber] = []
        self._selected_id: Optional[str] = None
        self.version = 0
        self.notifications: deque[MonitorNotification] = deque(maxlen=max_notifications)

        self.poller = Poller(
            cycle=self.refresh,
            should_continue=lambda: self._snapshot.has_active_jobs(),
            interval=poll_interval,
            backoff_factor=backoff_factor,
            max_interval=max_interval,
            on_error=lambda e: self._notify_error("fetch", e),
        )
        self.dispatcher = ActionDispatcher(
            service=service,
            get_snapshot=self.get_snapshot,
            publish=self._publish,
            rearm=self.poller.rearm,
            on_error=lambda e: self._notify_error("action", e),
            clock=clock,
        )

    # ==================== Snapshot ====================

    def get_snapshot(self) -> Snapshot:
        return self._snapshot

    def jobs(self) -> list[Job]:
        return list(self._snapshot.jobs)

    def _publish(self, snapshot: Snapshot) -> None:
        """Swap in a new snapshot and notify subscribers."""
        self._snapshot = snapshot
        self.version += 1
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception as e:
                logger.error(f"Snapshot subscriber {callback!r} failed: {e}")

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register for snapshot replacements; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify_error(self, kind: Literal["fetch", "action"], error: Exception) -> None:
        self.notifications.append(
            MonitorNotification(
                kind=kind,
                message=str(error),
                error_type=type(error).__name__,
                occurred_at=self._clock(),
            )
        )

    # ==================== Selection ====================

    def select(self, job_id: Optional[str]) -> Optional[Job]:
        """Select a job for the detail view; None clears the selection."""
        if job_id is not None and job_id not in self._snapshot:
            raise JobNotFoundError(job_id)
        self._selected_id = job_id
        return self.selected_job()

    def selected_job(self) -> Optional[Job]:
        """Detail of the selected job as of the latest snapshot."""
        if self._selected_id is None:
            return None
        return self._snapshot.get(self._selected_id)

    def evict(self, job_ids: Iterable[str]) -> None:
        """Drop jobs the presentation layer no longer displays."""
        ids = set(job_ids)
        if not ids.intersection(self._snapshot.ids()):
            return
        if self._selected_id in ids:
            self._selected_id = None
        self._publish(reconciler.evict(self._snapshot, ids))

    # ==================== Polling & actions ====================

    async def refresh(self) -> None:
        """
        Fetch, normalize and reconcile once.

        Raises whatever the service raises; the poller turns that into a
        notification. The merge runs against the snapshot current when the
        fetch resolves.
        """
        payload: Any = await self.service.fetch_jobs()
        incoming = normalize_jobs(payload)
        self._publish(reconciler.reconcile(self._snapshot, incoming, self._clock()))
        logger.info(f"Refreshed {len(incoming)} jobs (snapshot v{self.version})")

    async def dispatch(self, job_id: str, action: Any) -> DispatchResult:
        return await self.dispatcher.dispatch(job_id, action)

    def start(self) -> None:
        self.poller.start()

    def stop(self) -> None:
        self.poller.stop()

    async def aclose(self) -> None:
        """Stop polling and wait for any in-flight fetch to settle."""
        self.poller.stop()
        await self.poller.drain()


def create_pipeline_monitor(service: Optional[JobService] = None) -> PipelineMonitor:
    """
    Create a PipelineMonitor using application settings.

    Args:
        service: Optional job service; defaults to the HTTP client

    Returns:
        Configured PipelineMonitor instance
    """
    from pipeline_monitor.config import get_settings
    from pipeline_monitor.services.job_api import create_job_service

    settings = get_settings()
    return PipelineMonitor(
        service=service or create_job_service(),
        poll_interval=settings.poll_interval_seconds,
        backoff_factor=settings.poll_backoff_factor,
        max_interval=settings.poll_max_interval_seconds,
        max_notifications=settings.max_notifications,
    )
