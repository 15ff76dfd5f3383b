"""Tests for optimistic job actions.

Feature: pipeline-monitor
Property 7: Optimistic Action Then Confirmation
Property 8: End-to-End Scenario
"""

import asyncio

import pytest

from pipeline_monitor.models.job import JobAction, JobStatus
from pipeline_monitor.services.poller import PollerState
from pipeline_monitor.utils.errors import (
    InvalidJobActionError,
    JobNotFoundError,
    JobServiceAPIError,
)

STARTED_ISO = "2024-05-01T09:00:00Z"


class TestProperty7OptimisticActionThenConfirmation:
    """
    Property 7: Optimistic Action Then Confirmation

    *Dispatching* retry on a failed job SHALL immediately show it queued
    with zero progress; a later poll reporting processing SHALL replace the
    optimistic value without error.
    """

    @pytest.mark.asyncio
    async def test_retry_then_poll(self, monitor, job_service, failed_job_record) -> None:
        job_service.payload = [failed_job_record]
        await monitor.refresh()
        job_service.action_gate = asyncio.Event()

        pending = asyncio.create_task(monitor.dispatch("job-002", "retry"))
        await asyncio.sleep(0)

        # Visible before the remote call resolves.
        job = monitor.get_snapshot().get("job-002")
        assert job.status == JobStatus.QUEUED
        assert job.progress_percent == 0
        assert job.completed_at is None
        assert job.pending_action.action == JobAction.RETRY
        assert len(job.tasks) == 1

        job_service.action_gate.set()
        result = await pending
        assert result.ok
        assert monitor.get_snapshot().get("job-002").tasks == ()

        job_service.payload = [
            {**failed_job_record, "state": "running", "progress": 12, "tasks": [
                {"task_id": "a2", "task_name": "transcode 720p", "state": "running", "progress": 12},
            ]},
        ]
        await monitor.refresh()

        job = monitor.get_snapshot().get("job-002")
        assert job.status == JobStatus.PROCESSING
        assert job.progress_percent == 12
        assert job.pending_action is None
        assert [t.id for t in job.tasks] == ["a2"]

    @pytest.mark.asyncio
    async def test_failed_retry_keeps_tasks(self, monitor, job_service, failed_job_record) -> None:
        job_service.payload = [failed_job_record]
        await monitor.refresh()
        job_service.action_error = JobServiceAPIError(409, "not retryable")

        result = await monitor.dispatch("job-002", JobAction.RETRY)

        assert not result.ok
        assert "not retryable" in result.error
        job = monitor.get_snapshot().get("job-002")
        assert job.status == JobStatus.QUEUED
        assert len(job.tasks) == 1
        assert job.pending_action.state == "rejected"
        assert monitor.notifications[-1].kind == "action"

        # The poll is authoritative and settles the rejected marker.
        await monitor.refresh()
        job = monitor.get_snapshot().get("job-002")
        assert job.status == JobStatus.FAILED
        assert job.pending_action is None


class TestProperty8EndToEndScenario:
    """
    Property 8: End-to-End Scenario

    A flat running record normalizes, reconciles into an empty snapshot and
    is shown cancelled as soon as cancel is dispatched.
    """

    @pytest.mark.asyncio
    async def test_running_record_then_cancel(self, monitor, job_service) -> None:
        job_service.payload = [{"state": "running", "progress": 42, "task_name": "transcode"}]
        await monitor.refresh()

        snapshot = monitor.get_snapshot()
        assert len(snapshot) == 1
        job = snapshot.jobs[0]
        assert job.status == JobStatus.PROCESSING
        assert job.progress_percent == 42
        assert [(t.name, t.status.value) for t in job.tasks] == [("transcode", "running")]

        job_service.action_gate = asyncio.Event()
        pending = asyncio.create_task(monitor.dispatch(job.id, "cancel"))
        await asyncio.sleep(0)

        assert monitor.get_snapshot().get(job.id).status == JobStatus.CANCELLED
        assert job_service.fetch_calls == 1

        job_service.action_gate.set()
        result = await pending
        assert result.ok
        assert result.job.status == JobStatus.CANCELLED
        assert result.job.completed_at is not None
        assert job_service.actions == [(job.id, JobAction.CANCEL)]


class TestActionValidity:
    """Actions are checked against the job's status before anything changes."""

    @pytest.mark.parametrize(
        "status,action",
        [
            ("completed", "cancel"),
            ("failed", "cancel"),
            ("cancelled", "cancel"),
            ("processing", "retry"),
            ("queued", "retry"),
            ("completed", "retry"),
            ("queued", "pause"),
            ("failed", "pause"),
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_transitions_raise(self, monitor, job_service, status: str, action: str) -> None:
        job_service.payload = [{"id": "j", "status": status, "started_at": STARTED_ISO}]
        await monitor.refresh()
        before = monitor.get_snapshot()

        with pytest.raises(InvalidJobActionError):
            await monitor.dispatch("j", action)

        assert monitor.get_snapshot() is before
        assert job_service.actions == []

    @pytest.mark.asyncio
    async def test_unknown_job(self, monitor) -> None:
        with pytest.raises(JobNotFoundError):
            await monitor.dispatch("ghost", "cancel")

    @pytest.mark.asyncio
    async def test_unknown_action(self, monitor, job_service) -> None:
        job_service.payload = [{"id": "j", "status": "processing"}]
        await monitor.refresh()

        with pytest.raises(InvalidJobActionError):
            await monitor.dispatch("j", "resume")

    @pytest.mark.parametrize("status", ["queued", "processing"])
    @pytest.mark.asyncio
    async def test_cancel_allowed_from_active(self, monitor, job_service, status: str) -> None:
        job_service.payload = [{"id": "j", "status": status}]
        await monitor.refresh()

        result = await monitor.dispatch("j", "cancel")
        assert result.ok


class TestPauseAndRearm:
    """Pause records intent only; every action re-arms polling."""

    @pytest.mark.asyncio
    async def test_pause_keeps_status(self, monitor, job_service) -> None:
        job_service.payload = [{"id": "j", "status": "processing", "progress": 30}]
        await monitor.refresh()

        result = await monitor.dispatch("j", "pause")

        job = monitor.get_snapshot().get("j")
        assert result.ok
        assert job.status == JobStatus.PROCESSING
        assert job.progress_percent == 30
        assert job.pending_action.action == JobAction.PAUSE
        assert job.pending_action.state == "acknowledged"

        await monitor.refresh()
        assert monitor.get_snapshot().get("j").pending_action is None

    @pytest.mark.asyncio
    async def test_action_rearms_idle_poller(self, monitor, job_service, failed_job_record) -> None:
        job_service.payload = [failed_job_record]
        monitor.start()
        await monitor.poller.drain()
        assert monitor.poller.state == PollerState.IDLE
        assert job_service.fetch_calls == 1

        await monitor.dispatch("job-002", "retry")
        await monitor.poller.drain()

        assert job_service.fetch_calls == 2
        monitor.stop()

    @pytest.mark.asyncio
    async def test_failed_action_still_rearms(self, monitor, job_service) -> None:
        job_service.payload = [{"id": "j", "status": "processing"}]
        monitor.start()
        await monitor.poller.drain()
        job_service.action_error = JobServiceAPIError(500, "boom")

        await monitor.dispatch("j", "cancel")
        await monitor.poller.drain()

        assert job_service.fetch_calls == 2
        monitor.stop()

    @pytest.mark.asyncio
    async def test_subscribers_see_optimistic_snapshot(self, monitor, job_service) -> None:
        job_service.payload = [{"id": "j", "status": "processing"}]
        await monitor.refresh()
        seen = []
        unsubscribe = monitor.subscribe(lambda snapshot: seen.append(snapshot.get("j").status))

        await monitor.dispatch("j", "cancel")
        unsubscribe()
        await monitor.refresh()

        assert seen[0] == JobStatus.CANCELLED
        assert len(seen) == 2


class TestFetchRacingAction:
    """A fetch that started before an action merges into the newer snapshot."""

    @pytest.mark.asyncio
    async def test_stale_fetch_keeps_in_flight_cancel_marker(self, monitor, job_service) -> None:
        running = {"id": "j", "status": "processing", "progress": 50, "started_at": STARTED_ISO}
        job_service.payload = [running]
        await monitor.refresh()

        job_service.fetch_gate = asyncio.Event()
        job_service.action_gate = asyncio.Event()
        fetch = asyncio.create_task(monitor.refresh())
        await asyncio.sleep(0)
        assert job_service.fetch_calls == 2

        action = asyncio.create_task(monitor.dispatch("j", "cancel"))
        await asyncio.sleep(0)
        assert monitor.get_snapshot().get("j").status == JobStatus.CANCELLED

        # The held fetch still reports the job as processing.
        job_service.fetch_gate.set()
        await fetch

        job = monitor.get_snapshot().get("j")
        assert job.status == JobStatus.PROCESSING
        assert job.completed_at is None
        assert job.pending_action.action == JobAction.CANCEL
        assert job.pending_action.state == "in_flight"

        job_service.action_gate.set()
        result = await action
        assert result.ok
        assert monitor.get_snapshot().get("j").pending_action.state == "acknowledged"

        job_service.payload = [{**running, "status": "cancelled"}]
        await monitor.refresh()

        job = monitor.get_snapshot().get("j")
        assert job.status == JobStatus.CANCELLED
        assert job.pending_action is None
        assert job.completed_at is not None
