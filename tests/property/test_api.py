"""Tests for the HTTP presentation API."""

import asyncio
import string

import pytest
from fastapi.testclient import TestClient
from hypothesis import given, settings, strategies as st

from pipeline_monitor.main import create_app
from pipeline_monitor.models.job import JobAction
from pipeline_monitor.services.monitor import PipelineMonitor


@pytest.fixture
def client(monitor, job_service, sample_job_record, failed_job_record) -> TestClient:
    job_service.payload = [
        sample_job_record,
        failed_job_record,
        {"id": "job-003", "filename": "old.avi", "status": "completed", "started_at": "2024-04-30T08:00:00Z"},
    ]
    asyncio.run(monitor.refresh())
    return TestClient(create_app(monitor))


class TestJobEndpoints:
    def test_list_jobs_newest_first(self, client: TestClient) -> None:
        response = client.get("/api/jobs")

        assert response.status_code == 200
        assert [job["id"] for job in response.json()] == ["job-001", "job-002", "job-003"]

    def test_filter_by_status(self, client: TestClient) -> None:
        response = client.get("/api/jobs", params={"status": "failed"})
        assert [job["id"] for job in response.json()] == ["job-002"]

    def test_sort_by_name_ascending(self, client: TestClient) -> None:
        response = client.get("/api/jobs", params={"sort": "source_name", "descending": "false"})
        assert [job["source_name"] for job in response.json()] == ["interview.mp4", "keynote.mov", "old.avi"]

    def test_unknown_status_filter(self, client: TestClient) -> None:
        response = client.get("/api/jobs", params={"status": "paused"})

        assert response.status_code == 422
        assert response.json()["error_type"] == "HTTPException"

    def test_stats(self, client: TestClient) -> None:
        body = client.get("/api/jobs/stats").json()
        assert body == {
            "total": 3, "queued": 0, "processing": 1, "completed": 1, "failed": 1, "cancelled": 0,
        }

    def test_job_detail(self, client: TestClient, monitor) -> None:
        response = client.get("/api/jobs/job-001")

        assert response.status_code == 200
        body = response.json()
        assert body["metadata"]["codec"] == "h264"
        assert body["tasks"][1]["estimated_seconds_remaining"] == 120
        assert monitor.selected_job() is None

    def test_missing_job(self, client: TestClient) -> None:
        response = client.get("/api/jobs/nope")

        assert response.status_code == 404
        assert response.json()["error_type"] == "JobNotFoundError"


class TestSelectionEndpoints:
    def test_nothing_selected_initially(self, client: TestClient) -> None:
        response = client.get("/api/selection")

        assert response.status_code == 200
        assert response.json() is None

    def test_select_then_read(self, client: TestClient, monitor) -> None:
        response = client.put("/api/selection/job-002")

        assert response.status_code == 200
        assert response.json()["id"] == "job-002"
        assert monitor.selected_job().id == "job-002"
        assert client.get("/api/selection").json()["id"] == "job-002"

    def test_select_unknown_job(self, client: TestClient, monitor) -> None:
        response = client.put("/api/selection/nope")

        assert response.status_code == 404
        assert response.json() == {"detail": "Job not found: nope", "error_type": "JobNotFoundError"}
        assert monitor.selected_job() is None

    def test_clear_selection(self, client: TestClient, monitor) -> None:
        client.put("/api/selection/job-001")

        response = client.delete("/api/selection")

        assert response.status_code == 204
        assert monitor.selected_job() is None

    def test_error_schema_documented(self, client: TestClient) -> None:
        responses = client.get("/openapi.json").json()["paths"]["/api/jobs/{job_id}/{action}"]["post"]["responses"]

        assert responses["404"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")
        assert responses["409"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")


class TestActionEndpoints:
    def test_cancel(self, client: TestClient, job_service) -> None:
        response = client.post("/api/jobs/job-001/cancel")

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["job"]["status"] == "cancelled"
        assert job_service.actions == [("job-001", JobAction.CANCEL)]

    def test_invalid_transition_conflict(self, client: TestClient) -> None:
        response = client.post("/api/jobs/job-003/retry")

        assert response.status_code == 409
        assert response.json()["error_type"] == "InvalidJobActionError"

    def test_remote_failure_is_reported_not_raised(self, client: TestClient, job_service) -> None:
        job_service.action_error = RuntimeError("backend offline")

        body = client.post("/api/jobs/job-002/retry").json()

        assert body["ok"] is False
        assert body["error"] == "backend offline"
        assert body["job"]["status"] == "queued"

    @settings(max_examples=50, deadline=None)
    @given(action=st.text(alphabet=string.ascii_letters + string.digits + "-_", min_size=1, max_size=10).filter(
        lambda s: s not in {a.value for a in JobAction}
    ))
    def test_unknown_action_rejected(self, action: str) -> None:
        # Hypothesis cannot share function-scoped fixtures; build a bare app.
        class NoService:
            async def fetch_jobs(self):
                return []

            async def issue_job_action(self, job_id, action):
                return None

        client = TestClient(create_app(PipelineMonitor(service=NoService())))
        response = client.post(f"/api/jobs/job-001/{action}")
        assert response.status_code == 422


class TestMonitorStatus:
    def test_status_payload(self, client: TestClient, monitor) -> None:
        body = client.get("/api/monitor").json()

        assert body["poller_state"] == "idle"
        assert body["polling"] is False
        assert body["snapshot_version"] == monitor.version
        assert body["job_count"] == 3
        assert body["active_jobs"] is True
        assert body["notifications"] == []
