"""Pytest fixtures for pipeline monitor tests."""

import asyncio
import copy
from datetime import datetime, timezone
from typing import Any, Optional

import pytest

from pipeline_monitor.models.job import JobAction
from pipeline_monitor.services.monitor import PipelineMonitor

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeJobService:
    """In-memory stand-in for the remote processing-jobs service."""

    def __init__(self, payload: Any = None) -> None:
        self.payload = payload if payload is not None else []
        self.fetch_calls = 0
        self.actions: list[tuple[str, JobAction]] = []
        self.fetch_error: Optional[Exception] = None
        self.action_error: Optional[Exception] = None
        self.fetch_gate: Optional[asyncio.Event] = None
        self.action_gate: Optional[asyncio.Event] = None

    async def fetch_jobs(self) -> Any:
        self.fetch_calls += 1
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        if self.fetch_error is not None:
            raise self.fetch_error
        return copy.deepcopy(self.payload)

    async def issue_job_action(self, job_id: str, action: JobAction) -> None:
        self.actions.append((job_id, JobAction(action)))
        if self.action_gate is not None:
            await self.action_gate.wait()
        if self.action_error is not None:
            raise self.action_error


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def job_service() -> FakeJobService:
    return FakeJobService()


@pytest.fixture
def monitor(job_service: FakeJobService) -> PipelineMonitor:
    """Monitor over the fake service with a frozen clock."""
    return PipelineMonitor(service=job_service, poll_interval=10.0, clock=lambda: FIXED_NOW)


@pytest.fixture
def sample_job_record() -> dict:
    """A processing job as the service typically reports it."""
    return {
        "id": "job-001",
        "filename": "keynote.mov",
        "original_size": 734003200,
        "status": "processing",
        "progress": 40,
        "started_at": "2024-05-01T11:30:00Z",
        "tasks": [
            {"id": "t1", "name": "analyze", "status": "completed", "progress": 100},
            {"id": "t2", "name": "transcode 1080p", "status": "running", "progress": 35, "eta": 120},
            {"id": "t3", "name": "thumbnail", "status": "pending"},
        ],
        "output_files": [
            {"id": "f1", "type": "thumb", "format": "jpg", "size": 20480, "url": "https://cdn.example.com/f1.jpg"},
        ],
        "metadata": {
            "duration": 3600,
            "resolution": "1920x1080",
            "bit_rate": 8000000,
            "video_codec": "h264",
            "frame_rate": 29.97,
            "aspect_ratio": "16:9",
            "audio_codec": "aac",
            "channels": 2,
        },
    }


@pytest.fixture
def failed_job_record() -> dict:
    return {
        "job_id": "job-002",
        "original_filename": "interview.mp4",
        "state": "error",
        "progress": 70,
        "created_at": "2024-05-01T10:00:00Z",
        "finished_at": "2024-05-01T10:20:00Z",
        "tasks": [
            {"task_id": "a", "task_name": "transcode 720p", "state": "failed", "error_message": "codec crash"},
        ],
    }
