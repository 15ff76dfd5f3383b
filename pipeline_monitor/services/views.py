"""Read-only projections of a snapshot for list and detail views."""

from typing import Iterable, Literal, Optional

from pydantic import BaseModel

from pipeline_monitor.models.job import Job, JobStatus

SortKey = Literal["started_at", "source_name", "source_size_bytes", "progress_percent", "status"]
FILE_SIZE_UNITS = ["Bytes", "KB", "MB", "GB", "TB"]


class JobStats(BaseModel):
    """Job counts per status."""

    total: int = 0
    queued: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0


def filter_jobs(jobs: Iterable[Job], status: Optional[str] = "all") -> list[Job]:
    """Jobs matching ``status``; ``"all"`` or None keeps everything."""
    if status in (None, "all"):
        return list(jobs)
    wanted = JobStatus(status)
    return [job for job in jobs if job.status == wanted]


def sort_jobs(jobs: Iterable[Job], key: SortKey = "started_at", descending: bool = True) -> list[Job]:
    """Stable sort; ties keep snapshot order."""
    if key == "status":
        return sorted(jobs, key=lambda job: job.status.value, reverse=descending)
    if key == "source_name":
        return sorted(jobs, key=lambda job: job.source_name.lower(), reverse=descending)
    return sorted(jobs, key=lambda job: getattr(job, key), reverse=descending)


def job_stats(jobs: Iterable[Job]) -> JobStats:
    counts = {status.value: 0 for status in JobStatus}
    total = 0
    for job in jobs:
        counts[job.status.value] += 1
        total += 1
    return JobStats(total=total, **counts)


def format_file_size(size_bytes: int) -> str:
    """Human readable size, e.g. ``"1.5 MB"``."""
    if size_bytes <= 0:
        return "0 Bytes"
    value = float(size_bytes)
    unit = 0
    while value >= 1024 and unit < len(FILE_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{round(value, 2):g} {FILE_SIZE_UNITS[unit]}"


def format_duration(seconds: float) -> str:
    """``HH:MM:SS`` for a duration in seconds."""
    total = max(0, int(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
