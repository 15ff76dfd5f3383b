"""Immutable, ordered view of all tracked jobs."""

from typing import Iterable, Iterator, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from pipeline_monitor.models.job import Job


class Snapshot(BaseModel):
    """Ordered jobs keyed by id. A new instance is produced for every change."""

    model_config = ConfigDict(frozen=True)

    jobs: tuple[Job, ...] = ()

    @field_validator("jobs")
    @classmethod
    def unique_ids(cls, v: tuple[Job, ...]) -> tuple[Job, ...]:
        """Validate that no two jobs share an id."""
        ids = [job.id for job in v]
        if len(set(ids)) != len(ids):
            raise ValueError("snapshot jobs must have unique ids")
        return v

    @classmethod
    def of(cls, jobs: Iterable[Job]) -> "Snapshot":
        """Build a snapshot, keeping the first job seen for each id."""
        seen: set[str] = set()
        unique: list[Job] = []
        for job in jobs:
            if job.id in seen:
                continue
            seen.add(job.id)
            unique.append(job)
        return cls(jobs=tuple(unique))

    def get(self, job_id: str) -> Optional[Job]:
        for job in self.jobs:
            if job.id == job_id:
                return job
        return None

    def ids(self) -> list[str]:
        return [job.id for job in self.jobs]

    def has_active_jobs(self) -> bool:
        return any(job.is_active for job in self.jobs)

    def __iter__(self) -> Iterator[Job]:  # type: ignore[override]
        return iter(self.jobs)

    def __len__(self) -> int:
        return len(self.jobs)

    def __contains__(self, job_id: object) -> bool:
        return any(job.id == job_id for job in self.jobs)
