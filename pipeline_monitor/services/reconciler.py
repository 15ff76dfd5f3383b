"""Merge freshly fetched jobs into the held snapshot.

Every change to the snapshot, whether it comes from a poll or from an
optimistic action, goes through this module. Inputs are never mutated and
each call returns a new Snapshot.
"""

import logging
from datetime import datetime
from typing import Any, Iterable, Mapping, Sequence

from pipeline_monitor.models.job import Job, JobStatus, OutputFile
from pipeline_monitor.models.snapshot import Snapshot

logger = logging.getLogger(__name__)


def _merge_output_files(
    previous: tuple[OutputFile, ...], incoming: tuple[OutputFile, ...]
) -> tuple[OutputFile, ...]:
    """Grow-only merge: existing entries are kept as-is, unseen ids appended."""
    known = {f.id for f in previous}
    added = tuple(f for f in incoming if f.id not in known)
    return previous + added if added else previous


def _completed_at(previous: Job, incoming: Job, observed_at: datetime):
    if not incoming.status.is_terminal:
        return None
    if previous.is_terminal and previous.completed_at is not None:
        return previous.completed_at
    if incoming.completed_at is not None:
        return incoming.completed_at
    logger.warning(
        f"Job {incoming.id} is {incoming.status.value} without completed_at; "
        f"stamping observation time"
    )
    return observed_at


def repair(job: Job, observed_at: datetime) -> Job:
    """Apply corrective defaults to a job that breaks terminal-state invariants."""
    update: dict[str, Any] = {}
    if job.is_terminal and job.completed_at is None:
        logger.warning(
            f"Job {job.id} is {job.status.value} without completed_at; stamping observation time"
        )
        update["completed_at"] = observed_at
    if not job.is_terminal and job.completed_at is not None:
        update["completed_at"] = None
    if job.status == JobStatus.COMPLETED and job.progress_percent != 100:
        update["progress_percent"] = 100
    return job.model_copy(update=update) if update else job


def merge_job(previous: Job, incoming: Job, observed_at: datetime) -> Job:
    """
    Merge one server observation into the held entry for the same id.

    Server-derived fields come from ``incoming``. ``started_at`` and the
    source identity are kept from ``previous``, output files only grow,
    progress never moves backwards while processing, and the optimistic
    marker survives until a confirming status arrives.
    """
    progress = incoming.progress_percent
    if previous.status == JobStatus.PROCESSING and incoming.status == JobStatus.PROCESSING:
        progress = max(previous.progress_percent, progress)
    if incoming.status == JobStatus.COMPLETED:
        progress = 100

    pending = previous.pending_action
    if pending is not None and pending.confirmed_by(incoming.status):
        logger.debug(f"Job {previous.id}: {pending.action.value} settled by status {incoming.status.value}")
        pending = None

    return incoming.model_copy(
        update={
            "source_name": previous.source_name,
            "source_size_bytes": previous.source_size_bytes or incoming.source_size_bytes,
            "started_at": previous.started_at,
            "progress_percent": progress,
            "completed_at": _completed_at(previous, incoming, observed_at),
            "output_files": _merge_output_files(previous.output_files, incoming.output_files),
            "pending_action": pending,
        }
    )


def reconcile(previous: Snapshot, incoming: Sequence[Job], observed_at: datetime) -> Snapshot:
    """
    Merge a fetched job list into the previous snapshot.

    Args:
        previous: Snapshot currently held by the monitor
        incoming: Normalized jobs from this fetch; may be a subset
        observed_at: Time of the fetch, used only for invariant repair

    Returns:
        New snapshot. Retained jobs keep their relative order, jobs missing
        from ``incoming`` are kept unchanged and new jobs are appended.
    """
    latest: dict[str, Job] = {}
    for job in incoming:
        # Last occurrence of a duplicated id wins.
        latest[job.id] = job

    merged: list[Job] = []
    for job in previous.jobs:
        observed = latest.pop(job.id, None)
        merged.append(job if observed is None else merge_job(job, observed, observed_at))

    for job in latest.values():
        merged.append(repair(job, observed_at))

    logger.debug(f"Reconciled {len(incoming)} fetched jobs into {len(merged)} tracked jobs")
    return Snapshot(jobs=tuple(merged))


def apply(previous: Snapshot, job_id: str, update: Mapping[str, Any]) -> Snapshot:
    """
    Replace one job's fields in a new snapshot (optimistic edits).

    Unknown ids leave the snapshot contents unchanged.
    """
    return Snapshot(
        jobs=tuple(
            job.model_copy(update=dict(update)) if job.id == job_id else job
            for job in previous.jobs
        )
    )


def evict(previous: Snapshot, job_ids: Iterable[str]) -> Snapshot:
    """Drop jobs on explicit request from the presentation layer."""
    doomed = set(job_ids)
    return Snapshot(jobs=tuple(job for job in previous.jobs if job.id not in doomed))
