"""Normalization of loosely-typed processing-job records into domain models.

The processing-jobs endpoint is not consistent about field names, casing or
enum spellings. Everything in this module is a pure function: the same
record always produces the same model, no input is mutated, nothing reads
the clock, and nothing raises. Missing or unusable fields fall back to the
documented defaults on the models.
"""

import hashlib
import json
import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from pipeline_monitor.models.job import (
    Job,
    JobStatus,
    OutputFile,
    OutputFileType,
    Task,
    TaskStatus,
    VideoMetadata,
)

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
UNKNOWN = "Unknown"
UNKNOWN_TASK_ERROR = "Unknown error"

JOB_STATUS_MAP: dict[str, JobStatus] = {
    "pending": JobStatus.QUEUED,
    "queued": JobStatus.QUEUED,
    "waiting": JobStatus.QUEUED,
    "running": JobStatus.PROCESSING,
    "processing": JobStatus.PROCESSING,
    "in_progress": JobStatus.PROCESSING,
    "started": JobStatus.PROCESSING,
    "transcoding": JobStatus.PROCESSING,
    "completed": JobStatus.COMPLETED,
    "complete": JobStatus.COMPLETED,
    "finished": JobStatus.COMPLETED,
    "success": JobStatus.COMPLETED,
    "succeeded": JobStatus.COMPLETED,
    "done": JobStatus.COMPLETED,
    "ready": JobStatus.COMPLETED,
    "failed": JobStatus.FAILED,
    "failure": JobStatus.FAILED,
    "error": JobStatus.FAILED,
    "errored": JobStatus.FAILED,
    "cancelled": JobStatus.CANCELLED,
    "canceled": JobStatus.CANCELLED,
    "aborted": JobStatus.CANCELLED,
}

TASK_STATUS_MAP: dict[str, TaskStatus] = {
    "pending": TaskStatus.PENDING,
    "waiting": TaskStatus.PENDING,
    "queued": TaskStatus.PENDING,
    "running": TaskStatus.RUNNING,
    "processing": TaskStatus.RUNNING,
    "in_progress": TaskStatus.RUNNING,
    "started": TaskStatus.RUNNING,
    "completed": TaskStatus.COMPLETED,
    "finished": TaskStatus.COMPLETED,
    "success": TaskStatus.COMPLETED,
    "succeeded": TaskStatus.COMPLETED,
    "done": TaskStatus.COMPLETED,
    "failed": TaskStatus.FAILED,
    "error": TaskStatus.FAILED,
    "errored": TaskStatus.FAILED,
}

FILE_TYPE_MAP: dict[str, OutputFileType] = {
    "video": OutputFileType.VIDEO,
    "thumbnail": OutputFileType.THUMBNAIL,
    "thumb": OutputFileType.THUMBNAIL,
    "preview": OutputFileType.PREVIEW,
    "subtitle": OutputFileType.SUBTITLE,
    "subtitles": OutputFileType.SUBTITLE,
    "srt": OutputFileType.SUBTITLE,
    "vtt": OutputFileType.SUBTITLE,
    "metadata": OutputFileType.METADATA,
    "meta": OutputFileType.METADATA,
}

DEFAULT_JOB_STATUS = JobStatus.QUEUED
DEFAULT_TASK_STATUS = TaskStatus.PENDING
DEFAULT_FILE_TYPE = OutputFileType.VIDEO

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


# ==================== Field access ====================


def _normalize_key(key: Any) -> str:
    text = str(key).strip()
    text = _CAMEL_BOUNDARY.sub("_", text)
    return text.lower().replace("-", "_").replace(" ", "_")


def _fields(record: Any) -> dict[str, Any]:
    """Case- and style-insensitive view of a record; first spelling wins."""
    if not isinstance(record, Mapping):
        return {}
    fields: dict[str, Any] = {}
    for key, value in record.items():
        fields.setdefault(_normalize_key(key), value)
    return fields


def _pick(fields: Mapping[str, Any], *aliases: str, convert=lambda v: v) -> Any:
    """Return the first alias whose value survives conversion."""
    for alias in aliases:
        if alias not in fields:
            continue
        value = convert(fields[alias])
        if value is not None:
            return value
    return None


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _identifier(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    return _text(value)


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _non_negative(value: Any) -> Optional[float]:
    number = _number(value)
    if number is None or number < 0:
        return None
    return number


def _non_negative_int(value: Any) -> Optional[int]:
    number = _non_negative(value)
    return int(number) if number is not None else None


def _percent(value: Any) -> Optional[int]:
    number = _number(value)
    if number is None:
        return None
    return int(max(0.0, min(100.0, number)))


def _timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            number = _number(text)
            return _timestamp(number) if number is not None else None
    elif _number(value) is not None:
        try:
            parsed = datetime.fromtimestamp(_number(value), tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _items(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


def _generated_id(prefix: str, record: Any, index: int = 0) -> str:
    """Deterministic id for records that arrive without one."""
    try:
        canonical = json.dumps(record, sort_keys=True, default=str)
    except (TypeError, ValueError):
        canonical = repr(record)
    digest = hashlib.sha1(f"{canonical}#{index}".encode("utf-8")).hexdigest()
    return f"{prefix}-{digest[:12]}"


# ==================== Enum lookups ====================


def _lookup_key(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip().lower().replace("-", "_").replace(" ", "_")


def normalize_job_status(value: Any) -> JobStatus:
    """Map any status spelling onto JobStatus, defaulting to queued."""
    return JOB_STATUS_MAP.get(_lookup_key(value) or "", DEFAULT_JOB_STATUS)


def normalize_task_status(value: Any) -> TaskStatus:
    """Map any status spelling onto TaskStatus, defaulting to pending."""
    return TASK_STATUS_MAP.get(_lookup_key(value) or "", DEFAULT_TASK_STATUS)


def normalize_file_type(value: Any) -> OutputFileType:
    """Map any file-type spelling onto OutputFileType, defaulting to video."""
    return FILE_TYPE_MAP.get(_lookup_key(value) or "", DEFAULT_FILE_TYPE)


# ==================== Record normalizers ====================


def normalize_metadata(record: Any) -> VideoMetadata:
    """Normalize a media metadata record; absent values become zero/"Unknown"."""
    fields = _fields(record)
    return VideoMetadata(
        duration_seconds=_pick(fields, "duration", "duration_seconds", convert=_non_negative) or 0.0,
        resolution=_pick(fields, "resolution", "dimensions", convert=_text) or UNKNOWN,
        bitrate=_pick(fields, "bitrate", "bit_rate", convert=_non_negative_int) or 0,
        codec=_pick(fields, "codec", "video_codec", convert=_text) or UNKNOWN,
        fps=_pick(fields, "fps", "frame_rate", convert=_non_negative) or 0.0,
        aspect_ratio=_pick(fields, "aspect_ratio", "ratio", convert=_text) or UNKNOWN,
        audio_codec=_pick(fields, "audio_codec", "audio", convert=_text) or UNKNOWN,
        audio_channels=_pick(fields, "audio_channels", "channels", convert=_non_negative_int) or 0,
    )


def _task_error(status: TaskStatus, error: Optional[str]) -> Optional[str]:
    if status != TaskStatus.FAILED:
        return None
    return error or UNKNOWN_TASK_ERROR


def normalize_task(record: Any, index: int = 0) -> Task:
    """Normalize one pipeline-stage record."""
    if isinstance(record, str):
        record = {"name": record}
    fields = _fields(record)
    status = normalize_task_status(_pick(fields, "status", "state", convert=_text))
    error = _pick(fields, "error", "error_message", convert=_text)
    return Task(
        id=_pick(fields, "id", "task_id", convert=_identifier)
        or _generated_id("task", record, index),
        name=_pick(fields, "name", "task_name", "type", convert=_text) or "Processing Task",
        status=status,
        progress_percent=_pick(fields, "progress", "percent", convert=_percent) or 0,
        estimated_seconds_remaining=_pick(
            fields, "estimated_time", "eta", "estimated_seconds_remaining",
            convert=_non_negative_int,
        ),
        error=_task_error(status, error),
    )


def normalize_output_file(record: Any, index: int = 0) -> OutputFile:
    """Normalize one produced-artifact record."""
    if isinstance(record, str):
        record = {"url": record}
    fields = _fields(record)
    return OutputFile(
        id=_pick(fields, "id", "file_id", convert=_identifier)
        or _generated_id("file", record, index),
        type=normalize_file_type(_pick(fields, "type", "file_type", convert=_text)),
        quality=_pick(fields, "quality", "resolution", convert=_text),
        format=_pick(fields, "format", "extension", "file_extension", convert=_text) or "mp4",
        size_bytes=_pick(fields, "size", "file_size", "size_bytes", convert=_non_negative_int) or 0,
        url=_pick(fields, "url", "download_url", "path", convert=_text) or "",
    )


def _unique_by_id(items: Iterable[Any]) -> tuple:
    seen: set[str] = set()
    unique = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        unique.append(item)
    return tuple(unique)


def _tasks(fields: Mapping[str, Any], job_id: str, progress: int) -> tuple[Task, ...]:
    raw_tasks = _pick(fields, "tasks", "stages", convert=lambda v: v if isinstance(v, (list, tuple)) else None)
    if raw_tasks is not None:
        return _unique_by_id(
            normalize_task(item, index)
            for index, item in enumerate(raw_tasks)
            if isinstance(item, (Mapping, str))
        )

    # Single-stage records describe their current stage inline.
    name = _pick(fields, "task_name", "current_task", "stage", convert=_text)
    if name is None:
        return ()
    status = normalize_task_status(_pick(fields, "status", "state", convert=_text))
    return (
        Task(
            id=_pick(fields, "task_id", convert=_identifier) or f"{job_id}-task-0",
            name=name,
            status=status,
            progress_percent=progress,
            estimated_seconds_remaining=_pick(fields, "estimated_time", "eta", convert=_non_negative_int),
            error=_task_error(status, _pick(fields, "error", "error_message", convert=_text)),
        ),
    )


def _output_files(fields: Mapping[str, Any]) -> tuple[OutputFile, ...]:
    raw_files = _pick(
        fields, "output_files", "outputs", "quality_variants",
        convert=lambda v: v if isinstance(v, (list, tuple)) else None,
    )
    return _unique_by_id(
        normalize_output_file(item, index)
        for index, item in enumerate(_items(raw_files))
        if isinstance(item, (Mapping, str))
    )


def normalize_job(record: Any) -> Job:
    """
    Normalize one processing-job record into a Job.

    Args:
        record: Untyped job-shaped record from the remote service

    Returns:
        A well-formed Job; unusable input yields an all-default job
    """
    fields = _fields(record)
    status = normalize_job_status(_pick(fields, "status", "state", convert=_text))
    progress = _pick(fields, "progress", "completion_percentage", "percent", convert=_percent) or 0
    if status == JobStatus.COMPLETED:
        progress = 100

    job_id = _pick(fields, "id", "job_id", convert=_identifier) or _generated_id("job", record)
    started_at = _pick(fields, "started_at", "created_at", convert=_timestamp) or EPOCH
    completed_at = None
    if status.is_terminal:
        # Terminal records without a finish time fall back to their last update, then their start.
        completed_at = (
            _pick(fields, "completed_at", "finished_at", "updated_at", convert=_timestamp)
            or started_at
        )
    metadata = _pick(fields, "metadata", "video_metadata", convert=lambda v: v if isinstance(v, Mapping) else None)

    return Job(
        id=job_id,
        source_name=_pick(fields, "filename", "original_filename", "name", "title", convert=_text)
        or "Unknown File",
        source_size_bytes=_pick(fields, "original_size", "file_size", "size", convert=_non_negative_int) or 0,
        status=status,
        progress_percent=progress,
        started_at=started_at,
        completed_at=completed_at,
        duration_seconds=_pick(fields, "duration", "processing_duration", convert=_non_negative),
        tasks=_tasks(fields, job_id, progress),
        output_files=_output_files(fields),
        metadata=normalize_metadata(metadata or {}),
    )


def normalize_jobs(records: Any) -> list[Job]:
    """
    Normalize a fetched job list.

    A bare list or a ``{"results": [...]}`` / ``{"jobs": [...]}`` envelope is
    accepted; anything else normalizes to an empty list.
    """
    if isinstance(records, Mapping):
        records = _pick(
            _fields(records), "results", "jobs", "data",
            convert=lambda v: v if isinstance(v, (list, tuple)) else None,
        )
    jobs = [normalize_job(record) for record in _items(records)]
    logger.debug(f"Normalized {len(jobs)} job records")
    return jobs
