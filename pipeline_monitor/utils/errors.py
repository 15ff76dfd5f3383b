"""Custom exception classes for the pipeline monitor."""


class PipelineMonitorError(Exception):
    """Base exception for all monitor errors."""

    pass


class JobServiceError(PipelineMonitorError):
    """Errors talking to the remote processing-jobs service."""

    pass


class JobServiceAPIError(JobServiceError):
    """Processing-jobs service returned a non-success response."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(f"Job service error {status_code}: {message}")


class InvalidJobActionError(PipelineMonitorError):
    """Action is not valid for the job's current status."""

    def __init__(self, job_id: str, action: str, status: str) -> None:
        self.job_id = job_id
        self.action = action
        self.status = status
        super().__init__(f"Cannot {action} job {job_id} in status {status}")


class JobNotFoundError(InvalidJobActionError):
    """Job is not present in the current snapshot."""

    def __init__(self, job_id: str, action: str = "select") -> None:
        self.job_id = job_id
        self.action = action
        self.status = "missing"
        PipelineMonitorError.__init__(self, f"Job not found: {job_id}")
