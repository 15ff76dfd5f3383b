"""Client for the remote processing-jobs REST service."""

import logging
from typing import Any, Optional, Protocol

import httpx

from pipeline_monitor.models.job import JobAction
from pipeline_monitor.utils.errors import JobServiceAPIError, JobServiceError
from pipeline_monitor.utils.retry import with_retry

logger = logging.getLogger(__name__)

JOBS_PATH = "/api/admin/processing-jobs/"


class JobService(Protocol):
    """What the monitor needs from the remote service."""

    async def fetch_jobs(self) -> Any:
        ...

    async def issue_job_action(self, job_id: str, action: JobAction) -> None:
        ...


def _is_transient(error: Exception) -> bool:
    """Client errors (4xx) are not worth retrying."""
    if isinstance(error, JobServiceAPIError):
        return error.status_code >= 500 or error.status_code == 429
    return True


class HttpJobService:
    """Service for reading processing jobs and issuing job actions over HTTP."""

    def __init__(
        self,
        base_url: str,
        api_token: str = "",
        timeout: float = 30.0,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the HttpJobService.

        Args:
            base_url: Root URL of the processing-jobs API
            api_token: Bearer token (optional)
            timeout: Per-request timeout in seconds
            max_attempts: Attempts for job list fetches
            base_delay: Base retry delay in seconds
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout
        self.transport = transport
        self._fetch_with_retry = with_retry(
            max_attempts=max_attempts,
            base_delay=base_delay,
            exceptions=(JobServiceError,),
            should_retry=_is_transient,
        )(self._fetch_once)

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _fetch_once(self) -> Any:
        try:
            async with self._client() as client:
                response = await client.get(JOBS_PATH)
        except httpx.HTTPError as e:
            raise JobServiceError(f"HTTP error fetching processing jobs: {e}")

        if not response.is_success:
            raise JobServiceAPIError(response.status_code, response.text)

        try:
            return response.json()
        except ValueError as e:
            raise JobServiceError(f"Invalid JSON in processing jobs response: {e}")

    async def fetch_jobs(self) -> Any:
        """
        Fetch all processing jobs.

        Returns:
            Raw decoded payload: a job list or an envelope around one

        Raises:
            JobServiceAPIError: If the service returns a non-2xx response
            JobServiceError: On transport or decoding failure
        """
        payload = await self._fetch_with_retry()
        logger.debug("Fetched processing jobs payload")
        return payload

    async def issue_job_action(self, job_id: str, action: JobAction) -> None:
        """
        Ask the service to pause, cancel or retry a job. Not retried.

        Raises:
            JobServiceAPIError: If the service rejects the action
            JobServiceError: On transport failure
        """
        action = JobAction(action)
        path = f"{JOBS_PATH}{job_id}/{action.value}/"
        try:
            async with self._client() as client:
                response = await client.post(path)
        except httpx.HTTPError as e:
            raise JobServiceError(f"HTTP error issuing {action.value} for job {job_id}: {e}")

        if not response.is_success:
            raise JobServiceAPIError(response.status_code, response.text)

        logger.info(f"Issued {action.value} for job {job_id}")


def create_job_service(transport: Optional[httpx.AsyncBaseTransport] = None) -> HttpJobService:
    """
    Create an HttpJobService using application settings.

    Args:
        transport: Optional httpx transport override

    Returns:
        Configured HttpJobService instance
    """
    from pipeline_monitor.config import get_settings

    settings = get_settings()
    return HttpJobService(
        base_url=settings.api_base_url,
        api_token=settings.api_token,
        timeout=settings.request_timeout_seconds,
        max_attempts=settings.max_retry_attempts,
        base_delay=settings.base_delay_seconds,
        transport=transport,
    )
