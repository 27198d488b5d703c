# jobtrack/adapters/aiohttp_job_api_adapter.py
import asyncio
import base64
from typing import Any, AsyncIterator, Dict, Optional

import aiohttp
from pydantic import ValidationError

from jobtrack.core.exceptions import JobApiError
from jobtrack.core.interfaces.job_api import ByteStreamPort, JobApiPort
from jobtrack.core.interfaces.retry import RetryPort
from jobtrack.core.interfaces.user_identity import UserIdentityPort
from jobtrack.core.models.api_error import ApiErrorResponse
from jobtrack.core.models.job import JobStatus, JobType
from jobtrack.core.models.job_api import (
    CancelJobResponse,
    CreateJobRequest,
    CreateJobResponse,
    JobStatusResponse,
)
from jobtrack.core.settings import logger


def basic_auth_header(username: str, password: str) -> str:
    credentials = f"{username}:{password}".encode("utf-8")
    return "Basic " + base64.b64encode(credentials).decode("ascii")


INVALID_CONTENT_TITLE = "Invalid Response Content"


def is_transient_api_error(exc: BaseException) -> bool:
    """Retry only on upstream unavailability; 4xx and payload errors are final.

    A malformed body is reported as 502 but would come back the same on retry.
    """
    if isinstance(exc, JobApiError):
        if exc.response.title == INVALID_CONTENT_TITLE:
            return False
        return exc.response.is_transient()
    return False


class AioHttpByteStream(ByteStreamPort):
    """Streaming body of an open aiohttp response."""

    def __init__(self, response: aiohttp.ClientResponse, url: str):
        self._response = response
        self._url = url

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.content.iter_any():
                yield chunk
        except asyncio.TimeoutError:
            raise JobApiError(
                ApiErrorResponse(
                    title="Upstream Timeout",
                    status=504,
                    detail="Reading the event stream timed out.",
                    url=self._url,
                )
            )
        except aiohttp.ClientError as client_error:
            raise JobApiError(
                ApiErrorResponse(
                    title="Stream Interrupted",
                    status=502,
                    detail=f"The event stream was interrupted: {client_error}",
                    url=self._url,
                )
            )

    def close(self) -> None:
        if not self._response.closed:
            self._response.close()


class AioHttpJobApiAdapter(JobApiPort):
    def __init__(
        self,
        jobs_api_url: str,
        user_identity: Optional[UserIdentityPort] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        retry_port: Optional[RetryPort] = None,
        request_timeout: float = 10.0,
    ):
        self._base_url = jobs_api_url.rstrip("/")
        self._identity = user_identity
        self._authorization = (
            basic_auth_header(username, password) if username and password is not None else None
        )
        self._retry = retry_port
        self._session: Optional[aiohttp.ClientSession] = None
        # Regular requests get a bounded total; the event stream only bounds
        # connection setup since it legitimately stays open for the job lifetime.
        self._request_timeout = aiohttp.ClientTimeout(
            total=request_timeout,
            sock_connect=min(5.0, request_timeout),
        )
        self._stream_timeout = aiohttp.ClientTimeout(
            total=None,
            sock_connect=min(5.0, request_timeout),
            sock_read=None,
        )

    async def __aenter__(self):
        """Async context manager entry"""
        self._session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.close()
        return False

    async def close(self) -> None:
        """Close the session"""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self._identity is not None:
            headers["X-User-Id"] = self._identity.get_user_id()
        if self._authorization:
            headers["Authorization"] = self._authorization
        if extra:
            headers.update(extra)
        return headers

    def _require_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError("HTTP client not initialized. Use 'async with' context manager.")
        return self._session

    async def submit(self, input_text: str, job_type: JobType) -> str:
        request = CreateJobRequest.for_input(input_text, job_type)
        body = await self._request_json(
            "POST",
            self._base_url,
            json=request.model_dump(mode="json"),
            headers=self._headers({"Content-Type": "application/json"}),
        )
        try:
            job_id = CreateJobResponse.model_validate(body).jobId
        except ValidationError:
            raise self._invalid_payload(self._base_url, body)
        logger.debug("[api:submit] job created job_id=%s job_type=%s", job_id, int(job_type))
        return job_id

    async def get_status(self, job_id: str) -> JobStatus:
        url = f"{self._base_url}/{job_id}/state"

        async def fetch_status() -> JobStatus:
            body = await self._request_json("GET", url, headers=self._headers())
            try:
                return JobStatusResponse.model_validate(body).jobStatus
            except ValidationError:
                raise self._invalid_payload(url, body)

        if self._retry is None:
            return await fetch_status()
        return await self._retry.execute(fetch_status, retry_if=is_transient_api_error)

    async def cancel(self, job_id: str) -> None:
        url = f"{self._base_url}/{job_id}/cancel"
        body = await self._request_json("POST", url, json={}, headers=self._headers(), allow_empty=True)
        message = None
        if isinstance(body, dict):
            try:
                message = CancelJobResponse.model_validate(body).message
            except ValidationError:
                message = None
        logger.debug("[api:cancel] cancellation acknowledged job_id=%s message=%s", job_id, message)

    async def open_stream(self, job_id: str) -> ByteStreamPort:
        session = self._require_session()
        url = f"{self._base_url}/{job_id}/connection"
        headers = self._headers({"Accept": "text/event-stream"})
        try:
            response = await session.get(url, headers=headers, timeout=self._stream_timeout)
        except asyncio.TimeoutError:
            logger.warning("Timeout opening event stream. URL: %s", url)
            raise JobApiError(
                ApiErrorResponse(
                    title="Upstream Timeout",
                    status=504,
                    detail="Opening the event stream timed out.",
                    url=url,
                )
            )
        except aiohttp.ClientError as client_error:
            logger.warning("Connection error opening event stream. URL: %s, Error: %s", url, str(client_error))
            raise JobApiError(
                ApiErrorResponse(
                    title="Upstream Connection Error",
                    status=502,
                    detail="There was a connection error with the jobs API.",
                    url=url,
                )
            )

        if response.status >= 400:
            response.release()
            logger.warning("Event stream rejected. URL: %s, Status: %s", url, response.status)
            raise JobApiError(
                ApiErrorResponse(
                    title="Upstream HTTP Error",
                    status=response.status,
                    detail=f"HTTP error! status: {response.status}",
                    url=url,
                )
            )
        return AioHttpByteStream(response, url)

    def _invalid_payload(self, url: str, body: Any) -> JobApiError:
        logger.error("Unexpected response payload from jobs API. URL: %s, Content: %s", url, str(body)[:500])
        return JobApiError(
            ApiErrorResponse(
                title=INVALID_CONTENT_TITLE,
                status=502,
                detail="The response from the jobs API did not match the expected schema.",
                url=url,
            )
        )

    async def _request_json(
        self,
        method: str,
        url: str,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        allow_empty: bool = False,
    ) -> Any:
        """
        Issue a request and return the parsed JSON body.

        Translates HTTP/network errors into JobApiError. With `allow_empty`,
        an empty or non-JSON 2xx body yields None instead of an error.
        """
        session = self._require_session()

        try:
            async with session.request(
                method, url, json=json, headers=headers, timeout=self._request_timeout
            ) as response:
                response.raise_for_status()
                try:
                    return await response.json()
                except aiohttp.ContentTypeError:
                    response_text = await response.text()
                    if allow_empty:
                        return None
                    logger.error(
                        "Invalid JSON response from jobs API. URL: %s, Content: %s",
                        url,
                        response_text[:500],
                    )
                    raise JobApiError(
                        ApiErrorResponse(
                            title=INVALID_CONTENT_TITLE,
                            status=502,
                            detail=(
                                "The response from the jobs API was not valid JSON"
                                f": '{response_text[:100]}'"
                            ),
                            url=url,
                        )
                    )

        except JobApiError:
            raise

        except asyncio.TimeoutError:
            logger.error("Timeout when requesting jobs API. URL: %s", url)
            raise JobApiError(
                ApiErrorResponse(
                    title="Upstream Timeout",
                    status=504,
                    detail="The request to the jobs API timed out.",
                    url=url,
                )
            )

        except aiohttp.ClientResponseError as client_response_error:
            if client_response_error.status == 401:
                logger.warning(
                    "Authentication failed when requesting jobs API. URL: %s, Error: %s",
                    url,
                    str(client_response_error),
                )
                raise JobApiError(
                    ApiErrorResponse(
                        title="Authentication Failed",
                        status=401,
                        detail="Authentication with the jobs API failed.",
                        url=url,
                    )
                )

            logger.error(
                "HTTP error when requesting jobs API. URL: %s, Status: %s, Error: %s",
                url,
                client_response_error.status,
                str(client_response_error),
            )
            raise JobApiError(
                ApiErrorResponse(
                    title="Upstream HTTP Error",
                    status=client_response_error.status,
                    detail=f"The jobs API returned an HTTP error: {client_response_error.status}",
                    url=url,
                )
            )

        except aiohttp.ClientError as client_error:
            logger.error(
                "Connection error when requesting jobs API. URL: %s, Error: %s",
                url,
                str(client_error),
            )
            raise JobApiError(
                ApiErrorResponse(
                    title="Upstream Connection Error",
                    status=502,
                    detail="There was a connection error with the jobs API.",
                    url=url,
                )
            )

        except Exception as unexpected_error:
            logger.error(
                "Unexpected error when requesting jobs API. URL: %s, Error: %s",
                url,
                str(unexpected_error),
            )
            raise JobApiError(
                ApiErrorResponse(
                    title="Internal Error",
                    status=500,
                    detail="An unexpected error occurred while calling the jobs API.",
                    url=url,
                )
            )
