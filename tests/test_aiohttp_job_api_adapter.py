import asyncio

import pytest
from aioresponses import aioresponses
from yarl import URL

from jobtrack.adapters.aiohttp_job_api_adapter import (
    AioHttpJobApiAdapter,
    basic_auth_header,
    INVALID_CONTENT_TITLE,
    is_transient_api_error,
)
from jobtrack.adapters.retry_tenacity import TenacityRetryAdapter
from jobtrack.core.exceptions import JobApiError
from jobtrack.core.interfaces.user_identity import UserIdentityPort
from jobtrack.core.models.api_error import ApiErrorResponse
from jobtrack.core.models.job import JobStatus, JobType

"""
Tests for AioHttpJobApiAdapter.

Upstream failures are mapped into JobApiError carrying an ApiErrorResponse:
- non-JSON bodies and bodies that do not match the expected schema -> 502
- HTTP error statuses keep the upstream status (401 gets its own title)
- timeouts -> 504
Status queries are retried once on 502/503/504 only; submissions never are.
"""

BASE = "http://jobs.test/jobs"


class StaticIdentity(UserIdentityPort):
    def get_user_id(self) -> str:
        return "user-1234"


def no_wait_retry():
    return TenacityRetryAdapter(attempts=2, wait_initial=0, wait_max=0)


def make_adapter(**kwargs):
    kwargs.setdefault("user_identity", StaticIdentity())
    return AioHttpJobApiAdapter(BASE + "/", **kwargs)


def sent(m, method, url):
    return m.requests[(method, URL(url))]


@pytest.mark.asyncio
async def test_submit_posts_job_and_returns_id():
    with aioresponses() as m:
        m.post(BASE, payload={"jobId": "j1"}, status=200)

        async with make_adapter(username="alice", password="secret") as api:
            job_id = await api.submit("hello", JobType.ENCODE)

        assert job_id == "j1"
        request = sent(m, "POST", BASE)[0]
        assert request.kwargs["json"] == {"jobType": 1, "jobData": {"Input": "hello"}}
        headers = request.kwargs["headers"]
        assert headers["X-User-Id"] == "user-1234"
        assert headers["Authorization"] == "Basic YWxpY2U6c2VjcmV0"
        assert headers["Content-Type"] == "application/json"


@pytest.mark.asyncio
async def test_submit_without_credentials_sends_no_authorization():
    with aioresponses() as m:
        m.post(BASE, payload={"jobId": "j1"})

        async with make_adapter() as api:
            await api.submit("hello", JobType.ENCODE)

        assert "Authorization" not in sent(m, "POST", BASE)[0].kwargs["headers"]


@pytest.mark.asyncio
async def test_submit_is_not_retried_on_server_error():
    with aioresponses() as m:
        m.post(BASE, status=503)
        m.post(BASE, payload={"jobId": "j1"})

        async with make_adapter(retry_port=no_wait_retry()) as api:
            with pytest.raises(JobApiError) as excinfo:
                await api.submit("hello", JobType.ENCODE)

        assert excinfo.value.response.status == 503
        assert len(sent(m, "POST", BASE)) == 1


@pytest.mark.asyncio
async def test_submit_response_without_job_id_is_invalid_content():
    with aioresponses() as m:
        m.post(BASE, payload={"id": "j1"})

        async with make_adapter() as api:
            with pytest.raises(JobApiError) as excinfo:
                await api.submit("hello", JobType.ENCODE)

        assert excinfo.value.response.status == 502
        assert excinfo.value.response.title == "Invalid Response Content"


@pytest.mark.asyncio
async def test_get_status_parses_job_status():
    url = f"{BASE}/j1/state"
    with aioresponses() as m:
        m.get(url, payload={"jobId": "j1", "jobStatus": "Running"})

        async with make_adapter() as api:
            status = await api.get_status("j1")

        assert status == JobStatus.running
        assert sent(m, "GET", url)[0].kwargs["headers"]["X-User-Id"] == "user-1234"


@pytest.mark.asyncio
async def test_get_status_unknown_value_is_invalid_content():
    url = f"{BASE}/j1/state"
    with aioresponses() as m:
        m.get(url, payload={"jobStatus": "Paused"})

        async with make_adapter() as api:
            with pytest.raises(JobApiError) as excinfo:
                await api.get_status("j1")

        assert excinfo.value.response.status == 502


@pytest.mark.asyncio
async def test_non_json_response_maps_to_502():
    url = f"{BASE}/j1/state"
    with aioresponses() as m:
        m.get(url, body="<html>error</html>", status=200, headers={"Content-Type": "text/html"})

        async with make_adapter() as api:
            with pytest.raises(JobApiError) as excinfo:
                await api.get_status("j1")

        assert excinfo.value.response.status == 502


@pytest.mark.asyncio
async def test_http_error_keeps_upstream_status():
    url = f"{BASE}/j1/state"
    with aioresponses() as m:
        m.get(url, status=500, body="Server Error")

        async with make_adapter() as api:
            with pytest.raises(JobApiError) as excinfo:
                await api.get_status("j1")

        assert excinfo.value.response.status == 500


@pytest.mark.asyncio
async def test_unauthorized_maps_to_authentication_failed():
    with aioresponses() as m:
        m.post(BASE, status=401)

        async with make_adapter(username="alice", password="wrong") as api:
            with pytest.raises(JobApiError) as excinfo:
                await api.submit("hello", JobType.ENCODE)

        assert excinfo.value.response.status == 401
        assert excinfo.value.response.title == "Authentication Failed"


@pytest.mark.asyncio
async def test_timeout_maps_to_504():
    url = f"{BASE}/j1/state"
    with aioresponses() as m:
        m.get(url, exception=asyncio.TimeoutError())

        async with make_adapter() as api:
            with pytest.raises(JobApiError) as excinfo:
                await api.get_status("j1")

        assert excinfo.value.response.status == 504


@pytest.mark.asyncio
async def test_status_query_retries_transient_error_once():
    url = f"{BASE}/j1/state"
    with aioresponses() as m:
        m.get(url, status=503)
        m.get(url, payload={"jobStatus": "Completed"})

        async with make_adapter(retry_port=no_wait_retry()) as api:
            status = await api.get_status("j1")

        assert status == JobStatus.completed
        assert len(sent(m, "GET", url)) == 2


@pytest.mark.asyncio
async def test_status_query_gives_up_after_configured_attempts():
    url = f"{BASE}/j1/state"
    with aioresponses() as m:
        m.get(url, status=502, repeat=True)

        async with make_adapter(retry_port=no_wait_retry()) as api:
            with pytest.raises(JobApiError) as excinfo:
                await api.get_status("j1")

        assert excinfo.value.response.status == 502
        assert len(sent(m, "GET", url)) == 2


@pytest.mark.asyncio
async def test_status_query_does_not_retry_client_errors():
    url = f"{BASE}/missing/state"
    with aioresponses() as m:
        m.get(url, status=404)
        m.get(url, payload={"jobStatus": "Running"})

        async with make_adapter(retry_port=no_wait_retry()) as api:
            with pytest.raises(JobApiError) as excinfo:
                await api.get_status("missing")

        assert excinfo.value.response.status == 404
        assert len(sent(m, "GET", url)) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        {"payload": {"jobStatus": "Paused"}},
        {"body": "<html>maintenance</html>", "headers": {"Content-Type": "text/html"}},
    ],
)
async def test_status_query_does_not_retry_invalid_content(response):
    url = f"{BASE}/j1/state"
    with aioresponses() as m:
        m.get(url, repeat=True, **response)

        async with make_adapter(retry_port=no_wait_retry()) as api:
            with pytest.raises(JobApiError) as excinfo:
                await api.get_status("j1")

        assert excinfo.value.response.status == 502
        assert excinfo.value.response.title == INVALID_CONTENT_TITLE
        assert len(sent(m, "GET", url)) == 1


@pytest.mark.asyncio
async def test_cancel_accepts_empty_body():
    url = f"{BASE}/j1/cancel"
    with aioresponses() as m:
        m.post(url, status=202, body="", headers={"Content-Type": "text/plain"})

        async with make_adapter() as api:
            assert await api.cancel("j1") is None

        assert len(sent(m, "POST", url)) == 1


@pytest.mark.asyncio
async def test_cancel_failure_raises():
    url = f"{BASE}/j1/cancel"
    with aioresponses() as m:
        m.post(url, status=409)

        async with make_adapter() as api:
            with pytest.raises(JobApiError) as excinfo:
                await api.cancel("j1")

        assert excinfo.value.response.status == 409


@pytest.mark.asyncio
async def test_open_stream_yields_body_chunks():
    url = f"{BASE}/j1/connection"
    body = b'data: {"type":"connected","jobId":"j1"}\n'
    with aioresponses() as m:
        m.get(url, body=body, headers={"Content-Type": "text/event-stream"})

        async with make_adapter() as api:
            stream = await api.open_stream("j1")
            received = b"".join([chunk async for chunk in stream.iter_chunks()])
            stream.close()
            stream.close()

        assert received == body
        assert sent(m, "GET", url)[0].kwargs["headers"]["Accept"] == "text/event-stream"


@pytest.mark.asyncio
async def test_open_stream_rejected_status_raises():
    url = f"{BASE}/j1/connection"
    with aioresponses() as m:
        m.get(url, status=503)

        async with make_adapter() as api:
            with pytest.raises(JobApiError) as excinfo:
                await api.open_stream("j1")

        assert excinfo.value.response.status == 503
        assert is_transient_api_error(excinfo.value)


@pytest.mark.asyncio
async def test_request_outside_context_manager_is_rejected():
    api = make_adapter()

    with pytest.raises(RuntimeError):
        await api.get_status("j1")


def test_basic_auth_header_encoding():
    assert basic_auth_header("alice", "secret") == "Basic YWxpY2U6c2VjcmV0"


@pytest.mark.parametrize(
    "status, expected",
    [(502, True), (503, True), (504, True), (500, False), (404, False), (401, False)],
)
def test_transient_errors(status, expected):
    error = JobApiError(ApiErrorResponse(title="x", status=status, detail="y"))

    assert is_transient_api_error(error) is expected


def test_non_api_errors_are_not_transient():
    assert is_transient_api_error(ValueError("nope")) is False


def test_invalid_content_is_not_transient():
    error = JobApiError(ApiErrorResponse(title=INVALID_CONTENT_TITLE, status=502, detail="bad schema"))

    assert is_transient_api_error(error) is False
