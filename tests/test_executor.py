"""Tests for the request executor retry, timeout and classification rules."""

import io

import httpx
import pytest

from edupin.pinning.exceptions import FailureKind, ProviderRejected, TransientNetworkError
from edupin.pinning.executor import (
    CallKind,
    RequestExecutor,
    RetryableCall,
    error_message,
)

URL = "https://api.pinata.cloud/v3/files/public"


class Recorder:
    """Records sleeps instead of waiting."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def make_executor(handler, max_attempts=3, base_delay=1.0, sleep=None):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RequestExecutor(
        client,
        max_attempts=max_attempts,
        base_delay=base_delay,
        base_timeout=120.0,
        timeout_scale_per_byte=0.000002,
        metadata_timeout=15.0,
        sleep=sleep or Recorder(),
    )


@pytest.mark.asyncio
async def test_success_on_first_attempt():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(200, json={"data": {"files": []}})

    executor = make_executor(handler)
    call = RetryableCall("GET", URL)
    response = await executor.execute(call)

    assert response.status_code == 200
    assert len(attempts) == 1
    assert call.attempt == 1


@pytest.mark.asyncio
async def test_transient_failure_retried_up_to_ceiling_with_exponential_delays():
    attempts = []

    def handler(request):
        attempts.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    sleep = Recorder()
    executor = make_executor(handler, max_attempts=3, base_delay=1.0, sleep=sleep)
    call = RetryableCall("GET", URL)

    with pytest.raises(TransientNetworkError) as exc_info:
        await executor.execute(call)

    assert len(attempts) == 3
    assert sleep.delays == [1.0, 2.0]
    assert exc_info.value.kind == FailureKind.NETWORK
    assert call.last_failure == FailureKind.NETWORK


@pytest.mark.asyncio
async def test_retry_ceiling_is_configurable():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(502, text="Bad Gateway")

    sleep = Recorder()
    executor = make_executor(handler, max_attempts=5, base_delay=0.5, sleep=sleep)

    with pytest.raises(TransientNetworkError) as exc_info:
        await executor.execute(RetryableCall("GET", URL))

    assert len(attempts) == 5
    assert sleep.delays == [0.5, 1.0, 2.0, 4.0]
    assert exc_info.value.status_code == 502
    assert exc_info.value.kind == FailureKind.SERVER_ERROR


@pytest.mark.asyncio
async def test_server_error_then_success():
    statuses = [503, 200]

    def handler(request):
        return httpx.Response(statuses.pop(0), json={"data": "ok"})

    executor = make_executor(handler)
    call = RetryableCall("GET", URL)
    response = await executor.execute(call)

    assert response.status_code == 200
    assert call.attempt == 2
    assert call.last_failure == FailureKind.SERVER_ERROR


@pytest.mark.asyncio
async def test_client_error_not_retried():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(404, json={"error": {"message": "File not found"}})

    sleep = Recorder()
    executor = make_executor(handler, sleep=sleep)

    with pytest.raises(ProviderRejected) as exc_info:
        await executor.execute(RetryableCall("GET", URL))

    assert len(attempts) == 1
    assert sleep.delays == []
    assert exc_info.value.status_code == 404
    assert "File not found" in exc_info.value.reason


@pytest.mark.asyncio
async def test_timeout_classified_and_retried():
    attempts = []

    def handler(request):
        attempts.append(request)
        raise httpx.ReadTimeout("timed out", request=request)

    executor = make_executor(handler, max_attempts=2)

    with pytest.raises(TransientNetworkError) as exc_info:
        await executor.execute(RetryableCall("GET", URL))

    assert len(attempts) == 2
    assert exc_info.value.kind == FailureKind.TIMEOUT
    assert "timed out" in exc_info.value.reason


@pytest.mark.asyncio
async def test_single_attempt_call_overrides_executor_ceiling():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(500)

    executor = make_executor(handler, max_attempts=3)

    with pytest.raises(TransientNetworkError):
        await executor.execute(RetryableCall("GET", URL, max_attempts=1))

    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_file_payload_resent_in_full_on_retry():
    bodies = []

    def handler(request):
        bodies.append(request.content)
        if len(bodies) == 1:
            return httpx.Response(500)
        return httpx.Response(200, json={"data": {"cid": "bafy"}})

    executor = make_executor(handler)
    stream = io.BytesIO(b"lesson-video-bytes")
    call = RetryableCall(
        "POST",
        "https://uploads.pinata.cloud/v3/files",
        kind=CallKind.UPLOAD,
        data={"network": "public"},
        files={"file": ("lesson.mp4", stream, "video/mp4")},
        payload_size=18,
    )

    await executor.execute(call)

    assert len(bodies) == 2
    assert b"lesson-video-bytes" in bodies[0]
    assert b"lesson-video-bytes" in bodies[1]


def test_upload_timeout_scales_with_payload():
    executor = make_executor(lambda request: httpx.Response(200))

    small = RetryableCall("POST", URL, kind=CallKind.UPLOAD, payload_size=1024)
    huge = RetryableCall("POST", URL, kind=CallKind.UPLOAD, payload_size=100_000_000)

    assert executor.timeout_for(small) == 120.0
    assert executor.timeout_for(huge) == pytest.approx(200.0)


def test_metadata_and_explicit_timeouts():
    executor = make_executor(lambda request: httpx.Response(200))

    assert executor.timeout_for(RetryableCall("GET", URL)) == 15.0
    assert executor.timeout_for(RetryableCall("HEAD", URL, kind=CallKind.PROBE, timeout=3.0)) == 3.0


@pytest.mark.parametrize(
    "response,expected",
    [
        (httpx.Response(400, json={"error": {"reason": "INVALID", "details": "bad cid"}}), "bad cid"),
        (httpx.Response(401, json={"error": "Unauthorized"}), "Unauthorized"),
        (httpx.Response(400, json={"message": "missing field"}), "missing field"),
        (httpx.Response(413, text="Payload Too Large"), "Payload Too Large"),
        (httpx.Response(500, text=""), "HTTP 500: Internal Server Error"),
    ],
)
def test_error_message_extraction(response, expected):
    assert error_message(response) == expected
