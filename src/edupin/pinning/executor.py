"""Outbound request execution with timeout, retry and exponential backoff.

Every network call the pinning client makes goes through
:class:`RequestExecutor`. Responses are classified into three outcomes:

* success (2xx/3xx): returned to the caller
* not retryable (4xx): raised immediately as :class:`ProviderRejected`
* retryable (timeouts, connection failures, 5xx): retried with
  ``delay = 2 ** attempt * base_delay`` and raised as
  :class:`TransientNetworkError` once the attempts are exhausted
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from edupin.core.config import Settings
from edupin.pinning.exceptions import (
    FailureKind,
    ProviderRejected,
    TransientNetworkError,
)

logger = logging.getLogger(__name__)

_STATUS_HINTS = {
    400: "Check the request parameters",
    401: "Check the API key (PINATA_JWT)",
    403: "The API key lacks permission or the feature requires a paid plan",
    404: "The referenced object does not exist",
    413: "Reduce the file size",
}


class CallKind(str, Enum):
    """Outbound call categories; uploads get size-scaled timeouts."""

    UPLOAD = "upload"
    METADATA = "metadata"
    PROBE = "probe"


@dataclass
class RetryableCall:
    """One outbound request and the state of its attempts."""

    method: str
    url: str
    kind: CallKind = CallKind.METADATA
    params: Optional[Dict[str, Any]] = None
    json: Any = None
    data: Optional[Dict[str, Any]] = None
    files: Optional[Dict[str, Any]] = None
    headers: Dict[str, str] = field(default_factory=dict)
    payload_size: int = 0
    timeout: Optional[float] = None  # seconds; None uses the executor default
    max_attempts: Optional[int] = None  # None uses the executor default
    attempt: int = 0
    last_failure: Optional[FailureKind] = None

    def rewind(self) -> None:
        """Seek file payloads back to the start before a new attempt."""
        for value in (self.files or {}).values():
            fileobj = value[1] if isinstance(value, tuple) else value
            if hasattr(fileobj, "seek"):
                fileobj.seek(0)


def error_message(response: httpx.Response) -> str:
    """Extract the provider's error message from a failed response."""
    try:
        body = response.json()
    except ValueError:
        body = response.text

    message = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            message = error.get("message") or error.get("details") or str(error)
        elif error:
            message = str(error)
        else:
            message = body.get("message") or body.get("details")
    elif body:
        message = str(body)

    return message or f"HTTP {response.status_code}: {response.reason_phrase}"


def classify_response(response: httpx.Response) -> None:
    """Raise the matching error for a non-success response."""
    status = response.status_code
    if status < 400:
        return
    message = error_message(response)
    if status >= 500:
        raise TransientNetworkError(
            f"Provider error ({status}): {message}",
            FailureKind.SERVER_ERROR,
            status_code=status,
        )
    raise ProviderRejected(
        f"Request rejected ({status}): {message}",
        status_code=status,
        hint=_STATUS_HINTS.get(status),
    )


class RequestExecutor:
    """Run outbound calls with a timeout per attempt and bounded retries."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        base_timeout: float = 120.0,
        timeout_scale_per_byte: float = 0.000002,
        metadata_timeout: float = 15.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the executor.

        Args:
            client: Shared httpx client
            max_attempts: Attempt ceiling for retryable failures
            base_delay: Backoff base in seconds
            base_timeout: Minimum upload timeout in seconds
            timeout_scale_per_byte: Upload timeout seconds per payload byte
            metadata_timeout: Timeout in seconds for non-upload calls
            sleep: Awaitable sleep used between attempts
        """
        self.client = client
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.base_timeout = base_timeout
        self.timeout_scale_per_byte = timeout_scale_per_byte
        self.metadata_timeout = metadata_timeout
        self._sleep = sleep

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings: Settings) -> "RequestExecutor":
        return cls(
            client,
            max_attempts=settings.MAX_RETRY_ATTEMPTS,
            base_delay=settings.retry_base_delay_seconds,
            base_timeout=settings.base_timeout_seconds,
            timeout_scale_per_byte=settings.timeout_scale_seconds_per_byte,
            metadata_timeout=settings.metadata_timeout_seconds,
        )

    def timeout_for(self, call: RetryableCall) -> float:
        """Per-attempt timeout: size-scaled for uploads, fixed otherwise."""
        if call.timeout is not None:
            return call.timeout
        if call.kind is CallKind.UPLOAD:
            return max(self.base_timeout, call.payload_size * self.timeout_scale_per_byte)
        return self.metadata_timeout

    async def execute(self, call: RetryableCall) -> httpx.Response:
        """Execute ``call``, retrying transient failures.

        Returns:
            The successful httpx response

        Raises:
            ProviderRejected: On a 4xx response (never retried)
            TransientNetworkError: The last failure once attempts are exhausted
        """
        max_attempts = call.max_attempts or self.max_attempts

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=self.base_delay, exp_base=2),
            retry=retry_if_exception_type(TransientNetworkError),
            before_sleep=self._log_backoff(call, max_attempts),
            sleep=self._sleep,
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                return await self._attempt(call, max_attempts)

        raise RuntimeError("unreachable")  # pragma: no cover

    async def _attempt(self, call: RetryableCall, max_attempts: int) -> httpx.Response:
        call.attempt += 1
        if call.attempt > 1:
            call.rewind()
        timeout = self.timeout_for(call)

        logger.debug(
            f"{call.method} {call.url} (attempt {call.attempt}/{max_attempts})",
            extra={
                "call_kind": call.kind.value,
                "attempt": call.attempt,
                "max_attempts": max_attempts,
                "timeout_seconds": timeout,
                "previous_failure": call.last_failure.value if call.last_failure else None,
            },
        )

        try:
            response = await self.client.request(
                call.method,
                call.url,
                params=call.params,
                json=call.json,
                data=call.data,
                files=call.files,
                headers=call.headers or None,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            call.last_failure = FailureKind.TIMEOUT
            raise TransientNetworkError(
                f"Request to {call.url} timed out after {timeout:g}s",
                FailureKind.TIMEOUT,
            ) from e
        except httpx.TransportError as e:
            call.last_failure = FailureKind.NETWORK
            raise TransientNetworkError(
                f"Network request to {call.url} failed: {e}",
                FailureKind.NETWORK,
            ) from e

        try:
            classify_response(response)
        except TransientNetworkError:
            call.last_failure = FailureKind.SERVER_ERROR
            raise
        except ProviderRejected:
            call.last_failure = FailureKind.CLIENT_ERROR
            raise

        return response

    @staticmethod
    def _log_backoff(call: RetryableCall, max_attempts: int) -> Callable[[RetryCallState], None]:
        def _before_sleep(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            delay = retry_state.next_action.sleep if retry_state.next_action else 0
            logger.warning(
                f"Request attempt {retry_state.attempt_number}/{max_attempts} failed, "
                f"retrying in {delay:g}s",
                extra={
                    "url": call.url,
                    "call_kind": call.kind.value,
                    "attempt": retry_state.attempt_number,
                    "max_attempts": max_attempts,
                    "error": str(error),
                    "error_type": getattr(error, "kind", None),
                    "status_code": getattr(error, "status_code", None),
                },
            )

        return _before_sleep


def response_body(response: httpx.Response) -> Any:
    """Decode a response as JSON when it says so, else as text."""
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return response.json()
        except ValueError:
            logger.warning("Response claimed JSON but could not be parsed", extra={"url": str(response.url)})
    return response.text
