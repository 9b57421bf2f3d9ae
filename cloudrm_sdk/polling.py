"""Long-running operation handles.

A long-running operation (LRO) starts with a request the service accepts
without finishing; the response points at an operation location that can be
polled until the work reaches a terminal state.

:class:`OperationHandle` (blocking) and :class:`AsyncOperationHandle`
(asyncio) track one such operation. The state machine, the interpretation of
status responses and the backoff arithmetic live in :class:`_OperationState`
and :class:`PollingPolicy`; the two handle classes only send requests and wait.

Example:
    >>> response = transport.send("PUT", "/things/thing1", body=payload)
    >>> handle = OperationHandle.start(transport, response)
    >>> handle.wait_until_complete()
    >>> if handle.status is OperationStatus.SUCCEEDED:
    ...     print(handle.result())

State machine::

    NotStarted -> Running -> Succeeded
                          \\-> Failed

Terminal states never change; polling a terminal handle is a no-op.
"""

from __future__ import annotations

import asyncio
import enum
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import httpx

from .config import PollingConfig
from .exceptions import (
    OperationCancelledError,
    OperationFailedError,
    OperationNotCompleteError,
    OperationTimeoutError,
)
from .logging_config import LoggerAdapter, get_logger
from .tracing import DiagnosticScope
from .transport import AsyncHttpTransport, HttpTransport, parse_retry_after, raise_for_response

logger = get_logger(__name__)

T = TypeVar("T")

Decoder = Callable[[httpx.Response], Any]

# Checked in order; the first header present wins.
OPERATION_LOCATION_HEADERS = ("operation-location", "azure-asyncoperation", "location")


class WaitUntil(str, enum.Enum):
    """When an LRO-starting call should return."""

    STARTED = "started"
    COMPLETED = "completed"


class OperationStatus(str, enum.Enum):
    """Last known status of a long-running operation."""

    NOT_STARTED = "NotStarted"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationStatus.SUCCEEDED, OperationStatus.FAILED)

    @classmethod
    def from_service(cls, value: str) -> "OperationStatus":
        """Map a service status string onto the four client states.

        Unknown values are treated as still running.
        """
        return _SERVICE_STATUSES.get(value.strip().lower(), cls.RUNNING)


_SERVICE_STATUSES = {
    "notstarted": OperationStatus.NOT_STARTED,
    "accepted": OperationStatus.NOT_STARTED,
    "created": OperationStatus.NOT_STARTED,
    "running": OperationStatus.RUNNING,
    "inprogress": OperationStatus.RUNNING,
    "creating": OperationStatus.RUNNING,
    "updating": OperationStatus.RUNNING,
    "deleting": OperationStatus.RUNNING,
    "succeeded": OperationStatus.SUCCEEDED,
    "failed": OperationStatus.FAILED,
    "canceled": OperationStatus.FAILED,
    "cancelled": OperationStatus.FAILED,
}


@dataclass
class PollingPolicy:
    """Delay between polls when the service gives no retry hint.

    The n-th wait (from 0) is ``min(initial_interval * multiplier**n,
    max_interval)``. A service ``Retry-After`` hint replaces it.

    Attributes:
        initial_interval: First delay in seconds.
        max_interval: Delay cap in seconds.
        multiplier: Growth factor per poll.
        timeout: Overall wait budget in seconds, or None for no limit.
    """

    initial_interval: float = 1.0
    max_interval: float = 30.0
    multiplier: float = 2.0
    timeout: float | None = None

    @classmethod
    def from_config(cls, config: PollingConfig) -> "PollingPolicy":
        return cls(
            initial_interval=config.interval,
            max_interval=config.max_interval,
            multiplier=config.multiplier,
            timeout=config.timeout,
        )

    def delay(self, attempt: int, retry_after: float | None = None) -> float:
        if retry_after is not None:
            return retry_after
        # Grow step by step so long waits never overflow the float power.
        delay = self.initial_interval
        for _ in range(attempt):
            if delay <= 0 or delay >= self.max_interval or self.multiplier <= 1:
                break
            delay *= self.multiplier
        return min(delay, self.max_interval)


def get_operation_location(response: httpx.Response) -> str | None:
    """Return the URL to poll for an initiating response, if it has one."""
    for header in OPERATION_LOCATION_HEADERS:
        value = response.headers.get(header)
        if value:
            return value
    return None


def _json_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def default_decoder(response: httpx.Response) -> Any:
    """Decode a terminal response into the operation's value.

    Status-monitor bodies (``{"status": ..., "result": ...}``) yield their
    ``result``; any other JSON body is the value itself.
    """
    body = _json_body(response)
    if isinstance(body, dict) and "status" in body and "result" in body:
        return body["result"]
    return body


def _reported_status(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    if isinstance(body.get("status"), str):
        return body["status"]
    properties = body.get("properties")
    if isinstance(properties, dict) and isinstance(properties.get("provisioningState"), str):
        return properties["provisioningState"]
    return None


class _OperationState:
    """Status, result and error of one operation, plus the transition rules."""

    def __init__(
        self,
        operation_location: str | None,
        decode: Decoder,
        final_url: str | None = None,
    ) -> None:
        self.operation_location = operation_location
        self.final_url = final_url
        self._decode = decode
        self.status = OperationStatus.NOT_STARTED
        self.result: Any = None
        self.has_value = False
        self.error: Any = None
        self.raw_response: httpx.Response | None = None
        self.retry_after: float | None = None
        self.polls = 0
        self.final_pending = False
        self._logger = LoggerAdapter(logger, {"operation": operation_location})

    def _set_status(self, status: OperationStatus) -> None:
        if self.status.is_terminal:
            return
        # A late "accepted" after "running" does not move the operation back.
        if status is OperationStatus.NOT_STARTED and self.status is OperationStatus.RUNNING:
            return
        if status is not self.status:
            self._logger.debug(
                "Operation status changed",
                extra={"from_status": self.status.value, "to_status": status.value},
            )
        self.status = status

    def begin(self, response: httpx.Response) -> None:
        """Take the initial status from the response that started the operation."""
        raise_for_response(response)
        self.raw_response = response
        self.retry_after = parse_retry_after(response.headers)

        body = _json_body(response)
        reported = _reported_status(body)

        if self.operation_location is None:
            initial = OperationStatus.from_service(reported) if reported is not None else None
            if initial is not None and not initial.is_terminal and self.final_url is not None:
                # No status monitor; the resource's own provisioningState is polled.
                self.operation_location = self.final_url
                self._logger = LoggerAdapter(logger, {"operation": self.operation_location})
            elif initial is OperationStatus.FAILED:
                self.fail(body)
                return
            else:
                # Nothing to poll: the service finished the work synchronously.
                self.succeed(response)
                return

        if reported is not None:
            status = OperationStatus.from_service(reported)
        elif response.status_code == 202:
            status = OperationStatus.NOT_STARTED
        else:
            status = OperationStatus.RUNNING

        if status is OperationStatus.SUCCEEDED:
            self.succeed(response)
        elif status is OperationStatus.FAILED:
            self.fail(body)
        else:
            self._set_status(status)

    def update(self, response: httpx.Response) -> OperationStatus:
        """Apply one poll response.

        Raises:
            RequestFailedError: If the poll request itself failed.
        """
        raise_for_response(response)
        self.polls += 1
        self.raw_response = response
        self.retry_after = parse_retry_after(response.headers)

        body = _json_body(response)
        reported = _reported_status(body)
        if reported is not None:
            status = OperationStatus.from_service(reported)
        elif response.status_code == 202:
            status = OperationStatus.RUNNING
        else:
            # Location-style polling: anything but 202 means the work is done.
            status = OperationStatus.SUCCEEDED

        if status is OperationStatus.FAILED:
            self.fail(body)
        elif status is OperationStatus.SUCCEEDED:
            if self.final_url is None or self.final_url == self.operation_location:
                self.succeed(response)
            else:
                # Result is fetched from final_url; stay non-terminal until then.
                self._set_status(OperationStatus.RUNNING)
                self.final_pending = True
                return self.status
        else:
            self._set_status(status)
        return self.status

    def succeed(self, response: httpx.Response) -> None:
        if self.status.is_terminal:
            return
        raise_for_response(response)
        self.raw_response = response
        self.final_pending = False
        self.result = self._decode(response)
        self.has_value = True
        self._set_status(OperationStatus.SUCCEEDED)
        self._logger.info("Operation succeeded", extra={"polls": self.polls})

    def fail(self, body: Any) -> None:
        if self.status.is_terminal:
            return
        if isinstance(body, dict) and body.get("error") is not None:
            self.error = body["error"]
        else:
            self.error = body
        self._set_status(OperationStatus.FAILED)
        self._logger.warning("Operation failed", extra={"polls": self.polls, "error": self.error})

    def next_delay(self, policy: PollingPolicy, attempt: int, started_at: float) -> float:
        """Delay before the next poll.

        Raises:
            OperationTimeoutError: If waiting would exceed the policy timeout.
        """
        delay = policy.delay(attempt, self.retry_after)
        if policy.timeout is not None and time.monotonic() - started_at + delay > policy.timeout:
            raise OperationTimeoutError(self.operation_location, policy.timeout)
        return delay

    def value(self) -> Any:
        if self.status is OperationStatus.FAILED:
            raise OperationFailedError(self.operation_location, self.error)
        if not self.status.is_terminal:
            raise OperationNotCompleteError(self.operation_location, self.status.value)
        return self.result


class _HandleBase(Generic[T]):
    """Read-only view shared by the sync and async handles."""

    _state: _OperationState
    _policy: PollingPolicy

    @property
    def id(self) -> str | None:
        """Operation location; pass it to ``from_operation_location`` to resume."""
        return self._state.operation_location

    @property
    def status(self) -> OperationStatus:
        return self._state.status

    @property
    def error(self) -> Any:
        return self._state.error

    @property
    def has_value(self) -> bool:
        return self._state.has_value

    @property
    def raw_response(self) -> httpx.Response | None:
        return self._state.raw_response

    @property
    def poll_count(self) -> int:
        return self._state.polls

    def done(self) -> bool:
        return self._state.status.is_terminal

    def result(self) -> T:
        """Return the operation's value.

        Raises:
            OperationFailedError: If the operation failed.
            OperationNotCompleteError: If it has not reached a terminal state.
        """
        return self._state.value()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id!r} status={self.status.value}>"


class OperationHandle(_HandleBase[T]):
    """Blocking handle for a long-running operation.

    Use :meth:`start`, :meth:`completed` or :meth:`from_operation_location`
    rather than the constructor.
    """

    def __init__(
        self,
        transport: HttpTransport | None,
        state: _OperationState,
        policy: PollingPolicy | None = None,
    ) -> None:
        self._transport = transport
        self._state = state
        self._policy = policy or PollingPolicy()

    @classmethod
    def start(
        cls,
        transport: HttpTransport,
        initiating_response: httpx.Response,
        decode: Decoder = default_decoder,
        policy: PollingPolicy | None = None,
        final_url: str | None = None,
    ) -> "OperationHandle[Any]":
        """Create a handle from the response of the initiating request.

        Args:
            transport: Transport used for status polls.
            initiating_response: Response of the request that started the work.
            decode: Turns the terminal response into the operation's value.
            policy: Default polling policy for :meth:`wait_until_complete`.
            final_url: Fetch the value from this URL once the operation
                succeeds, instead of decoding the status response.

        Raises:
            RequestFailedError: If the initiating response is an error.
        """
        state = _OperationState(get_operation_location(initiating_response), decode, final_url)
        state.begin(initiating_response)
        return cls(transport, state, policy)

    @classmethod
    def completed(cls, value: Any, raw_response: httpx.Response | None = None) -> "OperationHandle[Any]":
        """Wrap a value that was available without polling."""
        state = _OperationState(None, default_decoder)
        state.result = value
        state.has_value = True
        state.raw_response = raw_response
        state.status = OperationStatus.SUCCEEDED
        return cls(None, state)

    @classmethod
    def from_operation_location(
        cls,
        transport: HttpTransport,
        operation_location: str,
        decode: Decoder = default_decoder,
        policy: PollingPolicy | None = None,
        final_url: str | None = None,
    ) -> "OperationHandle[Any]":
        """Resume tracking an operation from its :attr:`id`."""
        if not operation_location:
            raise ValueError("operation_location is required")
        state = _OperationState(operation_location, decode, final_url)
        state.status = OperationStatus.RUNNING
        return cls(transport, state, policy)

    def poll_once(self) -> OperationStatus:
        """Issue one status request and return the updated status.

        Returns the current status without a request if already terminal.

        Raises:
            RequestFailedError: If the status request fails.
            TransportError: If the status request cannot be sent.
        """
        if self.done():
            return self.status
        if self._transport is None or self.id is None:
            raise RuntimeError("Operation handle has no transport or operation location to poll")

        with DiagnosticScope("Operation.Poll", {"operation": self.id}):
            self._state.update(self._transport.send("GET", self.id))
            if self._state.final_pending:
                self._state.succeed(self._transport.send("GET", self._state.final_url))
        return self.status

    def wait_until_complete(
        self,
        policy: PollingPolicy | None = None,
        cancel: threading.Event | None = None,
    ) -> "OperationHandle[T]":
        """Poll until the operation reaches a terminal state.

        Operation failure does not raise here; check :attr:`status` or call
        :meth:`result`.

        Args:
            policy: Overrides the handle's default polling policy.
            cancel: Set this event to stop waiting. It is checked before each
                poll and interrupts the sleep between polls.

        Returns:
            This handle.

        Raises:
            OperationCancelledError: If ``cancel`` was set.
            OperationTimeoutError: If the policy timeout elapsed.
        """
        policy = policy or self._policy
        started_at = time.monotonic()
        attempt = 0

        while not self.done():
            if cancel is not None and cancel.is_set():
                raise OperationCancelledError(self.id)

            self.poll_once()
            if self.done():
                break

            delay = self._state.next_delay(policy, attempt, started_at)
            attempt += 1
            if cancel is not None:
                if cancel.wait(delay):
                    raise OperationCancelledError(self.id)
            else:
                time.sleep(delay)

        return self


class AsyncOperationHandle(_HandleBase[T]):
    """Asyncio handle for a long-running operation."""

    def __init__(
        self,
        transport: AsyncHttpTransport | None,
        state: _OperationState,
        policy: PollingPolicy | None = None,
    ) -> None:
        self._transport = transport
        self._state = state
        self._policy = policy or PollingPolicy()

    @classmethod
    def start(
        cls,
        transport: AsyncHttpTransport,
        initiating_response: httpx.Response,
        decode: Decoder = default_decoder,
        policy: PollingPolicy | None = None,
        final_url: str | None = None,
    ) -> "AsyncOperationHandle[Any]":
        """See :meth:`OperationHandle.start`."""
        state = _OperationState(get_operation_location(initiating_response), decode, final_url)
        state.begin(initiating_response)
        return cls(transport, state, policy)

    @classmethod
    def completed(cls, value: Any, raw_response: httpx.Response | None = None) -> "AsyncOperationHandle[Any]":
        state = _OperationState(None, default_decoder)
        state.result = value
        state.has_value = True
        state.raw_response = raw_response
        state.status = OperationStatus.SUCCEEDED
        return cls(None, state)

    @classmethod
    def from_operation_location(
        cls,
        transport: AsyncHttpTransport,
        operation_location: str,
        decode: Decoder = default_decoder,
        policy: PollingPolicy | None = None,
        final_url: str | None = None,
    ) -> "AsyncOperationHandle[Any]":
        if not operation_location:
            raise ValueError("operation_location is required")
        state = _OperationState(operation_location, decode, final_url)
        state.status = OperationStatus.RUNNING
        return cls(transport, state, policy)

    async def poll_once(self) -> OperationStatus:
        """Async counterpart of :meth:`OperationHandle.poll_once`."""
        if self.done():
            return self.status
        if self._transport is None or self.id is None:
            raise RuntimeError("Operation handle has no transport or operation location to poll")

        with DiagnosticScope("Operation.Poll", {"operation": self.id}):
            self._state.update(await self._transport.send("GET", self.id))
            if self._state.final_pending:
                self._state.succeed(await self._transport.send("GET", self._state.final_url))
        return self.status

    async def wait_until_complete(
        self,
        policy: PollingPolicy | None = None,
        cancel: asyncio.Event | None = None,
    ) -> "AsyncOperationHandle[T]":
        """Async counterpart of :meth:`OperationHandle.wait_until_complete`.

        Cancelling the awaiting task also stops the loop, with
        :class:`asyncio.CancelledError` as usual.
        """
        policy = policy or self._policy
        started_at = time.monotonic()
        attempt = 0

        while not self.done():
            if cancel is not None and cancel.is_set():
                raise OperationCancelledError(self.id)

            await self.poll_once()
            if self.done():
                break

            delay = self._state.next_delay(policy, attempt, started_at)
            attempt += 1
            if cancel is not None:
                try:
                    await asyncio.wait_for(cancel.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    continue
                raise OperationCancelledError(self.id)
            await asyncio.sleep(delay)

        return self
