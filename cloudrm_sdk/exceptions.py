"""Exception hierarchy for the cloudrm SDK.

Errors fall into four families that callers are expected to tell apart:

- :class:`TransportError`: the request never produced a response
  (timeout, connection failure).
- :class:`RequestFailedError` and subclasses: the service answered with a
  non-success status. The raw body and response are kept for diagnostics.
- :class:`OperationFailedError`: a long-running operation finished, but the
  remote work failed.
- :class:`OperationCancelledError`: the caller aborted a wait loop.

Example:
    >>> try:
    ...     handle.wait_until_complete().result()
    ... except OperationFailedError as e:
    ...     print(e.error)
    ... except RequestFailedError as e:
    ...     print(e.status_code, e.response_body)
"""

from __future__ import annotations

from typing import Any

import httpx


class CloudRMError(Exception):
    """Base exception for all SDK errors.

    Attributes:
        message: Human-readable error message.
        details: Additional context for logging and debugging.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for structured logs."""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(CloudRMError):
    """Raised when configuration is missing or invalid."""


class TransportError(CloudRMError):
    """Raised when a request could not be completed at the network level.

    Attributes:
        endpoint: Endpoint the request was sent to.
        original_error: The underlying httpx exception.
    """

    def __init__(self, endpoint: str, original_error: Exception | None = None) -> None:
        self.endpoint = endpoint
        self.original_error = original_error
        reason = str(original_error) if original_error else "unknown error"
        super().__init__(
            f"Failed to reach {endpoint}: {reason}",
            details={"endpoint": endpoint, "reason": reason},
        )


class RequestFailedError(CloudRMError):
    """Raised when the service returns a non-success status code.

    Attributes:
        status_code: HTTP status code of the response.
        error_code: Service error code, when the body carried one.
        response_body: Raw response text.
        response: The raw httpx response, if available.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
        response_body: str | None = None,
        response: httpx.Response | None = None,
    ) -> None:
        self.status_code = status_code
        self.error_code = error_code
        self.response_body = response_body
        self.response = response
        super().__init__(
            message,
            details={"status_code": status_code, "error_code": error_code},
        )


class AuthenticationError(RequestFailedError):
    """Raised on HTTP 401."""


class AuthorizationError(RequestFailedError):
    """Raised on HTTP 403."""


class ResourceNotFoundError(RequestFailedError):
    """Raised on HTTP 404."""


class RateLimitError(RequestFailedError):
    """Raised on HTTP 429.

    Attributes:
        retry_after: Seconds the service asked us to wait, if it said.
    """

    def __init__(self, message: str = "Rate limit exceeded", retry_after: float | None = None, **kwargs: Any) -> None:
        self.retry_after = retry_after
        kwargs.setdefault("status_code", 429)
        super().__init__(message, **kwargs)
        self.details["retry_after"] = retry_after


class OperationError(CloudRMError):
    """Base class for long-running operation errors.

    Attributes:
        operation_id: Operation location of the handle that raised.
    """

    def __init__(self, message: str, operation_id: str | None = None) -> None:
        self.operation_id = operation_id
        super().__init__(message, details={"operation_id": operation_id})


class OperationFailedError(OperationError):
    """Raised when the remote operation completed with a failure status.

    Attributes:
        error: Error description reported by the service.
    """

    def __init__(self, operation_id: str | None, error: Any = None) -> None:
        self.error = error
        super().__init__(f"Operation failed: {error}", operation_id=operation_id)


class OperationCancelledError(OperationError):
    """Raised when the caller cancels a wait loop.

    The remote operation keeps running; only local waiting stops.
    """

    def __init__(self, operation_id: str | None = None) -> None:
        super().__init__("Waiting for operation was cancelled", operation_id=operation_id)


class OperationTimeoutError(OperationError):
    """Raised when a polling policy's overall timeout elapses."""

    def __init__(self, operation_id: str | None, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(
            f"Operation did not complete within {timeout}s",
            operation_id=operation_id,
        )


class OperationNotCompleteError(OperationError):
    """Raised when a result is requested before the operation finished."""

    def __init__(self, operation_id: str | None, status: str) -> None:
        self.status = status
        super().__init__(
            f"Operation has not completed (status: {status})",
            operation_id=operation_id,
        )
