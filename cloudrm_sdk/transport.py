"""HTTP transports for the resource-management REST API.

This module provides sync and async transports built on httpx. They own
everything the paging and polling core treats as external: connection
management, authentication, ``api-version`` stamping and retries of
transient failures.

Example:
    >>> with HttpTransport(
    ...     "https://management.example.com",
    ...     credential=BearerTokenCredential(token),
    ...     api_version="2024-01-01",
    ... ) as transport:
    ...     response = transport.send("GET", "/subscriptions/sub1/resourceGroups")
    ...     raise_for_response(response)

Note:
    Transports return responses of every status code unchanged, except 429
    responses that are retried while attempts remain. Classifying a
    response into an error is the caller's job, via :func:`raise_for_response`.
"""

from __future__ import annotations

import asyncio
import math
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from .credentials import Credential
from .exceptions import (
    AuthenticationError,
    AuthorizationError,
    RateLimitError,
    RequestFailedError,
    ResourceNotFoundError,
    TransportError,
)
from .logging_config import LoggerAdapter, get_logger

logger = get_logger(__name__)

API_VERSION_PARAM = "api-version"

_RETRY_AFTER_MS_HEADERS = ("retry-after-ms", "x-ms-retry-after-ms")


def parse_retry_after(headers: httpx.Headers | dict[str, str]) -> float | None:
    """Read a retry hint from response headers.

    ``retry-after-ms`` and ``x-ms-retry-after-ms`` take precedence over
    ``Retry-After``, which may be either seconds or an HTTP date.

    Args:
        headers: Response headers.

    Returns:
        Delay in seconds, or None when no usable hint is present.
    """
    headers = httpx.Headers(headers)

    for name in _RETRY_AFTER_MS_HEADERS:
        value = headers.get(name)
        if value:
            try:
                delay = float(value) / 1000.0
            except ValueError:
                continue
            # "nan" and "inf" parse as floats but are not usable delays.
            if math.isfinite(delay):
                return max(delay, 0.0)

    value = headers.get("retry-after")
    if not value:
        return None
    try:
        delay = float(value)
    except ValueError:
        pass
    else:
        return max(delay, 0.0) if math.isfinite(delay) else None
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max((retry_at - datetime.now(timezone.utc)).total_seconds(), 0.0)


def _error_message(response: httpx.Response) -> tuple[str, str | None]:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}", None

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return error.get("message") or str(error), error.get("code")
        errors = body.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            return errors[0].get("message", str(body)), errors[0].get("code")
        if body.get("message"):
            return str(body["message"]), body.get("code")
    return str(body), None


def raise_for_response(response: httpx.Response) -> httpx.Response:
    """Raise the matching :class:`RequestFailedError` for error statuses.

    Args:
        response: Response returned by a transport.

    Returns:
        The same response when its status is below 400.

    Raises:
        AuthenticationError: On 401.
        AuthorizationError: On 403.
        ResourceNotFoundError: On 404.
        RateLimitError: On 429.
        RequestFailedError: On any other status >= 400.
    """
    status = response.status_code
    if status < 400:
        return response

    message, code = _error_message(response)
    kwargs: dict[str, Any] = {
        "status_code": status,
        "error_code": code,
        "response_body": response.text,
        "response": response,
    }

    if status == 401:
        raise AuthenticationError(f"Authentication failed: {message}", **kwargs)
    if status == 403:
        raise AuthorizationError(f"Access denied: {message}", **kwargs)
    if status == 404:
        raise ResourceNotFoundError(f"Resource not found: {message}", **kwargs)
    if status == 429:
        raise RateLimitError(
            f"Rate limit exceeded: {message}",
            retry_after=parse_retry_after(response.headers),
            **kwargs,
        )
    raise RequestFailedError(message, **kwargs)


class _TransportBase:
    """Settings and request building shared by both transports."""

    def __init__(
        self,
        endpoint: str,
        credential: Credential | None = None,
        api_version: str | None = None,
        tls_verify: bool = True,
        timeout: float = 30.0,
        max_retries: int = 3,
    ) -> None:
        """Initialize the transport.

        Args:
            endpoint: Service base URL (e.g., "https://management.example.com").
            credential: Credential applied to every request.
            api_version: ``api-version`` query value added to requests that
                do not already carry one.
            tls_verify: Whether to verify TLS certificates.
            timeout: Request timeout in seconds.
            max_retries: Maximum number of retry attempts for transient errors.

        Raises:
            ValueError: If endpoint is empty.
        """
        if not endpoint:
            raise ValueError("endpoint is required")

        self.endpoint = endpoint.rstrip("/")
        self.credential = credential
        self.api_version = api_version
        self.tls_verify = tls_verify
        self.timeout = timeout
        self.max_retries = max_retries

        self._logger = LoggerAdapter(logger, {"endpoint": self.endpoint})

    def _client_kwargs(self) -> dict[str, Any]:
        return {
            "base_url": self.endpoint,
            "verify": self.tls_verify,
            "timeout": self.timeout,
            "follow_redirects": True,
            "headers": {
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        }

    def _build_params(self, url: str, params: dict[str, Any] | None) -> dict[str, Any] | None:
        # Next links and operation locations usually embed api-version already.
        if self.api_version is None or API_VERSION_PARAM in httpx.URL(url).params:
            return params
        merged = dict(params or {})
        merged.setdefault(API_VERSION_PARAM, self.api_version)
        return merged

    def _build_headers(self, headers: dict[str, str] | None) -> dict[str, str]:
        merged = dict(headers or {})
        if self.credential is not None:
            self.credential.apply(merged)
        return merged

    @staticmethod
    def _backoff(attempt: int) -> float:
        return (2**attempt) * 0.5

    def _rate_limit_delay(self, response: httpx.Response, attempt: int) -> float | None:
        """Delay before retrying a 429, or None when it should be returned."""
        if response.status_code != 429 or attempt >= self.max_retries:
            return None
        retry_after = parse_retry_after(response.headers)
        return retry_after if retry_after is not None else self._backoff(attempt)


class HttpTransport(_TransportBase):
    """Blocking transport backed by :class:`httpx.Client`."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        # HTTP client (created lazily)
        self.client: httpx.Client | None = None

    def _ensure_client(self) -> httpx.Client:
        if self.client is None:
            self.client = httpx.Client(**self._client_kwargs())
        return self.client

    def send(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send one request, retrying transient failures.

        Args:
            method: HTTP method.
            url: Path relative to the endpoint, or an absolute URL.
            params: Query parameters.
            body: JSON-serializable request body.
            headers: Extra request headers.

        Returns:
            The HTTP response, whatever its status.

        Raises:
            TransportError: If the request fails after all retries.
        """
        client = self._ensure_client()
        params = self._build_params(url, params)

        self._logger.debug(
            f"Sending {method.upper()} {url}",
            extra={"params": params, "has_body": body is not None},
        )

        for attempt in range(self.max_retries + 1):
            try:
                response = client.request(
                    method.upper(),
                    url,
                    params=params,
                    json=body,
                    headers=self._build_headers(headers),
                )
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                if attempt >= self.max_retries:
                    raise TransportError(self.endpoint, e) from e
                wait_time = self._backoff(attempt)
                self._logger.warning(
                    f"Request failed, retrying in {wait_time}s (attempt {attempt + 1}/{self.max_retries})",
                    extra={"error": str(e)},
                )
                time.sleep(wait_time)
                continue

            delay = self._rate_limit_delay(response, attempt)
            if delay is None:
                self._logger.debug(
                    "Response received",
                    extra={"status_code": response.status_code},
                )
                return response
            self._logger.warning(f"Rate limited, waiting {delay}s")
            time.sleep(delay)

        # Should not reach here, but just in case
        raise TransportError(self.endpoint)

    def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self.client:
            self.client.close()
            self.client = None
            self._logger.debug("HTTP client closed")

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


class AsyncHttpTransport(_TransportBase):
    """Suspending transport backed by :class:`httpx.AsyncClient`."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        # HTTP client (created lazily)
        self.client: httpx.AsyncClient | None = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self.client is None:
            self.client = httpx.AsyncClient(**self._client_kwargs())
        return self.client

    async def send(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Async counterpart of :meth:`HttpTransport.send`."""
        client = await self._ensure_client()
        params = self._build_params(url, params)

        self._logger.debug(
            f"Sending {method.upper()} {url}",
            extra={"params": params, "has_body": body is not None},
        )

        for attempt in range(self.max_retries + 1):
            try:
                response = await client.request(
                    method.upper(),
                    url,
                    params=params,
                    json=body,
                    headers=self._build_headers(headers),
                )
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                if attempt >= self.max_retries:
                    raise TransportError(self.endpoint, e) from e
                wait_time = self._backoff(attempt)
                self._logger.warning(
                    f"Request failed, retrying in {wait_time}s (attempt {attempt + 1}/{self.max_retries})",
                    extra={"error": str(e)},
                )
                await asyncio.sleep(wait_time)
                continue

            delay = self._rate_limit_delay(response, attempt)
            if delay is None:
                self._logger.debug(
                    "Response received",
                    extra={"status_code": response.status_code},
                )
                return response
            self._logger.warning(f"Rate limited, waiting {delay}s")
            await asyncio.sleep(delay)

        raise TransportError(self.endpoint)

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self.client:
            await self.client.aclose()
            self.client = None
            self._logger.debug("HTTP client closed")

    async def __aenter__(self) -> "AsyncHttpTransport":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
