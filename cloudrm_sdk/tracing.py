"""Diagnostic scopes for externally observable calls.

:func:`diagnostic_scope` wraps a sync or async callable and logs a
``start`` record before the call, then either ``succeeded`` (with the
elapsed time) or ``failed`` (with the exception type). Exceptions are
re-raised unchanged.

Example:
    >>> @diagnostic_scope("VirtualMachineCollection.List")
    ... def first_page(page_size_hint=None):
    ...     ...
"""

from __future__ import annotations

import functools
import inspect
import time
from collections.abc import Callable
from typing import Any, TypeVar

from .logging_config import LoggerAdapter, get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class DiagnosticScope:
    """One start/success/failure record set for a named call."""

    def __init__(self, name: str, attributes: dict[str, Any] | None = None) -> None:
        self.name = name
        self._logger = LoggerAdapter(logger, {"scope": name, **(attributes or {})})
        self._started: float | None = None

    def start(self) -> None:
        self._started = time.perf_counter()
        self._logger.debug(f"{self.name} start", extra={"event": "start"})

    def _elapsed_ms(self) -> float:
        if self._started is None:
            return 0.0
        return round((time.perf_counter() - self._started) * 1000, 3)

    def succeeded(self) -> None:
        self._logger.debug(
            f"{self.name} succeeded",
            extra={"event": "succeeded", "duration_ms": self._elapsed_ms()},
        )

    def failed(self, error: BaseException) -> None:
        self._logger.warning(
            f"{self.name} failed: {error}",
            extra={
                "event": "failed",
                "duration_ms": self._elapsed_ms(),
                "error_type": type(error).__name__,
            },
        )

    def __enter__(self) -> "DiagnosticScope":
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if exc_val is None:
            self.succeeded()
        else:
            self.failed(exc_val)


def diagnostic_scope(name: str, **attributes: Any) -> Callable[[F], F]:
    """Decorate a function so each call runs inside a :class:`DiagnosticScope`.

    Coroutine functions get an async wrapper so the scope spans the awaited
    call, not just coroutine creation.

    Args:
        name: Scope name, conventionally ``"<Type>.<Method>"``.
        **attributes: Extra fields attached to every record.

    Returns:
        A decorator.
    """

    def decorator(func: F) -> F:
        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                with DiagnosticScope(name, attributes):
                    return await func(*args, **kwargs)

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with DiagnosticScope(name, attributes):
                return func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator
