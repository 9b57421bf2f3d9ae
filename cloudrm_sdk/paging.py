"""Lazy iteration over paged listings.

A paged listing is a two-phase protocol: one call fetches the first page,
and each later call fetches the next page using the continuation token of
the page before it. The listing ends with the first page that carries no
token.

:class:`ItemPaged` and :class:`AsyncItemPaged` expose that protocol as a
plain ``for`` / ``async for`` over items. The traversal rules live in
:class:`_PageCursor`, so both flavours share one implementation and differ
only in whether a fetch is called or awaited.

Example:
    >>> def first_page(page_size_hint=None):
    ...     response = raise_for_response(transport.send("GET", "/things"))
    ...     body = response.json()
    ...     return Page.from_values(body["value"], body.get("nextLink"), response)
    ...
    >>> def next_page(next_link, page_size_hint=None):
    ...     response = raise_for_response(transport.send("GET", next_link))
    ...     body = response.json()
    ...     return Page.from_values(body["value"], body.get("nextLink"), response)
    ...
    >>> for thing in create_pageable(first_page, next_page):
    ...     print(thing["name"])

Note:
    Nothing is cached. Every new iteration starts again from the first page
    and re-issues every request.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import httpx

from .logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

FirstPageFunc = Callable[[int | None], "Page[T]"]
NextPageFunc = Callable[[str, int | None], "Page[T]"]
AsyncFirstPageFunc = Callable[[int | None], Awaitable["Page[T]"]]
AsyncNextPageFunc = Callable[[str, int | None], Awaitable["Page[T]"]]


@dataclass
class Page(Generic[T]):
    """One batch of results plus the token for the next batch."""

    items: list[T]
    continuation_token: str | None = None
    raw_response: httpx.Response | None = field(default=None, repr=False, compare=False)

    @classmethod
    def from_values(
        cls,
        values: Iterable[T],
        continuation_token: str | None = None,
        raw_response: httpx.Response | None = None,
    ) -> "Page[T]":
        # Services send "" or null for the last page; both mean no more pages.
        return cls(list(values), continuation_token or None, raw_response)

    @property
    def has_more(self) -> bool:
        return self.continuation_token is not None

    def __len__(self) -> int:
        return len(self.items)


class _PageCursor:
    """Traversal state for a single pass over a paged listing.

    The cursor decides which fetch function to call next and what to do with
    the page it returns. It never performs I/O itself: :meth:`fetch` returns
    whatever the chosen function returns, a page or an awaitable of one.
    """

    def __init__(
        self,
        first_page: Callable[..., Any],
        next_page: Callable[..., Any] | None,
        continuation_token: str | None = None,
        page_size_hint: int | None = None,
    ) -> None:
        if continuation_token is not None and next_page is None:
            raise ValueError("Resuming from a continuation token requires a next-page function")
        self._first_page = first_page
        self._next_page = next_page
        self._page_size_hint = page_size_hint
        self._token = continuation_token
        self._started = continuation_token is not None
        self.pages_fetched = 0
        self.done = False

    def fetch(self) -> Any:
        if self.done:
            raise RuntimeError("Listing is exhausted")
        if not self._started:
            return self._first_page(self._page_size_hint)
        return self._next_page(self._token, self._page_size_hint)  # type: ignore[misc]

    def accept(self, page: Any) -> Page[Any]:
        if not isinstance(page, Page):
            raise TypeError(f"Page function must return a Page, got {type(page).__name__}")

        self._started = True
        self.pages_fetched += 1
        self._token = page.continuation_token

        # A single-call listing has no next-page function to follow tokens with.
        if self._token is None or self._next_page is None:
            self.done = True

        logger.debug(
            "Fetched page",
            extra={
                "page_number": self.pages_fetched,
                "item_count": len(page.items),
                "has_more": not self.done,
            },
        )
        return page


class ItemPaged(Generic[T]):
    """Blocking, lazy sequence of items over a paged listing.

    Args:
        first_page: Called with the page size hint to fetch the first page.
        next_page: Called with a continuation token and the page size hint
            to fetch each later page.
        page_size_hint: Passed through to the fetch functions.
    """

    def __init__(
        self,
        first_page: FirstPageFunc,
        next_page: NextPageFunc | None = None,
        page_size_hint: int | None = None,
    ) -> None:
        self._first_page = first_page
        self._next_page = next_page
        self._page_size_hint = page_size_hint

    def by_page(
        self,
        continuation_token: str | None = None,
        page_size_hint: int | None = None,
    ) -> Iterator[Page[T]]:
        """Iterate over whole pages.

        Args:
            continuation_token: Resume from this token instead of the first
                page.
            page_size_hint: Overrides the hint given at construction.

        Yields:
            Pages in server order.
        """
        cursor = _PageCursor(
            self._first_page,
            self._next_page,
            continuation_token,
            page_size_hint if page_size_hint is not None else self._page_size_hint,
        )
        while not cursor.done:
            yield cursor.accept(cursor.fetch())

    def __iter__(self) -> Iterator[T]:
        for page in self.by_page():
            yield from page.items

    def __repr__(self) -> str:
        return f"<ItemPaged first_page={getattr(self._first_page, '__name__', self._first_page)!r}>"


class AsyncItemPaged(Generic[T]):
    """Suspending counterpart of :class:`ItemPaged`.

    Pages are awaited strictly one after another; nothing is prefetched.
    """

    def __init__(
        self,
        first_page: AsyncFirstPageFunc,
        next_page: AsyncNextPageFunc | None = None,
        page_size_hint: int | None = None,
    ) -> None:
        self._first_page = first_page
        self._next_page = next_page
        self._page_size_hint = page_size_hint

    async def by_page(
        self,
        continuation_token: str | None = None,
        page_size_hint: int | None = None,
    ) -> AsyncIterator[Page[T]]:
        """Async counterpart of :meth:`ItemPaged.by_page`."""
        cursor = _PageCursor(
            self._first_page,
            self._next_page,
            continuation_token,
            page_size_hint if page_size_hint is not None else self._page_size_hint,
        )
        while not cursor.done:
            yield cursor.accept(await cursor.fetch())

    async def __aiter__(self) -> AsyncIterator[T]:
        async for page in self.by_page():
            for item in page.items:
                yield item

    def __repr__(self) -> str:
        return f"<AsyncItemPaged first_page={getattr(self._first_page, '__name__', self._first_page)!r}>"


def create_pageable(
    first_page: FirstPageFunc,
    next_page: NextPageFunc | None = None,
    page_size_hint: int | None = None,
) -> ItemPaged[Any]:
    """Build an :class:`ItemPaged` from a first-page and a next-page function."""
    return ItemPaged(first_page, next_page, page_size_hint)


def create_async_pageable(
    first_page: AsyncFirstPageFunc,
    next_page: AsyncNextPageFunc | None = None,
    page_size_hint: int | None = None,
) -> AsyncItemPaged[Any]:
    """Build an :class:`AsyncItemPaged` from coroutine page functions."""
    return AsyncItemPaged(first_page, next_page, page_size_hint)
