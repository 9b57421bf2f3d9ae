"""Generic resource collections.

A collection is the set of child resources under one path, for example
``/subscriptions/{sub}/resourceGroups/{rg}/providers/Example.Compute/virtualMachines``.
Every resource type exposes the same operations (get, exists, list,
create_or_update, delete), so one class serves all of them. The item type
is a pydantic model; :class:`ResourceData` keeps unknown fields.

Listings follow the ``{"value": [...], "nextLink": "..."}`` envelope, and
mutating calls return operation handles.

Example:
    >>> machines = client.collection(
    ...     "/subscriptions/sub1/resourceGroups/rg1/providers/Example.Compute/virtualMachines"
    ... )
    >>> for vm in machines.list(top=50):
    ...     print(vm.name)
    >>> handle = machines.create_or_update(WaitUntil.COMPLETED, "vm1", {"location": "westus"})
    >>> print(handle.result().properties)
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, Field

from .exceptions import RequestFailedError
from .paging import AsyncItemPaged, ItemPaged, Page, create_async_pageable, create_pageable
from .polling import AsyncOperationHandle, OperationHandle, PollingPolicy, WaitUntil
from .tracing import DiagnosticScope, diagnostic_scope
from .transport import AsyncHttpTransport, HttpTransport, raise_for_response

ModelT = TypeVar("ModelT", bound=BaseModel)


class ResourceData(BaseModel):
    """Common envelope of a managed resource.

    Attributes:
        id: Fully qualified resource ID.
        name: Resource name.
        type: Resource type, e.g. ``Example.Compute/virtualMachines``.
        location: Region, for tracked resources.
        tags: Resource tags.
        properties: Type-specific properties.
    """

    id: str | None = None
    name: str | None = None
    type: str | None = None
    location: str | None = None
    tags: dict[str, str] = Field(default_factory=dict)
    properties: dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "allow"}


def _discard(response: httpx.Response) -> None:
    return None


class _CollectionBase(Generic[ModelT]):
    """Request building and decoding shared by both collection flavours."""

    def __init__(
        self,
        path: str,
        model: type[ModelT],
        name: str | None = None,
        polling_policy: PollingPolicy | None = None,
    ) -> None:
        if not path or not path.strip("/"):
            raise ValueError("path is required")
        self.path = "/" + path.strip("/")
        self.model = model
        self.name = name or self.path.rsplit("/", 1)[-1]
        self.polling_policy = polling_policy or PollingPolicy()

    def _scope(self, method: str) -> str:
        return f"{self.name}.{method}"

    def _item_url(self, resource_name: str) -> str:
        if not isinstance(resource_name, str) or not resource_name:
            raise ValueError("resource name must be a non-empty string")
        return f"{self.path}/{quote(resource_name, safe='')}"

    def _decode(self, response: httpx.Response) -> ModelT:
        return self.model.model_validate(response.json())

    def _to_page(self, response: httpx.Response) -> Page[ModelT]:
        raise_for_response(response)
        try:
            body = response.json()
        except ValueError:
            body = None
        values = body.get("value", []) if isinstance(body, dict) else None
        if not isinstance(values, list):
            raise RequestFailedError(
                "Listing response is not a {'value': [...]} object",
                status_code=response.status_code,
                response_body=response.text,
                response=response,
            )
        return Page.from_values(
            (self.model.model_validate(value) for value in values),
            body.get("nextLink"),
            response,
        )

    @staticmethod
    def _list_params(filter: str | None, top: int | None, page_size_hint: int | None) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if filter:
            params["$filter"] = filter
        if top is not None or page_size_hint is not None:
            params["$top"] = top if top is not None else page_size_hint
        return params

    @staticmethod
    def _body(data: BaseModel | dict[str, Any]) -> dict[str, Any]:
        if data is None:
            raise ValueError("data is required")
        if isinstance(data, BaseModel):
            return data.model_dump(mode="json", exclude_none=True)
        return dict(data)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} path={self.path!r}>"


class ResourceCollection(_CollectionBase[ModelT]):
    """Blocking collection of resources under one path."""

    def __init__(
        self,
        transport: HttpTransport,
        path: str,
        model: type[ModelT] = ResourceData,  # type: ignore[assignment]
        name: str | None = None,
        polling_policy: PollingPolicy | None = None,
    ) -> None:
        super().__init__(path, model, name, polling_policy)
        self._transport = transport

    def get(self, resource_name: str) -> ModelT:
        """Fetch one resource.

        Raises:
            ResourceNotFoundError: If it does not exist.
        """
        url = self._item_url(resource_name)
        with DiagnosticScope(self._scope("Get")):
            response = raise_for_response(self._transport.send("GET", url))
            return self._decode(response)

    def exists(self, resource_name: str) -> bool:
        """Return whether a resource exists; only 404 means it does not."""
        url = self._item_url(resource_name)
        with DiagnosticScope(self._scope("Exists")):
            response = self._transport.send("GET", url)
            if response.status_code == 404:
                return False
            raise_for_response(response)
            return True

    def list(self, filter: str | None = None, top: int | None = None) -> ItemPaged[ModelT]:
        """Lazily list the collection, following ``nextLink``.

        Args:
            filter: OData ``$filter`` expression.
            top: Maximum items per page (``$top``).
        """
        scope = self._scope("List")

        @diagnostic_scope(scope)
        def first_page(page_size_hint: int | None = None) -> Page[ModelT]:
            params = self._list_params(filter, top, page_size_hint)
            return self._to_page(self._transport.send("GET", self.path, params=params))

        @diagnostic_scope(scope)
        def next_page(next_link: str, page_size_hint: int | None = None) -> Page[ModelT]:
            return self._to_page(self._transport.send("GET", next_link))

        return create_pageable(first_page, next_page)

    def create_or_update(
        self,
        wait_until: WaitUntil,
        resource_name: str,
        data: BaseModel | dict[str, Any],
    ) -> OperationHandle[ModelT]:
        """PUT a resource and return a handle to the provisioning operation."""
        url = self._item_url(resource_name)
        body = self._body(data)
        with DiagnosticScope(self._scope("CreateOrUpdate")):
            response = self._transport.send("PUT", url, body=body)
            handle = OperationHandle.start(
                self._transport,
                response,
                decode=self._decode,
                policy=self.polling_policy,
                final_url=url,
            )
            if WaitUntil(wait_until) is WaitUntil.COMPLETED:
                handle.wait_until_complete()
            return handle

    def delete(self, wait_until: WaitUntil, resource_name: str) -> OperationHandle[None]:
        """DELETE a resource and return a handle to the deletion."""
        url = self._item_url(resource_name)
        with DiagnosticScope(self._scope("Delete")):
            response = self._transport.send("DELETE", url)
            handle = OperationHandle.start(
                self._transport,
                response,
                decode=_discard,
                policy=self.polling_policy,
            )
            if WaitUntil(wait_until) is WaitUntil.COMPLETED:
                handle.wait_until_complete()
            return handle


class AsyncResourceCollection(_CollectionBase[ModelT]):
    """Asyncio collection of resources under one path."""

    def __init__(
        self,
        transport: AsyncHttpTransport,
        path: str,
        model: type[ModelT] = ResourceData,  # type: ignore[assignment]
        name: str | None = None,
        polling_policy: PollingPolicy | None = None,
    ) -> None:
        super().__init__(path, model, name, polling_policy)
        self._transport = transport

    async def get(self, resource_name: str) -> ModelT:
        url = self._item_url(resource_name)
        with DiagnosticScope(self._scope("Get")):
            response = raise_for_response(await self._transport.send("GET", url))
            return self._decode(response)

    async def exists(self, resource_name: str) -> bool:
        url = self._item_url(resource_name)
        with DiagnosticScope(self._scope("Exists")):
            response = await self._transport.send("GET", url)
            if response.status_code == 404:
                return False
            raise_for_response(response)
            return True

    def list(self, filter: str | None = None, top: int | None = None) -> AsyncItemPaged[ModelT]:
        scope = self._scope("List")

        @diagnostic_scope(scope)
        async def first_page(page_size_hint: int | None = None) -> Page[ModelT]:
            params = self._list_params(filter, top, page_size_hint)
            return self._to_page(await self._transport.send("GET", self.path, params=params))

        @diagnostic_scope(scope)
        async def next_page(next_link: str, page_size_hint: int | None = None) -> Page[ModelT]:
            return self._to_page(await self._transport.send("GET", next_link))

        return create_async_pageable(first_page, next_page)

    async def create_or_update(
        self,
        wait_until: WaitUntil,
        resource_name: str,
        data: BaseModel | dict[str, Any],
    ) -> AsyncOperationHandle[ModelT]:
        url = self._item_url(resource_name)
        body = self._body(data)
        with DiagnosticScope(self._scope("CreateOrUpdate")):
            response = await self._transport.send("PUT", url, body=body)
            handle = AsyncOperationHandle.start(
                self._transport,
                response,
                decode=self._decode,
                policy=self.polling_policy,
                final_url=url,
            )
            if WaitUntil(wait_until) is WaitUntil.COMPLETED:
                await handle.wait_until_complete()
            return handle

    async def delete(self, wait_until: WaitUntil, resource_name: str) -> AsyncOperationHandle[None]:
        url = self._item_url(resource_name)
        with DiagnosticScope(self._scope("Delete")):
            response = await self._transport.send("DELETE", url)
            handle = AsyncOperationHandle.start(
                self._transport,
                response,
                decode=_discard,
                policy=self.polling_policy,
            )
            if WaitUntil(wait_until) is WaitUntil.COMPLETED:
                await handle.wait_until_complete()
            return handle
