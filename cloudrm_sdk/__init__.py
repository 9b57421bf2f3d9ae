"""cloudrm SDK - paging and long-running operation core for resource management.

This package provides the client-side building blocks that every
resource type of a cloud resource-management REST API needs: lazy paged
listings and long-running operation handles, each in a blocking and an
asyncio flavour, plus the httpx transport and generic collections built on
top of them.

Features:
    - Lazy item iteration over ``nextLink``-style paged listings
    - Resumable page iteration from a continuation token
    - Operation handles with poll-once and wait-until-complete access
    - Retry-After aware polling with backoff, timeout and cancellation
    - API key, bearer token and basic auth credentials
    - Structured (JSON) logging and diagnostic scopes

Example:
    Using a collection::

        from cloudrm_sdk import ResourceManagementClient, WaitUntil

        with ResourceManagementClient.from_env() as client:
            vms = client.collection(
                "/subscriptions/sub1/resourceGroups/rg1/providers/Example.Compute/virtualMachines"
            )
            for vm in vms.list():
                print(vm.name)
            vms.delete(WaitUntil.COMPLETED, "old-vm")

    Using the core directly::

        from cloudrm_sdk import Page, create_pageable

        pages = create_pageable(first_page, next_page)
        items = list(pages)

Attributes:
    __version__: Package version following semantic versioning.
"""

__version__ = "1.0.0"

# Import public API
from .client import AsyncResourceManagementClient, ResourceManagementClient
from .collection import AsyncResourceCollection, ResourceCollection, ResourceData
from .config import ClientConfig, Config, PollingConfig, load_config
from .credentials import BasicCredential, BearerTokenCredential, KeyCredential
from .exceptions import (
    AuthenticationError,
    AuthorizationError,
    CloudRMError,
    ConfigurationError,
    OperationCancelledError,
    OperationFailedError,
    OperationNotCompleteError,
    OperationTimeoutError,
    RateLimitError,
    RequestFailedError,
    ResourceNotFoundError,
    TransportError,
)
from .paging import AsyncItemPaged, ItemPaged, Page, create_async_pageable, create_pageable
from .polling import (
    AsyncOperationHandle,
    OperationHandle,
    OperationStatus,
    PollingPolicy,
    WaitUntil,
)
from .transport import AsyncHttpTransport, HttpTransport, raise_for_response

__all__ = [
    "__version__",
    "AsyncHttpTransport",
    "AsyncItemPaged",
    "AsyncOperationHandle",
    "AsyncResourceCollection",
    "AsyncResourceManagementClient",
    "AuthenticationError",
    "AuthorizationError",
    "BasicCredential",
    "BearerTokenCredential",
    "ClientConfig",
    "CloudRMError",
    "Config",
    "ConfigurationError",
    "HttpTransport",
    "ItemPaged",
    "KeyCredential",
    "OperationCancelledError",
    "OperationFailedError",
    "OperationHandle",
    "OperationNotCompleteError",
    "OperationStatus",
    "OperationTimeoutError",
    "Page",
    "PollingConfig",
    "PollingPolicy",
    "RateLimitError",
    "RequestFailedError",
    "ResourceCollection",
    "ResourceData",
    "ResourceManagementClient",
    "ResourceNotFoundError",
    "TransportError",
    "WaitUntil",
    "create_async_pageable",
    "create_pageable",
    "load_config",
    "raise_for_response",
]
