"""Top-level clients.

A client owns one transport built from :class:`~cloudrm_sdk.config.ClientConfig`
and hands out resource collections that share it.

Example:
    >>> with ResourceManagementClient.from_env() as client:
    ...     groups = client.collection("/subscriptions/sub1/resourceGroups")
    ...     print(groups.exists("rg1"))

    Async::

        async with AsyncResourceManagementClient(ClientConfig(endpoint=url)) as client:
            async for group in client.collection("/subscriptions/sub1/resourceGroups").list():
                print(group.name)
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from .collection import AsyncResourceCollection, ResourceCollection, ResourceData
from .config import ClientConfig, Config, PollingConfig, load_config
from .credentials import Credential, credential_from_config
from .logging_config import get_logger, setup_logging
from .polling import PollingPolicy
from .transport import AsyncHttpTransport, HttpTransport

logger = get_logger(__name__)


def _transport_kwargs(config: ClientConfig, credential: Credential | None) -> dict[str, Any]:
    return {
        "endpoint": config.endpoint,
        "credential": credential if credential is not None else credential_from_config(config),
        "api_version": config.api_version,
        "tls_verify": config.tls_verify,
        "timeout": config.timeout,
        "max_retries": config.max_retries,
    }


def _config_from_env(env_file: str | None, configure_logging: bool) -> Config:
    config = load_config(env_file)
    if configure_logging:
        setup_logging(
            log_level=config.logging.log_level,
            json_format=config.logging.log_json,
            log_file=config.logging.log_file,
        )
    return config


class ResourceManagementClient:
    """Blocking client for the resource-management API.

    Args:
        config: Connection settings; defaults apply when omitted.
        credential: Overrides the credential derived from ``config``.
        polling: LRO polling settings shared by all collections.
        transport: Pre-built transport, mainly for tests.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        credential: Credential | None = None,
        polling: PollingConfig | None = None,
        transport: HttpTransport | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        self.transport = transport or HttpTransport(**_transport_kwargs(self.config, credential))
        self.polling_policy = PollingPolicy.from_config(polling or PollingConfig())

    @classmethod
    def from_env(cls, env_file: str | None = None, configure_logging: bool = False) -> "ResourceManagementClient":
        """Build a client from environment variables (and an optional .env file)."""
        config = _config_from_env(env_file, configure_logging)
        logger.debug("Creating client", extra={"endpoint": config.client.endpoint})
        return cls(config.client, polling=config.polling)

    def collection(
        self,
        path: str,
        model: type[BaseModel] = ResourceData,
        name: str | None = None,
    ) -> ResourceCollection[Any]:
        return ResourceCollection(self.transport, path, model, name, self.polling_policy)

    def close(self) -> None:
        self.transport.close()

    def __enter__(self) -> "ResourceManagementClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


class AsyncResourceManagementClient:
    """Asyncio client for the resource-management API."""

    def __init__(
        self,
        config: ClientConfig | None = None,
        credential: Credential | None = None,
        polling: PollingConfig | None = None,
        transport: AsyncHttpTransport | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        self.transport = transport or AsyncHttpTransport(**_transport_kwargs(self.config, credential))
        self.polling_policy = PollingPolicy.from_config(polling or PollingConfig())

    @classmethod
    def from_env(cls, env_file: str | None = None, configure_logging: bool = False) -> "AsyncResourceManagementClient":
        config = _config_from_env(env_file, configure_logging)
        logger.debug("Creating async client", extra={"endpoint": config.client.endpoint})
        return cls(config.client, polling=config.polling)

    def collection(
        self,
        path: str,
        model: type[BaseModel] = ResourceData,
        name: str | None = None,
    ) -> AsyncResourceCollection[Any]:
        return AsyncResourceCollection(self.transport, path, model, name, self.polling_policy)

    async def close(self) -> None:
        await self.transport.close()

    async def __aenter__(self) -> "AsyncResourceManagementClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
