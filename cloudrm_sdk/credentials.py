"""Credential providers applied by the transport on every request.

The paging and polling core never sees credentials; transports call
:meth:`apply` on the outgoing headers before each send.
"""

from __future__ import annotations

import base64
from typing import Protocol

from .config import ClientConfig


class Credential(Protocol):
    """Anything that can add authentication to request headers."""

    def apply(self, headers: dict[str, str]) -> None: ...


class KeyCredential:
    """Static API key sent in a header (``api-key`` by default)."""

    def __init__(self, key: str, header: str = "api-key") -> None:
        if not key:
            raise ValueError("key is required")
        self._key = key
        self.header = header

    def update(self, key: str) -> None:
        """Rotate the key used for subsequent requests."""
        if not key:
            raise ValueError("key is required")
        self._key = key

    def apply(self, headers: dict[str, str]) -> None:
        headers[self.header] = self._key

    def __repr__(self) -> str:
        return f"KeyCredential(header={self.header!r})"


class BearerTokenCredential:
    """Pre-acquired OAuth bearer token."""

    def __init__(self, token: str) -> None:
        if not token:
            raise ValueError("token is required")
        self._token = token

    def apply(self, headers: dict[str, str]) -> None:
        headers["Authorization"] = f"Bearer {self._token}"

    def __repr__(self) -> str:
        return "BearerTokenCredential()"


class BasicCredential:
    """HTTP Basic Authentication, passed with every request."""

    def __init__(self, username: str, password: str) -> None:
        if not username:
            raise ValueError("username is required")
        if not password:
            raise ValueError("password is required")
        self.username = username
        encoded = base64.b64encode(f"{username}:{password}".encode()).decode()
        self._auth_header = f"Basic {encoded}"

    def apply(self, headers: dict[str, str]) -> None:
        headers["Authorization"] = self._auth_header

    def __repr__(self) -> str:
        return f"BasicCredential(username={self.username!r})"


def credential_from_config(config: ClientConfig) -> Credential | None:
    """Pick a credential from configuration.

    Preference order is bearer token, API key, then basic auth.

    Args:
        config: Client configuration.

    Returns:
        A credential, or None for anonymous access.
    """
    if config.token:
        return BearerTokenCredential(config.token)
    if config.api_key:
        return KeyCredential(config.api_key)
    if config.username and config.password:
        return BasicCredential(config.username, config.password)
    return None
