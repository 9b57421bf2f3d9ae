"""Pytest configuration and fixtures for cloudrm SDK tests."""

from typing import Any, Callable, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from cloudrm_sdk.config import ClientConfig, PollingConfig
from cloudrm_sdk.polling import PollingPolicy
from cloudrm_sdk.transport import AsyncHttpTransport, HttpTransport

ENDPOINT = "https://management.example.com"
OPERATION_URL = f"{ENDPOINT}/providers/Example.Compute/locations/westus/operations/op1"


class ScriptedTransport:
    """Transport double that replays a fixed list of responses.

    Exceptions in the script are raised instead of returned.
    """

    def __init__(self, responses: List[Any]) -> None:
        self.responses = list(responses)
        self.calls: List[tuple] = []

    def send(self, method: str, url: str, params=None, body=None, headers=None) -> httpx.Response:
        self.calls.append((method, url))
        if not self.responses:
            raise AssertionError(f"Unexpected request: {method} {url}")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class AsyncScriptedTransport(ScriptedTransport):
    """Async flavour of :class:`ScriptedTransport`."""

    async def send(self, method: str, url: str, params=None, body=None, headers=None) -> httpx.Response:
        return ScriptedTransport.send(self, method, url, params, body, headers)


def _make_response(
    status_code: int = 200,
    json_body: Any = None,
    headers: Optional[Dict[str, str]] = None,
    method: str = "GET",
    url: str = OPERATION_URL,
) -> httpx.Response:
    return httpx.Response(
        status_code,
        json=json_body,
        headers=headers,
        request=httpx.Request(method, url),
    )


@pytest.fixture
def make_response() -> Callable[..., httpx.Response]:
    """Factory for real httpx responses."""
    return _make_response


@pytest.fixture
def scripted_transport() -> Callable[..., ScriptedTransport]:
    """Factory for a sync transport double: ``scripted_transport(resp1, resp2)``."""
    return lambda *responses: ScriptedTransport(list(responses))


@pytest.fixture
def async_scripted_transport() -> Callable[..., AsyncScriptedTransport]:
    """Factory for an async transport double."""
    return lambda *responses: AsyncScriptedTransport(list(responses))


@pytest.fixture
def accepted_response() -> httpx.Response:
    """202 response pointing at a status monitor."""
    return _make_response(
        202,
        headers={"Operation-Location": OPERATION_URL},
        method="PUT",
        url=f"{ENDPOINT}/things/thing1",
    )


@pytest.fixture
def status_response() -> Callable[..., httpx.Response]:
    """Factory for status-monitor poll responses."""

    def _status(status: str, result: Any = None, error: Any = None, headers=None) -> httpx.Response:
        body: Dict[str, Any] = {"id": "op1", "status": status}
        if result is not None:
            body["result"] = result
        if error is not None:
            body["error"] = error
        return _make_response(200, body, headers=headers)

    return _status


@pytest.fixture
def no_wait_policy() -> PollingPolicy:
    """Polling policy that never sleeps."""
    return PollingPolicy(initial_interval=0, max_interval=0)


@pytest.fixture
def sample_client_config() -> ClientConfig:
    """Create a sample client configuration for testing."""
    return ClientConfig(
        endpoint=ENDPOINT,
        api_version="2024-01-01",
        token="test-token",
        tls_verify=False,
        timeout=10,
        max_retries=0,
    )


@pytest.fixture
def sample_polling_config() -> PollingConfig:
    return PollingConfig(interval=0, max_interval=0)


@pytest.fixture
def mock_httpx_response():
    """Create a mock httpx response."""
    mock_response = MagicMock()
    mock_response.status_code = 200
    mock_response.json.return_value = {"status": "ok", "data": {}}
    mock_response.headers = httpx.Headers()
    mock_response.text = '{"status": "ok"}'
    return mock_response


@pytest.fixture
def mock_httpx_client(mock_httpx_response):
    """Create a mock httpx client."""
    mock_client = MagicMock()
    mock_client.request.return_value = mock_httpx_response
    return mock_client


@pytest.fixture
def mock_async_httpx_client(mock_httpx_response):
    """Create a mock httpx async client."""
    mock_client = AsyncMock()
    mock_client.request.return_value = mock_httpx_response
    mock_client.aclose = AsyncMock()
    return mock_client


@pytest.fixture
def routed_transport() -> Callable[..., HttpTransport]:
    """Build an HttpTransport whose client is served by an httpx.MockTransport."""

    def _build(handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any) -> HttpTransport:
        kwargs.setdefault("api_version", "2024-01-01")
        kwargs.setdefault("max_retries", 0)
        transport = HttpTransport(ENDPOINT, **kwargs)
        transport.client = httpx.Client(base_url=ENDPOINT, transport=httpx.MockTransport(handler))
        return transport

    return _build


@pytest.fixture
def async_routed_transport() -> Callable[..., AsyncHttpTransport]:
    """Async counterpart of ``routed_transport``."""

    def _build(handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any) -> AsyncHttpTransport:
        kwargs.setdefault("api_version", "2024-01-01")
        kwargs.setdefault("max_retries", 0)
        transport = AsyncHttpTransport(ENDPOINT, **kwargs)
        transport.client = httpx.AsyncClient(base_url=ENDPOINT, transport=httpx.MockTransport(handler))
        return transport

    return _build


@pytest.fixture
def env_with_settings(monkeypatch):
    """Set environment variables with test settings."""
    monkeypatch.setenv("CLOUDRM_ENDPOINT", "https://test.example.com")
    monkeypatch.setenv("CLOUDRM_API_VERSION", "2024-01-01")
    monkeypatch.setenv("CLOUDRM_TOKEN", "env-token")
    monkeypatch.setenv("CLOUDRM_TIMEOUT", "15")
    monkeypatch.setenv("CLOUDRM_MAX_RETRIES", "2")
    monkeypatch.setenv("CLOUDRM_POLL_INTERVAL", "0.5")
    monkeypatch.setenv("CLOUDRM_POLL_TIMEOUT", "60")
    monkeypatch.setenv("LOG_LEVEL", "debug")


@pytest.fixture
def env_without_settings(monkeypatch):
    """Clear environment variables for default-value testing."""
    for var in [
        "CLOUDRM_ENDPOINT", "CLOUDRM_API_VERSION", "CLOUDRM_API_KEY", "CLOUDRM_TOKEN",
        "CLOUDRM_USERNAME", "CLOUDRM_PASSWORD", "CLOUDRM_TLS_VERIFY", "CLOUDRM_TIMEOUT",
        "CLOUDRM_MAX_RETRIES", "CLOUDRM_POLL_INTERVAL", "CLOUDRM_POLL_MAX_INTERVAL",
        "CLOUDRM_POLL_TIMEOUT", "LOG_LEVEL", "LOG_JSON", "LOG_FILE",
    ]:
        monkeypatch.delenv(var, raising=False)
