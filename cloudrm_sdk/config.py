"""Configuration loader for the cloudrm SDK.

This module provides configuration management using Pydantic models
for validation and environment variable loading.

Example:
    >>> from cloudrm_sdk.config import load_config
    >>> config = load_config()
    >>> print(config.client.endpoint)
    https://management.example.com

Environment Variables:
    CLOUDRM_ENDPOINT: Service endpoint (default: https://management.example.com).
    CLOUDRM_API_VERSION: ``api-version`` query parameter sent with requests.
    CLOUDRM_API_KEY: API key credential (optional).
    CLOUDRM_TOKEN: Bearer token credential (optional).
    CLOUDRM_USERNAME / CLOUDRM_PASSWORD: Basic auth credential (optional).
    CLOUDRM_TLS_VERIFY: Verify TLS certificates (default: true).
    CLOUDRM_TIMEOUT: Request timeout in seconds (default: 30).
    CLOUDRM_MAX_RETRIES: Transport retry attempts (default: 3).
    CLOUDRM_POLL_INTERVAL: Initial poll interval in seconds (default: 1).
    CLOUDRM_POLL_MAX_INTERVAL: Poll interval cap in seconds (default: 30).
    CLOUDRM_POLL_TIMEOUT: Overall wait timeout in seconds (optional).
    LOG_LEVEL: Logging level (default: INFO).
    LOG_JSON: Use JSON log format (default: false).
    LOG_FILE: Optional log file path.
"""

from __future__ import annotations

import os
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .exceptions import ConfigurationError
from .logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_ENDPOINT = "https://management.example.com"


class ClientConfig(BaseModel):
    """Service connection configuration.

    Attributes:
        endpoint: Base URL of the resource-management service.
        api_version: Value of the ``api-version`` query parameter.
        api_key: API key credential (optional).
        token: Bearer token credential (optional).
        username: Basic auth username (optional).
        password: Basic auth password (optional).
        tls_verify: Whether to verify TLS certificates.
        timeout: Request timeout in seconds.
        max_retries: Retry attempts for transient transport errors.
    """

    endpoint: str = Field(
        default=DEFAULT_ENDPOINT,
        description="Service base URL",
    )
    api_version: str | None = Field(
        default=None,
        description="api-version query parameter",
    )
    api_key: str | None = Field(
        default=None,
        description="API key credential",
    )
    token: str | None = Field(
        default=None,
        description="Bearer token credential",
    )
    username: str | None = Field(
        default=None,
        description="Basic auth username",
    )
    password: str | None = Field(
        default=None,
        description="Basic auth password",
    )
    tls_verify: bool = Field(
        default=True,
        description="Verify TLS certificates",
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        le=600,
        description="Request timeout in seconds",
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Maximum transport retry attempts",
    )

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        """Validate that the endpoint is an absolute http(s) URL.

        Args:
            v: The endpoint value to validate.

        Returns:
            The endpoint without a trailing slash.

        Raises:
            ValueError: If the endpoint is not an http(s) URL.
        """
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"endpoint must be an http(s) URL: {v}")
        return v.rstrip("/")

    model_config = {"extra": "ignore"}


class PollingConfig(BaseModel):
    """Long-running operation polling configuration.

    Attributes:
        interval: First delay between polls in seconds.
        max_interval: Upper bound for the backoff delay.
        multiplier: Backoff growth factor per poll.
        timeout: Overall wait budget in seconds, unbounded when None.
    """

    interval: float = Field(
        default=1.0,
        ge=0,
        description="Initial poll interval in seconds",
    )
    max_interval: float = Field(
        default=30.0,
        ge=0,
        description="Maximum poll interval in seconds",
    )
    multiplier: float = Field(
        default=2.0,
        ge=1,
        description="Backoff multiplier",
    )
    timeout: float | None = Field(
        default=None,
        gt=0,
        description="Overall wait timeout in seconds",
    )

    @model_validator(mode="after")
    def check_interval_bounds(self) -> "PollingConfig":
        if self.max_interval < self.interval:
            raise ValueError("max_interval must be >= interval")
        return self

    model_config = {"extra": "ignore"}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        log_level: Logging level.
        log_json: Use JSON format for logs.
        log_file: Optional log file path.
    """

    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level",
    )
    log_json: bool = Field(
        default=False,
        description="Use JSON format for logs",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional log file path",
    )

    model_config = {"extra": "ignore"}


class Config(BaseModel):
    """Main configuration container.

    Attributes:
        client: Service connection settings.
        polling: LRO polling settings.
        logging: Logging settings.
    """

    client: ClientConfig = Field(default_factory=ClientConfig)
    polling: PollingConfig = Field(default_factory=PollingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"extra": "ignore"}


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def load_config(env_file: str | None = None) -> Config:
    """Load configuration from environment variables.

    Args:
        env_file: Optional path to .env file.

    Returns:
        Validated Config object.

    Raises:
        ConfigurationError: If a value is invalid.
    """
    # Load .env file if exists
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    logger.debug("Loading configuration from environment")

    try:
        client_config = ClientConfig(
            endpoint=os.getenv("CLOUDRM_ENDPOINT", DEFAULT_ENDPOINT),
            api_version=os.getenv("CLOUDRM_API_VERSION"),
            api_key=os.getenv("CLOUDRM_API_KEY"),
            token=os.getenv("CLOUDRM_TOKEN"),
            username=os.getenv("CLOUDRM_USERNAME"),
            password=os.getenv("CLOUDRM_PASSWORD"),
            tls_verify=_env_bool("CLOUDRM_TLS_VERIFY", "true"),
            timeout=float(os.getenv("CLOUDRM_TIMEOUT", "30")),
            max_retries=int(os.getenv("CLOUDRM_MAX_RETRIES", "3")),
        )

        poll_timeout = os.getenv("CLOUDRM_POLL_TIMEOUT")
        polling_config = PollingConfig(
            interval=float(os.getenv("CLOUDRM_POLL_INTERVAL", "1")),
            max_interval=float(os.getenv("CLOUDRM_POLL_MAX_INTERVAL", "30")),
            timeout=float(poll_timeout) if poll_timeout else None,
        )

        logging_config = LoggingConfig(
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_json=_env_bool("LOG_JSON", "false"),
            log_file=os.getenv("LOG_FILE"),
        )

        config = Config(
            client=client_config,
            polling=polling_config,
            logging=logging_config,
        )

        logger.info(
            "Configuration loaded successfully",
            extra={
                "endpoint": config.client.endpoint,
                "api_version": config.client.api_version,
            },
        )

        return config

    except (ValueError, ValidationError) as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


