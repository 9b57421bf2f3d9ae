"""Tests for the configuration module."""

import os

import pytest
from pydantic import ValidationError

from cloudrm_sdk.config import (
    DEFAULT_ENDPOINT,
    ClientConfig,
    Config,
    LoggingConfig,
    PollingConfig,
    load_config,
)
from cloudrm_sdk.exceptions import ConfigurationError


class TestClientConfig:
    """Tests for ClientConfig model."""

    def test_valid_config(self, sample_client_config):
        """Test creating a valid configuration."""
        assert sample_client_config.endpoint == "https://management.example.com"
        assert sample_client_config.api_version == "2024-01-01"
        assert sample_client_config.token == "test-token"
        assert sample_client_config.tls_verify is False
        assert sample_client_config.timeout == 10
        assert sample_client_config.max_retries == 0

    def test_default_values(self):
        """Test default values."""
        config = ClientConfig()
        assert config.endpoint == DEFAULT_ENDPOINT
        assert config.api_version is None
        assert config.tls_verify is True
        assert config.timeout == 30.0
        assert config.max_retries == 3

    def test_trailing_slash_stripped(self):
        """Test that the endpoint is normalized."""
        config = ClientConfig(endpoint="https://management.example.com/")
        assert config.endpoint == "https://management.example.com"

    def test_http_endpoint_allowed(self):
        """Test plain HTTP endpoints (e.g. local emulators)."""
        config = ClientConfig(endpoint="http://localhost:8080")
        assert config.endpoint == "http://localhost:8080"

    @pytest.mark.parametrize("endpoint", ["management.example.com", "ftp://example.com", "https://"])
    def test_invalid_endpoint(self, endpoint):
        """Test that non-http(s) endpoints are rejected."""
        with pytest.raises(ValidationError):
            ClientConfig(endpoint=endpoint)

    def test_invalid_timeout(self):
        """Test timeout bounds."""
        with pytest.raises(ValidationError):
            ClientConfig(timeout=0)

    def test_invalid_max_retries(self):
        """Test max_retries bounds."""
        with pytest.raises(ValidationError):
            ClientConfig(max_retries=11)


class TestPollingConfig:
    """Tests for PollingConfig model."""

    def test_default_values(self):
        """Test default polling values."""
        config = PollingConfig()
        assert config.interval == 1.0
        assert config.max_interval == 30.0
        assert config.multiplier == 2.0
        assert config.timeout is None

    def test_max_interval_below_interval(self):
        """Test that the cap cannot be smaller than the first delay."""
        with pytest.raises(ValidationError):
            PollingConfig(interval=10, max_interval=5)

    def test_multiplier_below_one(self):
        """Test that delays cannot shrink."""
        with pytest.raises(ValidationError):
            PollingConfig(multiplier=0.5)


class TestLoggingConfig:
    """Tests for LoggingConfig model."""

    def test_default_values(self):
        """Test default values for logging configuration."""
        config = LoggingConfig()
        assert config.log_level == "INFO"
        assert config.log_json is False
        assert config.log_file is None

    def test_invalid_log_level(self):
        """Test that unknown levels are rejected."""
        with pytest.raises(ValidationError):
            LoggingConfig(log_level="VERBOSE")

    def test_config_container_defaults(self):
        """Test that the container builds every section."""
        config = Config()
        assert isinstance(config.client, ClientConfig)
        assert isinstance(config.polling, PollingConfig)
        assert isinstance(config.logging, LoggingConfig)


class TestLoadConfig:
    """Tests for load_config function."""

    def test_load_config_from_env(self, env_with_settings):
        """Test loading configuration from environment variables."""
        config = load_config()
        assert config.client.endpoint == "https://test.example.com"
        assert config.client.api_version == "2024-01-01"
        assert config.client.token == "env-token"
        assert config.client.timeout == 15.0
        assert config.client.max_retries == 2
        assert config.polling.interval == 0.5
        assert config.polling.timeout == 60.0
        assert config.logging.log_level == "DEBUG"

    def test_load_config_defaults(self, env_without_settings):
        """Test loading configuration with nothing set."""
        config = load_config()
        assert config.client.endpoint == DEFAULT_ENDPOINT
        assert config.client.token is None
        assert config.polling.timeout is None
        assert config.logging.log_json is False

    def test_tls_verify_flag(self, env_without_settings, monkeypatch):
        """Test boolean parsing of TLS verification."""
        monkeypatch.setenv("CLOUDRM_TLS_VERIFY", "false")
        assert load_config().client.tls_verify is False
        monkeypatch.setenv("CLOUDRM_TLS_VERIFY", "TRUE")
        assert load_config().client.tls_verify is True

    @pytest.mark.parametrize(
        "name, value",
        [
            ("CLOUDRM_ENDPOINT", "not-a-url"),
            ("CLOUDRM_TIMEOUT", "soon"),
            ("CLOUDRM_MAX_RETRIES", "50"),
            ("CLOUDRM_POLL_MAX_INTERVAL", "0.1"),
            ("LOG_LEVEL", "chatty"),
        ],
    )
    def test_invalid_values(self, env_without_settings, monkeypatch, name, value):
        """Test that bad values surface as ConfigurationError."""
        monkeypatch.setenv(name, value)
        with pytest.raises(ConfigurationError) as exc_info:
            load_config()
        assert "Invalid configuration" in str(exc_info.value)

    def test_load_config_from_env_file(self, env_without_settings, tmp_path):
        """Test reading settings from a .env file."""
        env_file = tmp_path / ".env"
        env_file.write_text("CLOUDRM_ENDPOINT=https://dotenv.example.com\nCLOUDRM_API_KEY=file-key\n")

        try:
            config = load_config(str(env_file))
        finally:
            os.environ.pop("CLOUDRM_ENDPOINT", None)
            os.environ.pop("CLOUDRM_API_KEY", None)

        assert config.client.endpoint == "https://dotenv.example.com"
        assert config.client.api_key == "file-key"

    def test_environment_wins_over_env_file(self, env_with_settings, tmp_path):
        """Test that real environment variables are not overridden."""
        env_file = tmp_path / ".env"
        env_file.write_text("CLOUDRM_ENDPOINT=https://dotenv.example.com\n")

        config = load_config(str(env_file))

        assert config.client.endpoint == "https://test.example.com"
