"""Tests for configuration validation with Pydantic."""

import tempfile
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from civitai_sdk.domain.config import (
    AppConfig,
    ClientConfig,
    LimitsConfig,
    RetryConfig,
)
from civitai_sdk.infrastructure.config.config_manager import (
    ENV_OVERRIDES,
    ConfigManager,
    ConfigurationError,
)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Run every test from an empty directory with no CIVITAI_* variables set"""
    for env_var in ENV_OVERRIDES:
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.chdir(tmp_path)


class TestRetryConfigValidation:
    """Tests for RetryConfig validation."""

    def test_valid_retry_config(self):
        """Test valid retry configuration"""
        config = RetryConfig(max_retries=5, base_delay=0.5, max_delay=10.0)
        assert config.max_retries == 5
        assert config.base_delay == 0.5

    def test_zero_retries_allowed(self):
        """Test max_retries=0 means a single attempt"""
        assert RetryConfig(max_retries=0).max_retries == 0

    def test_negative_retries(self):
        """Test max_retries cannot be negative"""
        with pytest.raises(ValidationError, match="max_retries"):
            RetryConfig(max_retries=-1)

    def test_max_retries_too_high(self):
        """Test max_retries above limit"""
        with pytest.raises(ValidationError, match="max_retries"):
            RetryConfig(max_retries=11)

    def test_negative_base_delay(self):
        """Test base_delay cannot be negative"""
        with pytest.raises(ValidationError, match="base_delay"):
            RetryConfig(base_delay=-0.1)

    def test_base_delay_above_max_delay(self):
        """Test base_delay must not exceed max_delay"""
        with pytest.raises(ValidationError, match="base_delay must not exceed max_delay"):
            RetryConfig(base_delay=5.0, max_delay=1.0)


class TestLimitsConfigValidation:
    """Tests for LimitsConfig validation."""

    def test_default_is_ten_megabytes(self):
        """Test default response ceiling"""
        assert LimitsConfig().max_response_size == 10 * 1024 * 1024

    def test_max_response_size_zero(self):
        """Test max_response_size must be positive"""
        with pytest.raises(ValidationError, match="max_response_size"):
            LimitsConfig(max_response_size=0)


class TestClientConfigValidation:
    """Tests for ClientConfig validation."""

    def test_defaults(self):
        """Test default endpoint and timeout"""
        config = ClientConfig()
        assert config.base_url == "https://civitai.com/api/v1"
        assert config.timeout == 30.0
        assert config.user_agent.startswith("civitai-sdk-python/")

    def test_trailing_slash_stripped(self):
        """Test base_url is normalized"""
        assert ClientConfig(base_url="https://example.test/api/v1/").base_url == "https://example.test/api/v1"

    def test_base_url_requires_scheme(self):
        """Test base_url must be an http(s) URL"""
        with pytest.raises(ValidationError, match="base_url"):
            ClientConfig(base_url="civitai.com/api/v1")

    def test_timeout_zero(self):
        """Test timeout must be positive"""
        with pytest.raises(ValidationError, match="timeout"):
            ClientConfig(timeout=0)


class TestAppConfigValidation:
    """Tests for AppConfig validation."""

    def test_valid_app_config(self):
        """Test valid application configuration"""
        config = AppConfig()
        assert config.retry.max_retries == 3
        assert config.limits.max_response_size == 10 * 1024 * 1024

    def test_unknown_field_rejected(self):
        """Test unknown fields are rejected"""
        with pytest.raises(ValidationError, match="extra"):
            AppConfig(unknown_field="value")

    def test_nested_validation(self):
        """Test nested validation works"""
        with pytest.raises(ValidationError, match="max_retries"):
            AppConfig(retry={"max_retries": 50})


class TestConfigManagerValidation:
    """Tests for ConfigManager validation."""

    def test_load_valid_config_from_file(self):
        """Test loading valid configuration from file"""
        config_data = {
            "client": {"base_url": "https://mirror.example.test/api/v1", "timeout": 10},
            "retry": {"max_retries": 1},
        }

        with tempfile.NamedTemporaryFile(mode="w", suffix=".yml", delete=False) as f:
            yaml.dump(config_data, f)
            config_path = f.name

        try:
            manager = ConfigManager(config_path=config_path)
            assert manager.config.client.base_url == "https://mirror.example.test/api/v1"
            assert manager.config.client.timeout == 10.0
            assert manager.config.retry.max_retries == 1
            assert manager.config.retry.base_delay == 1.0
        finally:
            Path(config_path).unlink()

    def test_load_invalid_config_raises_error(self):
        """Test loading invalid configuration raises error"""
        config_data = {
            "limits": {
                "max_response_size": -5,  # Invalid: must be positive
            }
        }

        with tempfile.NamedTemporaryFile(mode="w", suffix=".yml", delete=False) as f:
            yaml.dump(config_data, f)
            config_path = f.name

        try:
            with pytest.raises(ConfigurationError, match="limits.max_response_size"):
                ConfigManager(config_path=config_path)
        finally:
            Path(config_path).unlink()

    def test_malformed_yaml_raises_error(self, tmp_path):
        """Test unparsable YAML is reported, not ignored"""
        config_path = tmp_path / "broken.yml"
        config_path.write_text("retry: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Failed to load config"):
            ConfigManager(config_path=config_path)

    def test_config_file_found_in_parent_directory(self, tmp_path, monkeypatch):
        """Test .civitai.yml is discovered walking up from the current directory"""
        (tmp_path / ".civitai.yml").write_text("retry:\n  max_retries: 7\n", encoding="utf-8")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)

        manager = ConfigManager()

        assert manager.config_path.resolve() == (tmp_path / ".civitai.yml").resolve()
        assert manager.get_retry_config().max_retries == 7

    def test_default_config_is_valid(self):
        """Test default configuration is valid"""
        manager = ConfigManager()
        assert manager.config_path is None
        assert isinstance(manager.config, AppConfig)
        assert manager.config == AppConfig()

    def test_get_typed_config_sections(self):
        """Test getter methods return typed models"""
        manager = ConfigManager()

        assert isinstance(manager.get_client_config(), ClientConfig)
        assert isinstance(manager.get_limits_config(), LimitsConfig)
        assert isinstance(manager.get_retry_config(), RetryConfig)

    def test_dotted_get(self):
        """Test get() with dot notation"""
        manager = ConfigManager()

        assert manager.get("retry.max_retries") == 3
        assert manager.get("client")["timeout"] == 30.0
        assert manager.get("retry.missing", "fallback") == "fallback"

    def test_env_overrides_work(self, monkeypatch):
        """Test environment variable overrides"""
        monkeypatch.setenv("CIVITAI_BASE_URL", "https://env.example.test/api/v1/")
        monkeypatch.setenv("CIVITAI_TIMEOUT", "5.5")
        monkeypatch.setenv("CIVITAI_MAX_RETRIES", "0")
        monkeypatch.setenv("CIVITAI_RETRY_BASE_DELAY", "0.25")
        monkeypatch.setenv("CIVITAI_RETRY_MAX_DELAY", "2")
        monkeypatch.setenv("CIVITAI_MAX_RESPONSE_SIZE", "2048")

        manager = ConfigManager()

        assert manager.config.client.base_url == "https://env.example.test/api/v1"
        assert manager.config.client.timeout == 5.5
        assert manager.config.retry.max_retries == 0
        assert manager.config.retry.base_delay == 0.25
        assert manager.config.retry.max_delay == 2.0
        assert manager.config.limits.max_response_size == 2048

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        """Test environment variables take precedence over the config file"""
        config_path = tmp_path / ".civitai.yml"
        config_path.write_text("retry:\n  max_retries: 7\n", encoding="utf-8")
        monkeypatch.setenv("CIVITAI_MAX_RETRIES", "2")

        assert ConfigManager(config_path).get_retry_config().max_retries == 2

    def test_invalid_env_value_raises_error(self, monkeypatch):
        """Test invalid environment values fail validation"""
        monkeypatch.setenv("CIVITAI_TIMEOUT", "soon")

        with pytest.raises(ConfigurationError, match="client.timeout"):
            ConfigManager()
