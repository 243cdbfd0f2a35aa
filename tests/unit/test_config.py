"""Unit tests for configuration management."""

import pytest

from recipe_guard.utils.config import Config


class TestConfigDefaults:
    """Test default values when environment variables are absent."""

    def test_config_loads_defaults(self, monkeypatch):
        """Test that Config falls back to defaults for unset variables."""
        for name in (
            "GEMINI_MODEL",
            "CLASSIFIER_MODEL",
            "TEMPERATURE",
            "MAX_OUTPUT_TOKENS",
            "MAX_RETRIES",
            "DELAY_BETWEEN_RETRIES",
            "FETCH_TIMEOUT_SECONDS",
            "MAX_PAGE_SIZE_MB",
            "MAX_HISTORY_MESSAGES",
            "GEMINI_BASE_URL",
        ):
            monkeypatch.delenv(name, raising=False)

        config = Config()

        assert config.GEMINI_MODEL == "gemini-2.5-flash"
        assert config.CLASSIFIER_MODEL == "gemini-2.5-flash-lite"
        assert config.TEMPERATURE == 0.2
        assert config.MAX_OUTPUT_TOKENS == 4096
        assert config.MAX_RETRIES == 3
        assert config.DELAY_BETWEEN_RETRIES == 1
        assert config.FETCH_TIMEOUT_SECONDS == 10
        assert config.MAX_PAGE_SIZE_MB == 5
        assert config.MAX_HISTORY_MESSAGES == 10
        assert config.GEMINI_BASE_URL is None

    def test_config_converts_numeric_types(self, monkeypatch):
        """Test that Config converts numeric environment variables."""
        monkeypatch.setenv("TEMPERATURE", "0.7")
        monkeypatch.setenv("MAX_RETRIES", "5")
        monkeypatch.setenv("FETCH_TIMEOUT_SECONDS", "30")

        config = Config()

        assert isinstance(config.TEMPERATURE, float)
        assert config.MAX_RETRIES == 5
        assert config.FETCH_TIMEOUT_SECONDS == 30

    @pytest.mark.parametrize("value,expected", [("true", True), ("1", True), ("yes", True), ("false", False), ("no", False)])
    def test_exponential_backoff_parsing(self, monkeypatch, value, expected):
        monkeypatch.setenv("EXPONENTIAL_BACKOFF", value)
        assert Config().EXPONENTIAL_BACKOFF is expected


class TestConfigValidation:
    """Test Config validation logic."""

    def test_defaults_are_valid(self):
        Config().validate()  # Should not raise

    @pytest.mark.parametrize(
        "name,value",
        [
            ("TEMPERATURE", "1.5"),
            ("TEMPERATURE", "-0.1"),
            ("MAX_OUTPUT_TOKENS", "100"),
            ("MAX_RETRIES", "0"),
            ("DELAY_BETWEEN_RETRIES", "-1"),
            ("FETCH_TIMEOUT_SECONDS", "0"),
            ("MAX_PAGE_SIZE_MB", "0"),
            ("MAX_HISTORY_MESSAGES", "0"),
        ],
    )
    def test_validate_rejects_out_of_range_values(self, monkeypatch, name, value):
        """Test that validate() names the offending variable."""
        monkeypatch.setenv(name, value)

        config = Config()
        with pytest.raises(ValueError, match=name):
            config.validate()


class TestRequireApiKey:
    """The API key is only demanded when a Gemini client is built."""

    def test_missing_key_raises(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "")

        config = Config()
        with pytest.raises(ValueError, match="GEMINI_API_KEY"):
            config.require_api_key()

    def test_missing_key_does_not_fail_validate(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "")
        Config().validate()  # Should not raise

    def test_returns_key_when_set(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "gemini_key")
        assert Config().require_api_key() == "gemini_key"


class TestConfigEnvironmentOverride:
    def test_system_env_overrides_defaults(self, monkeypatch):
        """Test that system env vars take precedence over defaults."""
        monkeypatch.setenv("GEMINI_MODEL", "test-model")
        monkeypatch.setenv("GEMINI_BASE_URL", "http://localhost:8080")

        config = Config()
        assert config.GEMINI_MODEL == "test-model"
        assert config.GEMINI_BASE_URL == "http://localhost:8080"


class TestModuleLevelConfig:
    def test_config_is_importable(self):
        from recipe_guard.utils.config import config

        assert isinstance(config, Config)
