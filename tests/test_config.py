"""
Tests for Configuration Module

Tests the Settings and configuration management.
"""

import os
import pytest
from unittest.mock import patch


class TestGetEnv:
    """Tests for environment variable helpers."""

    def test_get_env_with_default(self):
        """Test getting env var with default."""
        from echomint.config import get_env

        result = get_env("NONEXISTENT_VAR", "default_value")
        assert result == "default_value"

    def test_get_env_existing(self):
        """Test getting existing env var."""
        from echomint.config import get_env

        with patch.dict(os.environ, {"TEST_VAR": "test_value"}):
            result = get_env("TEST_VAR")
            assert result == "test_value"

    def test_get_env_required_missing(self):
        """Test required env var raises error when missing."""
        from echomint.config import get_env
        from echomint.errors import ConfigurationError

        with pytest.raises(ConfigurationError):
            get_env("DEFINITELY_NOT_SET", required=True)

    def test_configuration_error_is_value_error(self):
        from echomint.config import get_env

        with pytest.raises(ValueError):
            get_env("DEFINITELY_NOT_SET", required=True)


class TestGetEnvTyped:
    """Tests for typed environment variable helpers."""

    def test_get_env_int(self):
        """Test getting int from env."""
        from echomint.config import get_env_int

        with patch.dict(os.environ, {"INT_VAR": "42"}):
            result = get_env_int("INT_VAR", 0)
            assert result == 42
            assert isinstance(result, int)

    def test_get_env_float(self):
        """Test getting float from env."""
        from echomint.config import get_env_float

        with patch.dict(os.environ, {"FLOAT_VAR": "3.14"}):
            result = get_env_float("FLOAT_VAR", 0.0)
            assert result == 3.14
            assert isinstance(result, float)

    def test_get_env_bool_true(self):
        """Test getting bool true from env."""
        from echomint.config import get_env_bool

        for true_value in ["true", "True", "TRUE", "1", "yes", "on"]:
            with patch.dict(os.environ, {"BOOL_VAR": true_value}):
                assert get_env_bool("BOOL_VAR", False) is True

    def test_get_env_bool_false(self):
        """Test getting bool false from env."""
        from echomint.config import get_env_bool

        for false_value in ["false", "False", "0", "no", "off"]:
            with patch.dict(os.environ, {"BOOL_VAR": false_value}):
                assert get_env_bool("BOOL_VAR", True) is False

    def test_get_env_list(self):
        from echomint.config import get_env_list

        with patch.dict(os.environ, {"LIST_VAR": "http://a.test, http://b.test,,"}):
            assert get_env_list("LIST_VAR") == ["http://a.test", "http://b.test"]


class TestCompletionConfig:
    """Tests for language-model provider configuration."""

    def test_chat_url(self):
        """Test chat URL construction."""
        from echomint.config import CompletionConfig

        config = CompletionConfig(groq_base_url="https://api.groq.com/openai/v1/")
        assert config.chat_url == "https://api.groq.com/openai/v1/chat/completions"

    def test_gemini_url(self):
        from echomint.config import CompletionConfig

        config = CompletionConfig(gemini_base_url="https://generativelanguage.googleapis.com/v1beta")
        url = config.gemini_url("gemini-1.5-flash")
        assert url.endswith("/models/gemini-1.5-flash:generateContent")

    def test_validate_missing_groq_key(self):
        """Test validation fails when an agent needs the missing key."""
        from echomint.config import CompletionConfig

        config = CompletionConfig(groq_api_key="")

        with pytest.raises(ValueError, match="GROQ_API_KEY"):
            config.validate(["mixtral-8x7b-32768"])

    def test_validate_missing_gemini_key(self):
        from echomint.config import CompletionConfig

        config = CompletionConfig(gemini_api_key="")

        with pytest.raises(ValueError, match="GEMINI_API_KEY"):
            config.validate(["gemini-1.5-flash"])

    def test_validate_only_checks_used_providers(self):
        """A Groq-only catalog does not need a Gemini key."""
        from echomint.config import CompletionConfig

        config = CompletionConfig(groq_api_key="key", gemini_api_key="")
        assert config.validate(["mixtral-8x7b-32768"]) is True

    def test_validate_timeout_positive(self):
        from echomint.config import CompletionConfig

        config = CompletionConfig(groq_api_key="key", timeout_s=0)

        with pytest.raises(ValueError, match="positive"):
            config.validate(["mixtral-8x7b-32768"])


class TestServiceConfigs:
    """Tests for speech and minting configuration."""

    def test_speech_validate_missing_key(self):
        from echomint.config import SpeechConfig

        config = SpeechConfig(api_key="", region="eastus")

        with pytest.raises(ValueError, match="AZURE_SPEECH_API_KEY"):
            config.validate()

    def test_speech_is_configured(self):
        from echomint.config import SpeechConfig

        assert SpeechConfig(api_key="k", region="eastus").is_configured is True
        assert SpeechConfig(api_key="", region="eastus").is_configured is False

    def test_mint_validate_missing_ledger(self):
        from echomint.config import MintConfig

        config = MintConfig(ledger_rpc_url="")

        with pytest.raises(ValueError, match="LEDGER_RPC_URL"):
            config.validate()

    def test_artifact_path(self):
        from pathlib import Path
        from echomint.config import GatewayConfig

        config = GatewayConfig(artifact_dir="./public/audio")
        assert config.artifact_path == Path("./public/audio")


class TestSettings:
    """Tests for main Settings class."""

    def test_settings_singleton(self):
        """Test settings is accessible."""
        from echomint.config import settings

        assert settings is not None
        assert hasattr(settings, "completion")
        assert hasattr(settings, "speech")
        assert hasattr(settings, "gateway")
        assert hasattr(settings, "mint")

    def test_gateway_defaults(self):
        from echomint.config import Settings

        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("DEFAULT_AGENT_ID", None)
            settings = Settings()
        assert settings.gateway.default_agent_id == "agent_003"

    def test_is_development(self):
        """Test development mode detection."""
        from echomint.config import Settings

        settings = Settings()
        settings.app_env = "development"
        assert settings.is_development is True
        assert settings.is_production is False

    def test_is_production(self):
        """Test production mode detection."""
        from echomint.config import Settings

        settings = Settings()
        settings.app_env = "production"
        assert settings.is_production is True
        assert settings.is_development is False
