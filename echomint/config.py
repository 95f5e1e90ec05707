"""
Configuration Management Module

This module handles all application configuration using environment variables
with sensible defaults. It follows the 12-factor app methodology for configuration.

Usage:
    from echomint.config import settings
    print(settings.completion.groq_base_url)

Environment variables are loaded from .env file (if present) and can be
overridden by system environment variables.

Each service validates only the sections it needs at startup. A missing
required key raises ConfigurationError from the app lifespan, which aborts
the process before any request is served.
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Optional
from dotenv import load_dotenv

from echomint.errors import ConfigurationError

# Load environment variables from .env file
# This should be called before accessing any environment variables
load_dotenv()

# Sent to the OpenAI-compatible API unless COMPLETION_MODEL_OVERRIDE is set
DEFAULT_GROQ_MODEL = "llama-3.3-70b-versatile"


def get_env(key: str, default: str = "", required: bool = False) -> str:
    """
    Get an environment variable with optional default and validation.

    Args:
        key: The environment variable name
        default: Default value if not set
        required: If True, raises ConfigurationError when not set

    Returns:
        The environment variable value or default

    Raises:
        ConfigurationError: If required=True and the variable is not set
    """
    value = os.getenv(key, default)
    if required and not value:
        raise ConfigurationError(f"Required environment variable '{key}' is not set")
    return value


def get_env_int(key: str, default: int) -> int:
    """Get an environment variable as integer."""
    return int(get_env(key, str(default)))


def get_env_float(key: str, default: float) -> float:
    """Get an environment variable as float."""
    return float(get_env(key, str(default)))


def get_env_bool(key: str, default: bool) -> bool:
    """Get an environment variable as boolean."""
    value = get_env(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")


def get_env_list(key: str, default: str = "") -> List[str]:
    """Get a comma-separated environment variable as a list of strings."""
    return [item.strip() for item in get_env(key, default).split(",") if item.strip()]


@dataclass
class CompletionConfig:
    """
    Language-model provider configuration for the dispatcher.

    Two provider families are supported: Gemini (generateContent API) and
    any OpenAI-compatible chat completions endpoint (Groq by default).

    Attributes:
        groq_api_key: Bearer key for the OpenAI-compatible endpoint
        gemini_api_key: Google Gemini API key
        groq_base_url: Base URL of the OpenAI-compatible API
        gemini_base_url: Base URL of the Gemini API
        model_override: Model name sent to the OpenAI-compatible API in place of
            the agent's catalog label; empty sends the label unchanged
        timeout_s: Total timeout for one provider call
        temperature: Sampling temperature
        max_tokens: Maximum tokens in the reply
    """
    groq_api_key: str = field(default_factory=lambda: get_env("GROQ_API_KEY"))
    gemini_api_key: str = field(default_factory=lambda: get_env("GEMINI_API_KEY"))
    groq_base_url: str = field(default_factory=lambda: get_env("COMPLETION_BASE_URL", "https://api.groq.com/openai/v1"))
    gemini_base_url: str = field(default_factory=lambda: get_env("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"))
    model_override: str = field(default_factory=lambda: get_env("COMPLETION_MODEL_OVERRIDE", DEFAULT_GROQ_MODEL))
    timeout_s: float = field(default_factory=lambda: get_env_float("COMPLETION_TIMEOUT_S", 30.0))
    temperature: float = field(default_factory=lambda: get_env_float("COMPLETION_TEMPERATURE", 0.7))
    max_tokens: int = field(default_factory=lambda: get_env_int("COMPLETION_MAX_TOKENS", 1024))

    def validate(self, models: Optional[List[str]] = None) -> bool:
        """
        Validate that every provider referenced by the given models has a key.

        Args:
            models: Model identifiers used by the agent catalog
        """
        models = models or []
        if any(m.startswith("gemini") for m in models) and not self.gemini_api_key:
            raise ConfigurationError("GEMINI_API_KEY is required")
        if any(not m.startswith("gemini") for m in models) and not self.groq_api_key:
            raise ConfigurationError("GROQ_API_KEY is required")
        if self.timeout_s <= 0:
            raise ConfigurationError("COMPLETION_TIMEOUT_S must be positive")
        return True

    @property
    def chat_url(self) -> str:
        """Get the full URL for OpenAI-compatible chat completion calls."""
        return f"{self.groq_base_url.rstrip('/')}/chat/completions"

    def gemini_url(self, model: str) -> str:
        """Get the generateContent URL for a Gemini model."""
        return f"{self.gemini_base_url.rstrip('/')}/models/{model}:generateContent"


@dataclass
class SpeechConfig:
    """
    Azure Speech Services configuration.

    Attributes:
        api_key: Azure Speech subscription key
        region: Azure region (e.g. "eastus")
        language: Recognition language
        voice_name: Neural voice used for synthesis
        timeout_s: Timeout for one recognition or synthesis call
    """
    api_key: str = field(default_factory=lambda: get_env("AZURE_SPEECH_API_KEY"))
    region: str = field(default_factory=lambda: get_env("AZURE_SPEECH_REGION"))
    language: str = field(default_factory=lambda: get_env("AZURE_SPEECH_LANGUAGE", "en-US"))
    voice_name: str = field(default_factory=lambda: get_env("AZURE_SPEECH_VOICE", "en-US-JennyNeural"))
    timeout_s: float = field(default_factory=lambda: get_env_float("SPEECH_TIMEOUT_S", 30.0))

    @property
    def is_configured(self) -> bool:
        """Check whether credentials are present."""
        return bool(self.api_key and self.region)

    def validate(self) -> bool:
        """Validate that required Azure Speech settings are configured."""
        if not self.api_key:
            raise ConfigurationError("AZURE_SPEECH_API_KEY is required")
        if not self.region:
            raise ConfigurationError("AZURE_SPEECH_REGION is required")
        return True


@dataclass
class GatewayConfig:
    """
    Request gateway configuration.

    Attributes:
        dispatcher_url: Base URL of the remote-procedure dispatcher
        dispatcher_timeout_s: Timeout for one dispatcher round trip
        default_agent_id: Agent used for audio input when none is given
        artifact_dir: Directory holding synthesized audio
        public_base_url: Externally visible base URL for audio links
    """
    dispatcher_url: str = field(default_factory=lambda: get_env("DISPATCHER_URL", "http://127.0.0.1:3000"))
    dispatcher_timeout_s: float = field(default_factory=lambda: get_env_float("DISPATCHER_TIMEOUT_S", 45.0))
    default_agent_id: str = field(default_factory=lambda: get_env("DEFAULT_AGENT_ID", "agent_003"))
    artifact_dir: str = field(default_factory=lambda: get_env("ARTIFACT_DIR", "./public/audio"))
    public_base_url: str = field(default_factory=lambda: get_env("PUBLIC_BASE_URL", "http://127.0.0.1:8000"))

    @property
    def artifact_path(self) -> Path:
        """Get the artifact directory as a Path object."""
        return Path(self.artifact_dir)


@dataclass
class MintConfig:
    """
    Minting gateway configuration.

    Attributes:
        ipfs_api_url: Upload endpoint of the IPFS-compatible pinning service
        ipfs_api_key: Optional bearer key for the pinning service
        ipfs_gateway_url: Public gateway prefix used to build content URLs
        ledger_rpc_url: Base URL of the ledger minting RPC
        ledger_api_key: Bearer key for the ledger RPC
        timeout_s: Timeout for one storage or ledger call
        confirm_polls: Inline confirmation polls after submission
        poll_interval_s: Delay between confirmation polls
    """
    ipfs_api_url: str = field(default_factory=lambda: get_env("IPFS_API_URL"))
    ipfs_api_key: str = field(default_factory=lambda: get_env("IPFS_API_KEY"))
    ipfs_gateway_url: str = field(default_factory=lambda: get_env("IPFS_GATEWAY_URL", "https://ipfs.io/ipfs"))
    ledger_rpc_url: str = field(default_factory=lambda: get_env("LEDGER_RPC_URL"))
    ledger_api_key: str = field(default_factory=lambda: get_env("LEDGER_API_KEY"))
    timeout_s: float = field(default_factory=lambda: get_env_float("LEDGER_TIMEOUT_S", 30.0))
    confirm_polls: int = field(default_factory=lambda: get_env_int("MINT_CONFIRM_POLLS", 3))
    poll_interval_s: float = field(default_factory=lambda: get_env_float("MINT_POLL_INTERVAL_S", 1.0))

    def validate(self) -> bool:
        """Validate minting settings."""
        if not self.ipfs_api_url:
            raise ConfigurationError("IPFS_API_URL is required")
        if not self.ledger_rpc_url:
            raise ConfigurationError("LEDGER_RPC_URL is required")
        if not self.ledger_api_key:
            raise ConfigurationError("LEDGER_API_KEY is required")
        if self.confirm_polls < 0:
            raise ConfigurationError("MINT_CONFIRM_POLLS cannot be negative")
        return True


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        file: Optional log file path
    """
    level: str = field(default_factory=lambda: get_env("LOG_LEVEL", "INFO"))
    file: Optional[str] = field(default_factory=lambda: get_env("LOG_FILE") or None)


@dataclass
class Settings:
    """
    Main settings container aggregating all configuration sections.

    This is the primary configuration interface for the application.
    Access via the singleton `settings` instance.

    Example:
        from echomint.config import settings

        settings.speech.validate()
        url = settings.gateway.dispatcher_url
    """
    completion: CompletionConfig = field(default_factory=CompletionConfig)
    speech: SpeechConfig = field(default_factory=SpeechConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    mint: MintConfig = field(default_factory=MintConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Application-level settings
    app_env: str = field(default_factory=lambda: get_env("APP_ENV", "development"))
    agents_file: Optional[str] = field(default_factory=lambda: get_env("AGENTS_FILE") or None)
    cors_origins: List[str] = field(default_factory=lambda: get_env_list("CORS_ORIGINS", "*"))

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"


# Singleton settings instance
# Import this in other modules: from echomint.config import settings
settings = Settings()
