"""Application configuration and settings.

Objective:
    Provide a single source of truth for runtime configuration used across the
    application (Gmail fetching, LLM providers, batch classification behavior
    and local storage).

Responsibilities:
    - Define the set of supported LLM providers (:class:`AIProvider`).
    - Load environment-driven settings via :class:`Settings` (Pydantic
      BaseSettings).
    - Provide small convenience helpers for frequently used derived settings
      (e.g., the model id or fallback API key of a given provider).

High-level call tree:
    - :func:`get_settings` -> returns :class:`Settings`
    - :class:`Settings`
        - :meth:`Settings.model_for`
        - :meth:`Settings.api_key_for`

Operational notes:
    - ``Settings`` loads from ``.env`` by default via ``pydantic-settings``.
    - Most modules accept a ``Settings`` object explicitly to enable testing;
      the orchestrator falls back to :func:`get_settings` when not provided.
    - API keys configured here are only fallbacks. Callers normally pass the
      credential per request and it is never written back to settings.
"""

from enum import Enum
from pathlib import Path
from typing import Optional
import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Number of most-recent messages fetched per run
DEFAULT_FETCH_LIMIT = 15


class AIProvider(str, Enum):
    """LLM providers that can classify messages.

    The Enum values are the identifiers accepted on the classify request
    (``{"provider": "openai"}``).
    """

    OPENAI = "openai"
    GEMINI = "gemini"
    GROQ = "groq"

    @property
    def display_name(self) -> str:
        """Human-friendly provider name used in error messages."""
        return {
            AIProvider.OPENAI: "OpenAI",
            AIProvider.GEMINI: "Gemini",
            AIProvider.GROQ: "Groq",
        }[self]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The settings model is intentionally flat and human-editable via `.env`.
    Most fields map directly to environment variables.

    Attributes:
        openai_api_key: Fallback OpenAI API key.
        gemini_api_key: Fallback Gemini API key.
        groq_api_key: Fallback Groq API key.
        default_provider: Provider used when none is requested.
        classification_temperature: Sampling temperature for every provider.
        classification_concurrency: Max concurrent provider calls per batch.
        classification_timeout_seconds: Deadline for a whole batch.
        provider_request_timeout_seconds: Timeout for one provider request.
            SDK clients never retry, so this bounds each call.
        fetch_limit: Number of most-recent messages to fetch.
        gmail_access_token: OAuth access token for the Gmail API.
        store_path: JSON file used by the CLI to persist results.
        log_level: Logging level.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # LLM providers
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    openai_model: str = Field(default="gpt-4o", description="OpenAI model name")
    gemini_api_key: Optional[str] = Field(default=None, description="Gemini API key")
    gemini_model: str = Field(
        default="gemini-2.0-flash-exp", description="Gemini model name"
    )
    groq_api_key: Optional[str] = Field(default=None, description="Groq API key")
    groq_model: str = Field(
        default="llama-3.3-70b-versatile", description="Groq model name"
    )
    default_provider: AIProvider = Field(
        default=AIProvider.OPENAI, description="Provider used when none is requested"
    )

    # Classification Settings
    classification_temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Sampling temperature. Kept low because parsing expects a single word.",
    )
    classification_max_tokens: int = Field(
        default=20, ge=1, le=1000, description="Max tokens in a classification reply"
    )
    classification_concurrency: int = Field(
        default=4, ge=1, le=16, description="Concurrent provider calls per batch"
    )
    classification_timeout_seconds: Optional[float] = Field(
        default=120.0,
        gt=0,
        description="Deadline for a whole batch; unset for no deadline",
    )
    provider_request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for a single provider HTTP request",
    )

    # Gmail
    gmail_access_token: Optional[str] = Field(
        default=None, description="OAuth access token with gmail.readonly scope"
    )
    fetch_limit: int = Field(
        default=DEFAULT_FETCH_LIMIT, ge=1, le=100, description="Messages per fetch"
    )

    # Processing Settings
    store_path: Path = Field(
        default=Path.home() / ".inbox_classifier_store.json",
        description="Local key-value store used by the CLI",
    )
    log_level: str = Field(default="INFO", description="Logging level")

    def model_for(self, provider: AIProvider) -> str:
        """
        Get the configured model id for a provider.

        Args:
            provider: Provider to look up.

        Returns:
            str: Model identifier.
        """
        return {
            AIProvider.OPENAI: self.openai_model,
            AIProvider.GEMINI: self.gemini_model,
            AIProvider.GROQ: self.groq_model,
        }[provider]

    def api_key_for(self, provider: AIProvider) -> Optional[str]:
        """
        Get the fallback API key configured for a provider.

        This is used by the CLI when no key was supplied on the command line
        or in the local store.

        Args:
            provider: Provider to look up.

        Returns:
            Optional[str]: API key, or None if not configured.
        """
        return {
            AIProvider.OPENAI: self.openai_api_key,
            AIProvider.GEMINI: self.gemini_api_key,
            AIProvider.GROQ: self.groq_api_key,
        }[provider]


def get_settings() -> Settings:
    """
    Load and return application settings.

    This helper is a convenience for production code. For tests, you typically
    construct a :class:`Settings` instance directly or pass a mocked settings
    object.

    Returns:
        Settings: Application settings instance.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()
