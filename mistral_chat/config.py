"""Plugin configuration using Pydantic Settings.

All configuration is loaded from environment variables.
No secrets are hardcoded.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Runtime environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class MistralSettings(BaseSettings):
    """Mistral API configuration.

    ``MISTRAL_API_KEY`` is the fallback credential used when the host's
    plugin secret is not configured.
    """

    model_config = SettingsConfigDict(env_prefix="MISTRAL_")

    base_url: str = Field(
        default="https://api.mistral.ai/v1",
        description="Mistral API base URL",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="API key (fallback for the plugin secret)",
    )
    timeout: float = Field(
        default=120.0,
        description="Request timeout in seconds",
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        description="Maximum attempts per request, including the first",
    )
    initial_backoff: float = Field(
        default=0.5,
        ge=0,
        description="Delay before the first retry in seconds",
    )
    max_backoff: float = Field(
        default=8.0,
        ge=0,
        description="Upper bound for a single retry delay in seconds",
    )


class CacheSettings(BaseSettings):
    """Response cache configuration."""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    max_entries: int = Field(
        default=128,
        ge=1,
        description="Maximum cached responses before LRU eviction",
    )
    ttl_seconds: float = Field(
        default=3600.0,
        gt=0,
        description="Lifetime of a cached response in seconds",
    )


class Settings(BaseSettings):
    """Main plugin settings.

    Aggregates all configuration sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Runtime environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    # Nested settings
    mistral: MistralSettings = Field(default_factory=MistralSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached plugin settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()
