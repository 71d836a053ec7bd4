"""
Configuration module with strict validation.

Key principles:
- Constructing a client from settings does NOT require credentials up front
- Any call that talks to OPS DOES require them (fails early with clear error)
- Retry, backoff and timeout settings are configurable
- Safe defaults for all optional settings
"""
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from epo_ops.core.api_errors import ConfigurationError


DEFAULT_BASE_URL = "https://ops.epo.org/3.2/rest-services"
DEFAULT_AUTH_URL = "https://ops.epo.org/3.2/auth/accesstoken"
DEFAULT_DEVELOPERS_URL = "https://ops.epo.org/3.2/developers"


class Settings(BaseSettings):
    """Client settings with validation.

    Loads from EPO_OPS_* environment variables and .env file.
    """
    model_config = SettingsConfigDict(
        env_prefix="EPO_OPS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # OAuth2 client credentials (REQUIRED for any API call)
    consumer_key: Optional[str] = Field(
        default=None,
        description="OPS consumer key issued in the EPO developer portal"
    )

    consumer_secret: Optional[str] = Field(
        default=None,
        description="OPS consumer secret issued in the EPO developer portal"
    )

    # Endpoints
    base_url: str = Field(
        default=DEFAULT_BASE_URL,
        description="Base URL of the OPS REST services"
    )

    auth_url: str = Field(
        default=DEFAULT_AUTH_URL,
        description="OAuth2 token endpoint (override mainly for testing)"
    )

    developers_url: str = Field(
        default=DEFAULT_DEVELOPERS_URL,
        description="Base URL of the developer (usage statistics) API"
    )

    # Retry Configuration
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Maximum number of retries for failed API requests"
    )

    retry_delay: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Base delay in seconds before the first retry"
    )

    backoff_factor: float = Field(
        default=2.0,
        ge=1.0,
        le=10.0,
        description="Exponential backoff factor for retries"
    )

    # HTTP
    timeout: float = Field(
        default=30.0,
        gt=0.0,
        le=600.0,
        description="Per-request HTTP timeout in seconds"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v_upper

    def require_credentials(self) -> tuple[str, str]:
        """
        Get consumer key and secret, raising clear error if either is missing.

        Call this before building a client that will talk to OPS.

        Raises:
            ConfigurationError: If the key or secret is not configured

        Returns:
            (consumer_key, consumer_secret)
        """
        if not self.consumer_key:
            raise ConfigurationError(
                "EPO_OPS_CONSUMER_KEY is required. "
                "Please set it in your .env file or environment variables. "
                "Register an app at: https://developers.epo.org/",
                source="epo_ops",
                missing_config="consumer_key",
            )
        if not self.consumer_secret:
            raise ConfigurationError(
                "EPO_OPS_CONSUMER_SECRET is required. "
                "Please set it in your .env file or environment variables.",
                source="epo_ops",
                missing_config="consumer_secret",
            )
        return self.consumer_key, self.consumer_secret


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create the global settings instance.

    Lazily loaded so that tests can change the environment and call
    reset_settings() before the first client is built.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """
    Reset the global settings instance.

    Useful for testing to ensure clean state between tests.
    """
    global _settings
    _settings = None
