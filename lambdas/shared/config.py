"""Environment configuration for Lambda functions."""
import os
from dataclasses import dataclass

from .exceptions import ConfigurationError

MODEL_PROVIDERS = ("mistral", "claude")


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    table_name: str
    environment: str
    model_provider: str
    claude_api_key_param: str | None
    log_level: str

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables.

        Returns:
            Config instance with values from environment

        Raises:
            ConfigurationError: If required environment variables are missing
                or MODEL_PROVIDER names an unknown provider
        """
        table_name = os.environ.get("TABLE_NAME")
        if not table_name:
            raise ConfigurationError(
                "TABLE_NAME environment variable is required",
                config_key="TABLE_NAME",
            )

        model_provider = os.environ.get("MODEL_PROVIDER", "mistral").lower()
        if model_provider not in MODEL_PROVIDERS:
            raise ConfigurationError(
                f"MODEL_PROVIDER must be one of {', '.join(MODEL_PROVIDERS)}",
                config_key="MODEL_PROVIDER",
            )

        return cls(
            table_name=table_name,
            environment=os.environ.get("ENVIRONMENT", "dev"),
            model_provider=model_provider,
            claude_api_key_param=os.environ.get("CLAUDE_API_KEY_PARAM"),
            log_level=os.environ.get("POWERTOOLS_LOG_LEVEL", "INFO"),
        )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "prod"


def get_config() -> Config:
    """Get cached configuration instance.

    Returns:
        Config instance (cached after first call)
    """
    if not hasattr(get_config, "_config"):
        get_config._config = Config.from_env()
    return get_config._config


def reset_config() -> None:
    """Drop the cached configuration (for testing)."""
    if hasattr(get_config, "_config"):
        del get_config._config
