"""Configuration and settings management using pydantic-settings."""
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable loading."""

    model_config = SettingsConfigDict(
        env_prefix="FLOWRUNNER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Core service settings
    env: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Log level")
    base_url: str = Field(
        default="http://localhost:8000",
        description="Public base URL used to build webhook callback URLs",
    )

    # Execution history
    history_capacity: int = Field(
        default=50,
        description="Runs kept per workflow in the execution ledger",
    )

    # Runtime limits
    max_concurrent_runs: int = Field(
        default=8,
        description="Worker threads available for background runs",
    )
    max_steps: int = Field(
        default=1000,
        description="Safety limit on node executions in a single run",
    )
    http_timeout_s: float = Field(
        default=30.0,
        description="Default timeout for outbound HTTP calls",
    )

    # Telegram trigger adapter
    telegram_api_base: str = Field(
        default="https://api.telegram.org",
        description="Telegram Bot API base URL",
    )

    @field_validator("history_capacity", "max_concurrent_runs", "max_steps")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate that limits are positive."""
        if v <= 0:
            raise ValueError("value must be positive")
        return v

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URL so paths can be appended."""
        return v.rstrip("/")


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (useful for testing)."""
    global _settings
    _settings = None
