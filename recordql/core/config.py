"""
Configuration Management

Centralized configuration using Pydantic Settings.

Every setting can be overridden through an environment variable with the
``RECORDQL_`` prefix (for example ``RECORDQL_MAX_QUERY_DEPTH=8``) or through
a ``.env`` file in the working directory.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings."""

    model_config = SettingsConfigDict(
        env_prefix="RECORDQL_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = Field(default="WARNING")

    # SQL export
    default_dialect: str = Field(default="standard")

    # Execution
    max_query_depth: int = Field(default=32, ge=1)
    group_key_separator: str = Field(default="|")
    string_agg_separator: str = Field(default=",")

    # Performance analysis thresholds
    max_joins_warning: int = Field(default=3, ge=0)
    max_subqueries_warning: int = Field(default=2, ge=0)


# Global settings instance
settings = Settings()
