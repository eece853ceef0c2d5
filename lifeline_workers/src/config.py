"""Configuration management for the ingest workers.

Uses Pydantic Settings for environment-based configuration. Variable names
match the API service (``MONGO_URI``, ``MONGO_DB``) so both processes can
share one environment file.
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MongoConfig(BaseSettings):
    """MongoDB connection configuration."""

    uri: Optional[str] = Field(default=None, description="MongoDB connection URI")
    db: str = Field(default="cl", description="Database name")
    server_selection_timeout_ms: int = Field(default=5000, description="Server selection timeout", gt=0)

    model_config = SettingsConfigDict(env_prefix="MONGO_", extra="ignore")


class FccConfig(BaseSettings):
    """FCC National Broadband Map CSV download configuration."""

    csv_url_template: Optional[str] = Field(
        default=None,
        description="State CSV URL with {YYYYMM} and {STATE} placeholders",
    )
    download_timeout_seconds: float = Field(default=600.0, description="Whole-download timeout", gt=0)
    chunk_size: int = Field(default=64 * 1024, description="Streaming chunk size (bytes)", gt=0)

    model_config = SettingsConfigDict(env_prefix="FCC_", extra="ignore")


class WorkerConfig(BaseSettings):
    """Main worker configuration."""

    # Sub-configurations
    mongo: MongoConfig = Field(default_factory=MongoConfig)
    fcc: FccConfig = Field(default_factory=FccConfig)

    # Service configuration
    service_name: str = Field(default="civic-lifeline-worker", description="Service name")
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log format: json|text")
    environment: str = Field(default="production", description="Deployment environment")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got: {v}")
        return v_upper

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


# Global config instance
_config_instance: Optional[WorkerConfig] = None


def get_config() -> WorkerConfig:
    """Get or create configuration instance.

    Returns:
        WorkerConfig instance
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = WorkerConfig()
    return _config_instance


def reset_config() -> None:
    """Drop the cached instance so the next ``get_config`` re-reads the environment."""
    global _config_instance
    _config_instance = None
