"""
FastAPI application configuration using Pydantic Settings.

Provides centralized configuration for:
- Upstream dataset endpoints (USDA, HUD, BLS, Nominatim)
- Retry counts and timeouts per upstream
- Cache TTLs per dataset
- Redis and MongoDB connections
- CORS, logging and moderation settings

Environment variable names match the deployment's existing names
(``REDIS_URL``, ``MONGO_URI``, ``HUD_FMR_URL``, ...) so no prefix is used.
All settings support environment variable overrides and .env file loading.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables are loaded from:
    1. System environment
    2. .env file in the current directory
    3. Default values defined below
    """

    # =========================================================================
    # API Settings
    # =========================================================================

    app_name: str = Field(
        default="Civic Lifeline API",
        description="Application name"
    )
    app_version: str = Field(
        default="0.1.0",
        description="API version"
    )
    api_prefix: str = Field(
        default="/api",
        description="API URL prefix"
    )

    debug: bool = Field(
        default=False,
        description="Debug mode - enables verbose logging and error traces"
    )
    environment: str = Field(
        default="production",
        description="Environment: development|staging|production"
    )

    host: str = Field(
        default="0.0.0.0",
        description="API bind host"
    )
    port: int = Field(
        default=8000,
        description="API bind port",
        gt=0,
        lt=65536
    )

    # =========================================================================
    # USDA SNAP (ArcGIS feature service)
    # =========================================================================

    usda_snap_arcgis_feature_url: str = Field(
        default=(
            "https://services2.arcgis.com/VhQ18K5S5F7fNwJ0/ArcGIS/rest/services/"
            "USDA_SNAP_Retailers/FeatureServer/0/query"
        ),
        validation_alias=AliasChoices("USDA_SNAP_ARCGIS_FEATURE_URL", "USDA_SNAP_ARCGIS_URL"),
        description="ArcGIS FeatureServer query endpoint for SNAP retailers"
    )
    usda_snap_spatial_reference: int = Field(
        default=4326,
        description=(
            "Spatial reference of the query envelope (4326 or 102100). "
            "The USDA SNAP retailer layer is queried in Web Mercator, so set 102100 for it"
        )
    )
    snap_timeout_seconds: float = Field(default=8.0, description="Per-attempt timeout", gt=0)
    snap_max_retries: int = Field(default=4, description="Retries after the first attempt", ge=0, le=10)
    snap_cache_ttl: int = Field(default=600, description="Base cache TTL (seconds)", gt=0)
    snap_cache_jitter: int = Field(default=1200, description="Random TTL spread (seconds)", ge=0)

    # =========================================================================
    # HUD (housing counselors, fair market rents)
    # =========================================================================

    hud_counselors_url: str = Field(
        default="https://data.hud.gov/housing_counseling/search",
        description="HUD housing counselor proximity search endpoint"
    )
    hud_fmr_url: str = Field(
        default="https://www.huduser.gov/hudapi/public/fmr/data",
        description="HUD fair market rent endpoint (expects ?fips=&year=)"
    )
    hud_token: Optional[str] = Field(
        default=None,
        description="HUD User API bearer token"
    )
    hud_timeout_seconds: float = Field(default=10.0, description="Per-attempt timeout", gt=0)
    hud_max_retries: int = Field(default=3, description="Retries after the first attempt", ge=0, le=10)
    hud_counselors_cache_ttl: int = Field(default=3600, description="Cache TTL (seconds)", gt=0)
    hud_fmr_cache_ttl: int = Field(default=86400, description="Cache TTL (seconds)", gt=0)

    # =========================================================================
    # BLS (LAUS unemployment)
    # =========================================================================

    bls_api_url: str = Field(
        default="https://api.bls.gov/publicAPI/v2/timeseries/data/",
        description="BLS public API v2 timeseries endpoint"
    )
    bls_api_key: Optional[str] = Field(
        default=None,
        description="BLS registration key (raises daily limits)"
    )
    bls_timeout_seconds: float = Field(default=10.0, description="Per-attempt timeout", gt=0)
    bls_max_retries: int = Field(default=3, description="Retries after the first attempt", ge=0, le=10)
    bls_cache_ttl: int = Field(default=86400, description="Cache TTL (seconds)", gt=0)

    # =========================================================================
    # Geocoding (Nominatim)
    # =========================================================================

    nominatim_url: str = Field(
        default="https://nominatim.openstreetmap.org/search",
        description="Nominatim search endpoint"
    )
    geocode_user_agent: str = Field(
        default="CivicLifeline/1.0 (contact@civiclifeline.org)",
        description="User-Agent required by the Nominatim usage policy"
    )
    geocode_timeout_seconds: float = Field(default=8.0, description="Per-attempt timeout", gt=0)
    geocode_max_retries: int = Field(default=1, description="Retries after the first attempt", ge=0, le=10)
    geocode_cache_ttl: int = Field(default=86400, description="Cache TTL (seconds)", gt=0)

    # =========================================================================
    # Retry Settings (shared)
    # =========================================================================

    retry_initial_delay: float = Field(default=0.2, description="First backoff delay (seconds)", gt=0)
    retry_max_delay: float = Field(default=2.0, description="Backoff cap (seconds)", gt=0)
    retry_jitter_range: float = Field(
        default=0.1,
        description="Proportional jitter applied to each backoff delay",
        ge=0.0,
        le=1.0
    )
    retry_client_errors: bool = Field(
        default=False,
        description="Retry 4xx responses other than 408/429"
    )

    # =========================================================================
    # Storage Settings
    # =========================================================================

    redis_url: Optional[str] = Field(
        default=None,
        description="Redis URL for the response cache (caching disabled when unset)"
    )
    mongo_uri: Optional[str] = Field(
        default=None,
        description="MongoDB connection URI (resource and broadband routes need it)"
    )
    mongo_db: str = Field(
        default="cl",
        description="MongoDB database name"
    )
    mongo_server_selection_timeout_ms: int = Field(
        default=5000,
        description="MongoDB server selection timeout",
        gt=0
    )

    # =========================================================================
    # Moderation Settings
    # =========================================================================

    moderator_api_key: Optional[str] = Field(
        default=None,
        description="When set, resource verification requires this key"
    )
    moderator_api_key_header: str = Field(
        default="X-API-Key",
        description="Header carrying the moderator key"
    )
    resources_max_results: int = Field(
        default=500,
        description="Maximum resources returned by a listing",
        gt=0,
        le=5000
    )

    # =========================================================================
    # CORS Settings
    # =========================================================================

    cors_enabled: bool = Field(
        default=True,
        description="Enable CORS middleware"
    )
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    # =========================================================================
    # Logging Settings
    # =========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level: DEBUG|INFO|WARNING|ERROR|CRITICAL"
    )
    log_format: str = Field(
        default="json",
        description="Log format: json|text"
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got: {v}")
        return v_upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is one of the allowed values."""
        allowed = ["development", "staging", "production", "test"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"environment must be one of {allowed}, got: {v}")
        return v_lower

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        allowed = ["json", "text"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got: {v}")
        return v_lower

    @field_validator("usda_snap_spatial_reference")
    @classmethod
    def validate_spatial_reference(cls, v: int) -> int:
        """Only geographic WGS84 and Web Mercator envelopes are supported."""
        if v not in (4326, 102100):
            raise ValueError(f"usda_snap_spatial_reference must be 4326 or 102100, got: {v}")
        return v

    @field_validator("redis_url", "mongo_uri", "hud_token", "bls_api_key", "moderator_api_key")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat empty environment values as unset."""
        if v is not None and not v.strip():
            return None
        return v

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    # =========================================================================
    # Model Config
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once and shared
    across the application.

    Returns:
        Settings: Cached settings instance
    """
    return Settings()


def clear_settings_cache():
    """
    Clear the settings cache.

    Useful for testing when you need to reload settings with different
    environment variables.
    """
    get_settings.cache_clear()
