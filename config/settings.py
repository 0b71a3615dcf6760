"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon/public key"
    )

    # ===================
    # CATALOG TABLES
    # ===================
    products_table: str = Field(
        default="alloy_master",
        description="Canonical product catalog table"
    )
    movements_table: str = Field(
        default="inventory_movements",
        description="Audit table for stock movements"
    )

    # ===================
    # STOCK UPLOAD
    # ===================
    session_ttl_minutes: int = Field(
        default=60,
        ge=5,
        le=1440,
        description="Minutes an idle reconciliation session is kept"
    )
    max_upload_mb: int = Field(
        default=50,
        ge=1,
        le=200,
        description="Largest accepted spreadsheet upload in MB"
    )
    search_min_query_length: int = Field(
        default=2,
        ge=1,
        le=10,
        description="Shortest query sent to product search"
    )
    search_default_limit: int = Field(
        default=30,
        ge=1,
        le=100,
        description="Default number of search candidates"
    )
    search_max_limit: int = Field(
        default=100,
        ge=1,
        le=500,
        description="Upper bound for search candidates"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def max_upload_bytes(self) -> int:
        """Upload limit in bytes."""
        return self.max_upload_mb * 1024 * 1024


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
