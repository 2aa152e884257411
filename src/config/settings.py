"""
Centralized settings management using pydantic-settings.

All environment variables and configuration values are defined here.
Use get_settings() to access the singleton settings instance.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Required environment variables:
        - SUPABASE_URL: Supabase project URL
        - SUPABASE_SERVICE_KEY: Supabase service role key

    Optional environment variables:
        - HOST: Server host (default: 0.0.0.0)
        - PORT: Server port (default: 8080)
        - ENVIRONMENT: Environment name (development, staging, production)
        - CLASSIFIER_RULES_PATH: JSON file overriding the keyword rule tables
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Debug mode")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    # ==========================================================================
    # Server Configuration
    # ==========================================================================
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")
    workers: int = Field(default=4, description="Number of uvicorn workers")

    # CORS Configuration
    cors_origins: List[str] = Field(
        default=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        description="Allowed CORS origins"
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    # ==========================================================================
    # Supabase Configuration
    # ==========================================================================
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_service_key: str = Field(..., description="Supabase service role key")

    # ==========================================================================
    # Search Configuration
    # ==========================================================================
    search_default_limit: int = Field(default=20, description="Default page size for /api/search")
    search_max_limit: int = Field(default=100, description="Largest page size accepted by /api/search")
    search_candidate_multiplier: int = Field(
        default=3,
        description="Candidate rows fetched per requested result (room for post-filtering)"
    )
    brand_result_limit: int = Field(default=10, description="Max brand rows merged into search results")
    category_result_limit: int = Field(default=10, description="Max category rows merged into search results")

    suggestion_default_limit: int = Field(default=8, description="Default number of suggestions")
    suggestion_candidate_multiplier: int = Field(
        default=2,
        description="Candidate rows fetched per requested suggestion"
    )
    suggestion_brand_limit: int = Field(default=5, description="Max brand suggestions fetched")
    brand_listing_limit: int = Field(default=500, description="Max product rows read for a brand page")

    classifier_rules_path: Optional[Path] = Field(
        default=None,
        description="JSON file with category/brand keyword rule tables (defaults are built in)"
    )

    @field_validator("classifier_rules_path", mode="before")
    @classmethod
    def parse_classifier_rules_path(cls, v):
        if isinstance(v, str):
            return Path(v) if v.strip() else None
        return v

    # ==========================================================================
    # Analytics
    # ==========================================================================
    analytics_enabled: bool = Field(
        default=True,
        description="Record search queries in the search_analytics table"
    )
    analytics_workers: int = Field(
        default=1,
        description="Background threads used for fire-and-forget analytics writes"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses lru_cache to ensure only one instance is created.
    Settings are loaded from environment variables and .env file.

    Returns:
        Settings: The application settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    # Try to find .env file in project root
    env_file = Path(__file__).parent.parent.parent / ".env"
    if env_file.exists():
        os.environ.setdefault("ENV_FILE", str(env_file))

    return Settings(_env_file=env_file if env_file.exists() else None)


def get_settings_for_testing(**overrides) -> Settings:
    """
    Create a settings instance for testing with optional overrides.

    This bypasses the cache to allow different settings in tests.

    Args:
        **overrides: Setting values to override

    Returns:
        Settings: A new settings instance with overrides applied
    """
    test_defaults = {
        "supabase_url": "https://test.supabase.co",
        "supabase_service_key": "test-key",
        "environment": "testing",
        "debug": True,
    }
    test_defaults.update(overrides)

    return Settings(_env_file=None, **test_defaults)
