"""
Configuration management using Pydantic settings.
Handles database URL, Hospitable credentials, queue limits and environment variables.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings
from typing import Optional, List, Union
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings with Docker environment variable support."""

    # Application configuration
    app_name: str = "StayDirectly API"
    app_version: str = "1.0.0"
    environment: str = "development"
    debug: bool = False
    testing: bool = False

    # Database configuration
    database_url: str = "postgresql+asyncpg://postgres:postgres@db:5432/staydirectly"

    # Hospitable Connect credentials
    hospitable_platform_token: Optional[str] = None
    hospitable_client_id: Optional[str] = None
    hospitable_client_secret: Optional[str] = None
    hospitable_redirect_uri: str = "http://localhost:5000/auth/callback"
    hospitable_api_base_url: str = "https://connect.hospitable.com/api/v1"
    hospitable_token_url: str = "https://connect.hospitable.com/oauth/token"
    hospitable_connect_version: str = "2022-11-01"
    hospitable_user_connect_version: str = "2024-01"
    hospitable_timeout_seconds: float = 30.0

    # Outbound request queue (per key, fixed window)
    outbound_max_requests: int = 30
    outbound_window_seconds: float = 60.0
    outbound_request_spacing: float = 1.0
    outbound_reset_buffer: float = 0.1

    # Import and image caching
    cache_freshness_days: int = 7
    image_fetch_max_attempts: int = 3
    image_backoff_base_seconds: float = 1.0
    max_additional_images: int = 19

    # Onboarding flow persistence
    onboarding_state_dir: str = "./data/onboarding"

    # Inbound rate limiting for /api/hospitable routes
    enable_rate_limiting: bool = True
    rate_limit_requests: int = 50
    rate_limit_window: int = 300

    # API configuration
    cors_origins: Union[List[str], str] = [
        "http://localhost:3000",
        "http://localhost:5000",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5000",
    ]

    # Pagination defaults
    default_page_size: int = 10
    max_page_size: int = 100

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 5000

    @field_validator("database_url", mode="before")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure an async driver is used."""
        if v and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        if v and v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql+asyncpg://", 1)
        if v and v.startswith("sqlite://"):
            return v.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return v

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment setting."""
        allowed_envs = ["development", "testing", "staging", "production"]
        if v not in allowed_envs:
            raise ValueError(f"Environment must be one of: {allowed_envs}")
        return v

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Accept a comma-separated string of origins."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing" or self.testing

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one instance of settings throughout the app lifecycle.
    """
    return Settings()


# Global settings instance
settings = get_settings()
