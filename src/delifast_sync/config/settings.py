"""Configuration management using Pydantic Settings.

Loads configuration from environment variables with .env file support.
"""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration."""

    # Delifast API Configuration
    delifast_base_url: str = "https://portal.delifast.ae/api"
    token_expiry_hours: int = 24
    token_refresh_minutes: int = 30  # Refresh this long before expiry
    http_timeout_seconds: float = 30.0

    # Credential encryption
    encryption_key: str = "delifast_shopify_app_default_key_change_in_production"

    # Shopify Configuration
    shopify_api_version: str = "2024-01"
    shopify_api_secret: Optional[str] = None

    # Job Configuration
    job_secret: Optional[str] = None
    max_lookup_attempts: int = 24
    lookup_interval_minutes: int = 60
    scheduler_enabled: bool = False

    # Dashboard / manual actions
    dashboard_api_key: Optional[str] = None

    # Database Configuration
    database_url: str = "sqlite+aiosqlite:///./delifast.db"

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    environment: str = "development"

    # GlitchTip Error Monitoring
    glitchtip_dsn: Optional[str] = None

    class Config:
        """Pydantic config."""

        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


# Create a global settings instance
settings = Settings()
