"""
Application Settings for CyberHub

Centralized configuration using Pydantic Settings with .env support.
All environment variables are validated at startup.
"""

from functools import lru_cache
from typing import Optional
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Database access uses DATABASE_URL when set, otherwise the Postgres
    DSN is derived from SUPABASE_URL + SUPABASE_PASSWORD.
    """

    # Supabase Configuration
    supabase_url: str
    supabase_anon_key: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    supabase_jwt_secret: Optional[str] = None

    # Application Settings
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # CORS Configuration
    frontend_url: str = "http://localhost:3000"
    allowed_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Stripe Configuration
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_pro_price_id: Optional[str] = None
    pro_monthly_price_cents: int = 2000

    # Admin
    admin_api_key: Optional[str] = None

    # Webhook processing
    webhook_max_update_attempts: int = 3

    # Database Configuration (SQLModel/SQLAlchemy)
    supabase_password: Optional[str] = None
    database_url: Optional[str] = None
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_pool_timeout: int = 30
    database_echo: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_stripe_keys(self) -> "Settings":
        """Require a webhook secret whenever Stripe is enabled in production."""
        if self.is_production and self.stripe_secret_key and not self.stripe_webhook_secret:
            raise ValueError(
                "STRIPE_WEBHOOK_SECRET required when STRIPE_SECRET_KEY is set in production"
            )

        if self.webhook_max_update_attempts < 1:
            raise ValueError("WEBHOOK_MAX_UPDATE_ATTEMPTS must be at least 1")

        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment.lower() == "development"

    @property
    def database_configured(self) -> bool:
        """Whether enough configuration exists to open a database pool."""
        return bool(self.database_url or self.supabase_password)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
