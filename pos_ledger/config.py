from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # App
    app_name: str = "Detailing POS Ledger API"
    app_env: str = "development"
    debug: bool = True

    # Storage
    database_url: str = "sqlite:///./pos_ledger.db"

    # Stripe
    stripe_secret_key: str = ""
    gateway_timeout_seconds: float = 30.0

    # Ledger
    sales_tax_rate: float = 0.0  # Washington state - no sales tax on services
    receipt_business_name: str = "Mobile Detailing Co."

    # Logging
    log_level: str = "INFO"
    log_format: str = "standard"  # or "json"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
