"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database (decision history)
    database_url: str = "sqlite:///./issuing_gateway.db"

    # Issuing provider
    stripe_api_key: str = ""
    stripe_api_base: str = "https://api.stripe.com"
    stripe_api_version: str = "2025-06-30.basil"
    stripe_webhook_secret: str | None = None
    webhook_tolerance_seconds: int = 300

    # Service
    service_name: str = "issuing-gateway"
    log_level: str = "INFO"

    # Authorization webhook contract: the provider waits 2s for approve/decline
    authorization_deadline_ms: int = 2000
    http_timeout_seconds: float = 1.5

    # Spending policy
    policy_file: str | None = None
    spending_limit_preset: str = "standard_employee"

    # Webhook event feed
    event_log_capacity: int = 50


settings = Settings()
