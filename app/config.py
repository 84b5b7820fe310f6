from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):

    # App Config
    app_name: str = "Xclusive API"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    version: str = "1.0.0"

    # Database
    database_url: str = "sqlite+aiosqlite:///./xclusive.db"

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # JWT
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    refresh_token_expire_minutes: int = 60 * 24 * 7

    # Celery
    celery_broker_url: str = "redis://localhost:6379/1"
    celery_result_backend: str = "redis://localhost:6379/2"
    scheduler_interval_seconds: int = 60

    # Payments (Stripe Checkout)
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    payment_success_url: str = "http://localhost:5173/payment/callback?reference={reference}"
    payment_cancel_url: str = "http://localhost:5173/fan/subscriptions"
    default_currency: str = "GHS"

    # Subscriptions
    billing_period_days: int = 30
    renewal_grace_days: int = 7

    # Earnings and payouts
    platform_commission_rate: float = 0.05
    payment_processing_fee_rate: float = 0.035
    minimum_payout: float = 10.0
    payout_day_of_month: int = 1
    payout_hour: int = 9

    # Comments
    comment_preview_limit: int = 5

    # Cache
    cache_ttl_creator_tiers: int = 600

    # Security
    cors_origins: str = "*"

    # Pagination
    default_page_size: int = 20
    max_page_size: int = 100

    # Message
    max_message_length: int = 2000

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore", encoding="utf-8")


# Global settings instance
settings = Settings()

@lru_cache
def get_settings():
    return settings
