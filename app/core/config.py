"""
Application configuration and settings management
"""
import os
from typing import List, Optional
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "Casaora"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"
    SITE_URL: str = os.getenv("SITE_URL", "http://localhost:3000")
    CORS_ORIGINS: List[str] = []

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "sqlite:///./casaora.db"
    ).replace("postgres://", "postgresql://", 1)

    # Authentication
    SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me-casaora-development-secret-key")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days
    ADMIN_EMAIL: Optional[str] = os.getenv("ADMIN_EMAIL")
    ADMIN_PASSWORD: Optional[str] = os.getenv("ADMIN_PASSWORD")

    # Stripe
    STRIPE_SECRET_KEY: str = os.getenv("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET: str = os.getenv("STRIPE_WEBHOOK_SECRET", "")
    STRIPE_STATEMENT_DESCRIPTOR: str = "Casaora Payout"

    # PayPal
    PAYPAL_CLIENT_ID: str = os.getenv("PAYPAL_CLIENT_ID", "")
    PAYPAL_CLIENT_SECRET: str = os.getenv("PAYPAL_CLIENT_SECRET", "")
    PAYPAL_WEBHOOK_ID: str = os.getenv("PAYPAL_WEBHOOK_ID", "")
    PAYPAL_ENVIRONMENT: str = os.getenv("PAYPAL_ENVIRONMENT", "sandbox")  # sandbox or live
    PAYPAL_TIMEOUT_SECONDS: int = 15

    # Background checks
    CHECKR_WEBHOOK_SECRET: str = os.getenv("CHECKR_WEBHOOK_SECRET", "")
    TRUORA_WEBHOOK_SECRET: str = os.getenv("TRUORA_WEBHOOK_SECRET", "")

    # Webhooks
    WEBHOOK_TOLERANCE_SECONDS: int = 300
    WEBHOOK_FUTURE_SKEW_SECONDS: int = 60

    # Cron
    CRON_SECRET: str = os.getenv("CRON_SECRET", "")

    # Sanity CMS
    SANITY_PROJECT_ID: str = os.getenv("SANITY_PROJECT_ID", "")
    SANITY_DATASET: str = os.getenv("SANITY_DATASET", "production")
    SANITY_API_VERSION: str = "2024-01-01"
    SANITY_API_TOKEN: Optional[str] = os.getenv("SANITY_API_TOKEN")
    SANITY_PREVIEW_SECRET: str = os.getenv("SANITY_PREVIEW_SECRET", "")
    DRAFT_MODE_COOKIE: str = "casaora_draft_mode"
    DRAFT_MODE_TTL_MINUTES: int = 60

    # AWS SES (Email)
    AWS_ACCESS_KEY_ID: Optional[str] = os.getenv("AWS_ACCESS_KEY_ID")
    AWS_SECRET_ACCESS_KEY: Optional[str] = os.getenv("AWS_SECRET_ACCESS_KEY")
    SES_REGION: str = os.getenv("SES_REGION", "us-east-1")
    SES_FROM_EMAIL: str = os.getenv("SES_FROM_EMAIL", "no-reply@casaora.co")
    SES_FROM_NAME: str = os.getenv("SES_FROM_NAME", "Casaora")
    EMAIL_ENABLED: bool = False

    # Expo push
    PUSH_ENABLED: bool = False
    EXPO_PUSH_URL: str = "https://exp.host/--/api/v2/push/send"
    EXPO_ACCESS_TOKEN: Optional[str] = os.getenv("EXPO_ACCESS_TOKEN")

    # Bookings
    CHECK_IN_RADIUS_METERS: int = 150
    DISPUTE_WINDOW_HOURS: int = 48
    MIN_BOOKING_MINUTES: int = 60
    MAX_BOOKING_MINUTES: int = 480
    MAX_TIP_AMOUNT: int = 1_000_000

    # Balance and payouts
    BALANCE_CLEARANCE_HOURS: int = 24
    INSTANT_PAYOUT_FEE_PERCENTAGE: float = 1.5
    MINIMUM_INSTANT_PAYOUT: int = 50_000
    MAXIMUM_INSTANT_PAYOUT: int = 100_000_000
    INSTANT_PAYOUT_DAILY_LIMIT: int = 3

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    model_config = {
        "env_file": ".env",
        "case_sensitive": True,
        "extra": "ignore"
    }


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance with placeholder filtering"""
    s = Settings()
    # Filter out common placeholders from environment
    placeholders = ["XXXX", "your-", "replace-"]

    def is_placeholder(val: Optional[str]) -> bool:
        if not val:
            return True
        return any(p.lower() in val.lower() for p in placeholders)

    if is_placeholder(s.AWS_ACCESS_KEY_ID):
        s.AWS_ACCESS_KEY_ID = None
    if is_placeholder(s.AWS_SECRET_ACCESS_KEY):
        s.AWS_SECRET_ACCESS_KEY = None
    if is_placeholder(s.EXPO_ACCESS_TOKEN):
        s.EXPO_ACCESS_TOKEN = None

    return s


# Global settings instance
settings = get_settings()
