from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional
from urllib.parse import urlsplit


class Settings(BaseSettings):
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "storefront"
    POSTGRES_USER: str = "storefront"
    POSTGRES_PASSWORD: str = "storefront"
    # Full SQLAlchemy URL; overrides the POSTGRES_* parts when set
    DATABASE_URL: Optional[str] = None

    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_KEY_SECRET: str = ""
    # Shared secret for webhook bodies and storefront payment confirmations
    RAZORPAY_WEBHOOK_SECRET: str = ""
    RAZORPAY_API_BASE: str = "https://api.razorpay.com/v1"
    PAYMENT_CURRENCY: str = "INR"
    GATEWAY_TIMEOUT_SECONDS: float = 10.0
    GATEWAY_MAX_ATTEMPTS: int = 3
    GATEWAY_BACKOFF_SECONDS: float = 0.5

    SMTP_HOST: str = ""
    SMTP_PORT: int = 465
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_SSL: bool = True
    MAIL_FROM: str = "customercare@example.com"
    MAIL_FROM_NAME: str = "Storefront"
    # Support inbox for contact form notifications; skipped when empty
    ADMIN_NOTIFICATION_EMAIL: str = ""

    FRONTEND_URL: str = ""

    JWT_SECRET: str = "change-me"
    JWT_ALG: str = "HS256"

    LOG_LEVEL: str = "INFO"
    SERVICE_VERSION: str = "1.0.0"

    class Config:
        env_file = ".env"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def cors_origins(self) -> list[str]:
        """Origins allowed to call the browser-facing endpoints."""
        if not self.FRONTEND_URL:
            return ["*"]
        parts = urlsplit(self.FRONTEND_URL)
        return [f"{parts.scheme}://{parts.netloc}"]


@lru_cache
def get_settings() -> Settings:
    return Settings()
