"""
Application configuration management using Pydantic Settings
Handles all environment variables and application settings
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List, Dict
from functools import lru_cache


class Settings(BaseSettings):
    """Main application settings"""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Application Settings
    APP_NAME: str = "Ticketing Payments API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    # Refuse to start without full provider credentials
    STRICT_CONFIGURATION: bool = False

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./ticketing.db"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 40
    DATABASE_POOL_TIMEOUT: int = 30
    DATABASE_ECHO: bool = False

    # Redis Configuration
    REDIS_URL: str = "redis://localhost:6379"
    REDIS_DECODE_RESPONSES: bool = True
    REDIS_MAX_CONNECTIONS: int = 50

    # CORS Configuration
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Payment Gateway (Razorpay)
    RAZORPAY_KEY_ID: Optional[str] = None
    RAZORPAY_KEY_SECRET: Optional[str] = None
    RAZORPAY_WEBHOOK_SECRET: Optional[str] = None
    RAZORPAY_ENVIRONMENT: str = "test"
    RAZORPAY_SIGNATURE_HEADER: str = "X-Razorpay-Signature"

    # Webhook processing
    WEBHOOK_DEDUP_TTL_HOURS: int = 24
    WEBHOOK_MAX_RETRIES: int = 5

    # Celery Configuration
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"
    CELERY_TASK_ALWAYS_EAGER: bool = False

    # Monitoring
    PROMETHEUS_ENABLED: bool = True
    LOG_LEVEL: str = "INFO"

    @property
    def database_url_async(self) -> str:
        """Convert sync database URL to async"""
        if self.DATABASE_URL.startswith("postgresql://"):
            return self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")
        elif self.DATABASE_URL.startswith("sqlite://"):
            return self.DATABASE_URL.replace("sqlite://", "sqlite+aiosqlite://")
        return self.DATABASE_URL

    @property
    def is_strict(self) -> bool:
        """Whether missing credentials must abort startup"""
        return self.STRICT_CONFIGURATION or self.ENVIRONMENT == "production"

    def provider_credentials(self, provider: str) -> Dict[str, Optional[str]]:
        """
        Credentials for a payment provider, keyed by purpose

        Unknown providers yield an empty mapping.
        """
        if provider == "razorpay":
            return {
                "key_id": self.RAZORPAY_KEY_ID,
                "key_secret": self.RAZORPAY_KEY_SECRET,
                "webhook_secret": self.RAZORPAY_WEBHOOK_SECRET,
            }
        return {}

    def is_provider_configured(self, provider: str) -> bool:
        """
        Check whether every credential of a provider is set

        Never raises, so the application can run with a subset of
        providers enabled.
        """
        credentials = self.provider_credentials(provider)
        return bool(credentials) and all(credentials.values())

    def configuration_summary(self, provider: str) -> Dict[str, bool]:
        """Report which credentials are present without exposing them"""
        credentials = self.provider_credentials(provider)
        summary = {
            f"{name}_configured": bool(value)
            for name, value in credentials.items()
        }
        summary["enabled"] = self.is_provider_configured(provider)
        return summary


@lru_cache()
def get_settings() -> Settings:
    """
    Create cached settings instance
    This ensures settings are loaded only once
    """
    return Settings()

# Global settings instance
settings = get_settings()
