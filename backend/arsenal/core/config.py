"""Application configuration"""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # API
    API_V1_PREFIX: str = "/api"
    PROJECT_NAME: str = "Arsenal Site Operations API"
    VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Security
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_MINUTES: int = 1440  # 24 hours

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    # First admin, created at startup when no active ADMIN exists
    FIRST_ADMIN_EMAIL: Optional[str] = None
    FIRST_ADMIN_PASSWORD: Optional[str] = None
    FIRST_ADMIN_NAME: str = "Administrator"

    # URLs
    FRONTEND_URL: str = "http://localhost:3000"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # SLA budgets (hours) per ticket priority
    # WHY: These are defaults only. Rows in the system_config table
    # (SLA_CRITICAL_HOURS, ...) override them at runtime.
    SLA_CRITICAL_HOURS: int = 4
    SLA_HIGH_HOURS: int = 8
    SLA_MEDIUM_HOURS: int = 24
    SLA_LOW_HOURS: int = 72
    SLA_RISK_WINDOW_HOURS: int = 2

    # SLA sweep
    SLA_SCHEDULER_ENABLED: bool = True
    SLA_CHECK_INTERVAL_SECONDS: int = 300

    # Tickets
    TICKET_NUMBER_PREFIX: str = "TKT"

    # Email
    ALERT_EMAIL_ENABLED: bool = False
    RESEND_API_KEY: Optional[str] = None
    EMAIL_FROM_ADDRESS: str = "alerts@arsenal.local"
    EMAIL_FROM_NAME: str = "Arsenal Site Operations"

    # CORS
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    @property
    def async_database_url(self) -> str:
        """Get async database URL"""
        return self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")


settings = Settings()
