from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # Database - PostgreSQL for production, SQLite for development
    database_url: str = Field(
        default="sqlite:///./tourops.db",
        alias="DATABASE_URL"
    )

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=True, alias="LOG_JSON")

    # Rate limiting (slowapi). memory:// for one instance, redis://... when scaled out
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")
    rate_limit_storage_uri: str = Field(default="memory://", alias="RATE_LIMIT_STORAGE_URI")

    # CORS - Frontend URLs from environment (comma-separated)
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        alias="ALLOWED_ORIGINS"
    )

    # ==============================================
    # Operations
    # ==============================================
    currency: str = Field(default="THB", alias="CURRENCY")

    # Length of the pickup window shown to customers and drivers
    pickup_window_minutes: int = Field(default=15, alias="PICKUP_WINDOW_MINUTES")

    # Load bookings and boat locks concurrently when compiling the manifest
    manifest_parallel_reads: bool = Field(default=True, alias="MANIFEST_PARALLEL_READS")

    # ==============================================
    # Invoicing
    # ==============================================
    invoice_due_days: int = Field(default=30, alias="INVOICE_DUE_DAYS")
    invoice_number_prefix: str = Field(default="INV", alias="INVOICE_NUMBER_PREFIX")

    # ==============================================
    # Outbound email (Resend HTTP API)
    # ==============================================
    resend_api_key: str = Field(default="", alias="RESEND_API_KEY")
    email_from: str = Field(default="TourOps <noreply@tourops.app>", alias="EMAIL_FROM")
    email_api_url: str = Field(default="https://api.resend.com/emails", alias="EMAIL_API_URL")
    email_timeout_seconds: int = Field(default=20, alias="EMAIL_TIMEOUT_SECONDS")

    @field_validator('database_url')
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Hosted Postgres hands out postgres:// but SQLAlchemy needs postgresql://"""
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql://", 1)
        return v

    @field_validator('pickup_window_minutes')
    @classmethod
    def validate_pickup_window(cls, v: int) -> int:
        if v < 0 or v > 180:
            raise ValueError("PICKUP_WINDOW_MINUTES must be between 0 and 180")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def has_email_transport(self) -> bool:
        return bool(self.resend_api_key)

    @property
    def cors_origins(self) -> List[str]:
        """
        Parse allowed origins from comma-separated string.
        Returns a list suitable for CORSMiddleware.
        """
        origins = []
        for origin in self.allowed_origins.split(","):
            origin = origin.strip().rstrip("/")
            if origin and origin not in origins:
                origins.append(origin)

        return origins or ["http://localhost:3000"]

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Initialize settings on module load
settings = get_settings()
