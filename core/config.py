"""
Centralized configuration management with validation.

All environment variables are loaded and validated here.
This ensures consistent configuration across the application.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Optional
from dotenv import load_dotenv

load_dotenv()

# Origins the bundled frontend is served from during local development.
DEFAULT_CLIENT_ORIGINS = [
    "http://127.0.0.1:3000",
    "http://localhost:5500",
    "http://127.0.0.1:5500",
]


class Settings(BaseSettings):
    """Application settings with validation."""

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    # Database Configuration
    # DATABASE_URL wins over the POSTGRES_* pieces when set.
    DATABASE_URL: Optional[str] = Field(default=None)
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: str = Field(default="postgres")
    POSTGRES_DB: str = Field(default="athlete_management")
    POSTGRES_HOST: str = Field(default="localhost")
    POSTGRES_PORT: int = Field(default=5432)

    # Database Pool Configuration
    DB_POOL_SIZE: int = Field(default=10)
    DB_MAX_OVERFLOW: int = Field(default=5)
    DB_POOL_TIMEOUT: int = Field(default=30)
    DB_POOL_RECYCLE: int = Field(default=3600)  # 1 hour

    # Session signing key - REQUIRED
    SECRET_KEY: str = Field(
        default=...,  # Required - no default
        description="Session token signing key. Must be cryptographically secure (32+ chars). "
                    "Generate with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
    )

    # Session lifetime, shared by the session cookie, the CSRF cookie and the token exp claim
    SESSION_TTL_DAYS: int = Field(default=7, ge=1, le=90)

    # API Configuration
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=5000)

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text

    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # CORS - comma-separated list of extra allowed origins
    # e.g., "https://ironforge.app,https://www.ironforge.app"
    CLIENT_URLS: Optional[str] = Field(default=None)
    CLIENT_URL: Optional[str] = Field(default=None)

    # Sentry Error Tracking
    SENTRY_DSN: Optional[str] = Field(default=None)
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.1)  # 10% of transactions

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql://{self.POSTGRES_USER}:"
            f"{self.POSTGRES_PASSWORD}@"
            f"{self.POSTGRES_HOST}:"
            f"{self.POSTGRES_PORT}/"
            f"{self.POSTGRES_DB}"
        )

    @property
    def session_max_age_seconds(self) -> int:
        return self.SESSION_TTL_DAYS * 24 * 60 * 60

    def allowed_origins(self) -> List[str]:
        """Localhost defaults plus CLIENT_URLS (or CLIENT_URL), de-duplicated in order."""
        raw = self.CLIENT_URLS or self.CLIENT_URL or ""
        extra = [origin.strip() for origin in raw.split(",") if origin.strip()]
        origins: List[str] = []
        for origin in DEFAULT_CLIENT_ORIGINS + extra:
            if origin not in origins:
                origins.append(origin)
        return origins


def validate_settings(config: Settings) -> None:
    """Fail fast on configuration that would make sessions forgeable."""
    if len(config.SECRET_KEY or "") < 32:
        raise ValueError(
            "SECRET_KEY must be at least 32 characters. "
            "Generate with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
        )


# Global settings instance
settings = Settings()
