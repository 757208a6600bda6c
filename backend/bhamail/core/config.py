"""Application configuration using Pydantic Settings.

Environment variables are loaded from .env files and system environment.
Signing secrets, SMTP credentials and connection URLs should always be
provided via environment variables.
"""

from functools import lru_cache
from typing import Any

from pydantic import RedisDsn, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    All settings can be overridden via environment variables.
    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "BhaMail API"
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"

    # CORS
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v: Any) -> list[str]:
        """Parse ALLOWED_ORIGINS from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        if isinstance(v, list):
            return v
        return ["http://localhost:3000"]

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./bhamail.db"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 30
    DATABASE_AUTO_CREATE: bool = False

    # Redis (password reset tickets)
    REDIS_URL: RedisDsn | None = None
    PASSWORD_RESET_TTL_SECONDS: int = 3600

    # Tokens
    JWT_SECRET: str | None = None
    JWT_REFRESH_SECRET: str | None = None
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    AUTH_FAIL_FAST: bool = True

    # Password hashing
    BCRYPT_ROUNDS: int = 12

    # Two-factor authentication
    TOTP_ISSUER: str = "BhaMail"
    TOTP_VALID_WINDOW: int = 2

    # Outgoing notification mail
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 1025
    SMTP_USE_TLS: bool = False
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: str | None = None
    MAIL_FROM_NAME: str = "BhaMail"
    MAIL_FROM_ADDRESS: str = "noreply@bhamail.local"
    WEB_BASE_URL: str = "http://localhost:3000"

    # Accounts
    DEFAULT_QUOTA_BYTES: int = 5_000_000_000

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str | None = None
    LOG_JSON_FORMAT: bool = True

    @field_validator("BCRYPT_ROUNDS")
    @classmethod
    def validate_bcrypt_rounds(cls, v: int) -> int:
        """bcrypt only accepts cost factors between 4 and 31."""
        if not 4 <= v <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31")
        return v

    @model_validator(mode="after")
    def validate_token_secrets(self) -> "Settings":
        """Access and refresh tokens must be signed with different secrets."""
        if (
            self.JWT_SECRET
            and self.JWT_REFRESH_SECRET
            and self.JWT_SECRET == self.JWT_REFRESH_SECRET
        ):
            raise ValueError("JWT_SECRET and JWT_REFRESH_SECRET must differ")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are cached after first load for performance.
    """
    return Settings()


# Global settings instance
settings = get_settings()
