"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]

DEFAULT_JWT_SECRET = "change-me"


class Settings(BaseSettings):
    APP_NAME: str = "Auth Service"
    ENV: str = "development"

    DATABASE_URL: str = "postgresql+psycopg://postgres@localhost:5432/auth_service"
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 0
    DB_POOL_TIMEOUT_SECONDS: int = 2
    DB_CONNECT_TIMEOUT_SECONDS: int = 5

    JWT_SECRET: str = DEFAULT_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60 * 24 * 7

    SESSION_COOKIE_NAME: str = "access_token"
    SESSION_TOKEN_EXPIRE_DAYS: int = 7
    PASSWORD_RESET_TOKEN_EXPIRE_MINUTES: int = 60
    EMAIL_TOKEN_EXPIRE_HOURS: int = 24
    PASSWORD_HASH_ROUNDS: int = 29000
    LOG_LEVEL: str = "INFO"

    ENABLE_REGISTRATION: bool = True
    ENABLE_PASSWORD_RECOVERY: bool = True

    APP_BASE_URL: str = "http://localhost:3000"
    CORS_ORIGINS: str = "http://localhost:3000"

    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM: str = ""
    SMTP_TLS: bool = True

    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_LOGIN_MAX_ATTEMPTS: int = 5
    RATE_LIMIT_LOGIN_WINDOW_SECONDS: int = 15 * 60
    RATE_LIMIT_REGISTER_MAX_ATTEMPTS: int = 3
    RATE_LIMIT_REGISTER_WINDOW_SECONDS: int = 60 * 60
    RATE_LIMIT_FORGOT_PASSWORD_MAX_ATTEMPTS: int = 3
    RATE_LIMIT_FORGOT_PASSWORD_WINDOW_SECONDS: int = 60 * 60
    RATE_LIMIT_RESET_PASSWORD_MAX_ATTEMPTS: int = 5
    RATE_LIMIT_RESET_PASSWORD_WINDOW_SECONDS: int = 60 * 60
    RATE_LIMIT_VERIFY_EMAIL_MAX_ATTEMPTS: int = 10
    RATE_LIMIT_VERIFY_EMAIL_WINDOW_SECONDS: int = 60 * 60
    RATE_LIMIT_RESEND_VERIFICATION_MAX_ATTEMPTS: int = 3
    RATE_LIMIT_RESEND_VERIFICATION_WINDOW_SECONDS: int = 60 * 60

    model_config = SettingsConfigDict(env_file=str(BASE_DIR / ".env"), env_file_encoding="utf-8", extra="ignore")

    @property
    def is_production(self) -> bool:
        return self.ENV.strip().lower() == "production"

    @property
    def expose_issued_tokens(self) -> bool:
        return not self.is_production

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def smtp_ready(self) -> bool:
        return bool(self.SMTP_HOST.strip() and self.SMTP_FROM.strip())

    def rate_limit_for(self, operation: str) -> tuple[int, int]:
        key = operation.upper().replace("-", "_")
        max_attempts = getattr(self, f"RATE_LIMIT_{key}_MAX_ATTEMPTS")
        window_seconds = getattr(self, f"RATE_LIMIT_{key}_WINDOW_SECONDS")
        return max_attempts, window_seconds

    def validate_runtime_security(self) -> None:
        if self.is_production and self.JWT_SECRET == DEFAULT_JWT_SECRET:
            raise RuntimeError("JWT_SECRET must be set in production")


settings = Settings()
