"""Application settings loaded from environment variables."""

import logging
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

INSECURE_JWT_SECRET = "please_change_this"


class Settings(BaseSettings):
    # Supabase
    SUPABASE_URL: str
    SUPABASE_SERVICE_ROLE_KEY: str

    # JWT
    JWT_SECRET: str = INSECURE_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRES_IN: str = "15m"
    REFRESH_TOKEN_EXPIRES_IN: str = "7d"

    # Passwords
    BCRYPT_ROUNDS: int = 12

    # One-time tokens
    VERIFICATION_TOKEN_TTL_HOURS: int = 24
    RESET_TOKEN_TTL_MINUTES: int = 60
    MAGIC_TOKEN_TTL_MINUTES: int = 15

    # Email delivery (SendGrid). Without an API key messages are only logged.
    SENDGRID_API_KEY: str | None = None
    MAIL_FROM_EMAIL: str = "no-reply@localhost"

    # Frontend / CORS
    FRONTEND_URL: str = "http://localhost:3000"
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    # Rate limiting (requests per window per client IP on auth endpoints, 0 disables)
    RATE_LIMIT_AUTH: int = 20
    RATE_LIMIT_WINDOW_SECONDS: int = 900

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    @model_validator(mode="after")
    def check_jwt_secret(self) -> "Settings":
        if self.JWT_SECRET == INSECURE_JWT_SECRET:
            if self.is_production:
                raise ValueError("JWT_SECRET must be set in production")
            logger.warning("JWT_SECRET is not set, falling back to an insecure default")
        return self

    @model_validator(mode="after")
    def check_mail_delivery(self) -> "Settings":
        if self.is_production and not self.SENDGRID_API_KEY:
            raise ValueError("SENDGRID_API_KEY must be set in production")
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def allowed_origins_list(self) -> list[str]:
        origins = [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]
        if self.FRONTEND_URL and self.FRONTEND_URL not in origins:
            origins.append(self.FRONTEND_URL)
        return origins

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore", "frozen": True}


@lru_cache()
def get_settings() -> Settings:
    return Settings()
