from datetime import timedelta
from typing import Literal

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.exceptions import ConfigurationMissing

HMAC_ALGORITHMS = ("HS256", "HS384", "HS512")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "development"

    DATABASE_URL: str = "sqlite:///./sessions.db"
    STORE_TIMEOUT_SECONDS: float = 5.0

    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    REFRESH_TOKEN_BYTES: int = 32

    ACCESS_COOKIE_NAME: str = "access_token"
    REFRESH_COOKIE_NAME: str = "refresh_token"
    REFRESH_COOKIE_PATH: str = "/auth"
    COOKIE_SECURE: bool = False
    COOKIE_SAMESITE: Literal["lax", "strict", "none"] = "lax"

    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    @field_validator("JWT_SECRET")
    @classmethod
    def validate_secret(cls, value):
        if not value or not value.strip():
            raise ValueError("JWT_SECRET cannot be empty")
        return value

    @field_validator("JWT_ALGORITHM")
    @classmethod
    def validate_algorithm(cls, value):
        value = value.upper()
        if value not in HMAC_ALGORITHMS:
            raise ValueError(f"JWT_ALGORITHM must be one of {', '.join(HMAC_ALGORITHMS)}")
        return value

    @property
    def access_token_ttl(self) -> timedelta:
        return timedelta(minutes=self.ACCESS_TOKEN_EXPIRE_MINUTES)

    @property
    def refresh_token_ttl(self) -> timedelta:
        return timedelta(days=self.REFRESH_TOKEN_EXPIRE_DAYS)


def load_settings(**overrides) -> Settings:
    """
    Build the application settings once at startup.

    Keyword overrides take precedence over the environment and `.env`.
    A missing signing secret is fatal for the whole service.

    Raises:
        ConfigurationMissing: JWT_SECRET is absent or empty
    """
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        missing = [
            ".".join(str(part) for part in error["loc"])
            for error in exc.errors()
        ]
        if "JWT_SECRET" in missing:
            raise ConfigurationMissing("JWT_SECRET is not configured") from exc
        raise
