from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings

from marketplace_chat.domain.value_objects.enums import FanoutBackend, PresenceScope


class Settings(BaseSettings):
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_DB: str
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300
    DB_POOL_TIMEOUT: int = 10

    # Upper bound for one store round trip made on behalf of a request or event.
    STORE_TIMEOUT_SECONDS: float = 10.0
    VERIFY_SCHEMA_ON_STARTUP: bool = True

    ENVIRONMENT: Literal["development", "test", "production"] = "development"

    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_PUBSUB_CHANNEL: str = "chat.fanout"
    FANOUT_BACKEND: FanoutBackend = FanoutBackend.LOCAL

    JWT_SECRET: str = ""
    JWT_VERIFY_MODE: Literal["hs256", "jwks"] = "hs256"
    JWT_ALGORITHM: str = "HS256"
    JWKS_URL: str | None = None
    JWT_AUDIENCE: str | None = None
    JWT_ISSUER: str | None = None
    JWT_LEEWAY_SECONDS: int = 0

    CORS_ORIGINS: list[str] = ["http://localhost:5173"]

    WS_HEARTBEAT_SECONDS: int = 30
    PRESENCE_SCOPE: PresenceScope = PresenceScope.GLOBAL

    MAX_MESSAGE_LENGTH: int = 1000
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024
    ALLOWED_IMAGE_TYPES: list[str] = ["image/jpeg", "image/png", "image/gif", "image/webp"]

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    HOST: str = "0.0.0.0"
    PORT: int = 8000

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def expose_error_details(self) -> bool:
        return self.ENVIRONMENT != "production"

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()  # type: ignore[call-arg]
