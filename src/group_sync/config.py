from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    BACKEND_API_URL: str = "http://localhost:8080/api"
    HTTP_TIMEOUT_SECONDS: float = 10.0

    ACCESS_TOKEN: str = ""
    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWT_USER_ID_CLAIM: str = "sub"

    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_USERNAME: str | None = None

    TOPIC_TEMPLATE: str = "/topic/group/{group_id}"
    TRANSPORT_RECONNECT_DELAY_SECONDS: float = 5.0
    TRANSPORT_HEARTBEAT_SECONDS: float = 4.0

    WS_HEARTBEAT_SECONDS: int = 30

    CORS_ORIGINS: list[str] = ["*"]

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    VIEW_HOST: str = "127.0.0.1"
    VIEW_PORT: int = 8000

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
