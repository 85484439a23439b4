from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    API_BASE_URL: str = "http://localhost:5000"
    API_TOKEN: str | None = None
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Push delivery is attempted only when both are set.
    REALTIME_URL: str | None = None
    REALTIME_KEY: str | None = None
    REALTIME_CHANNEL_PREFIX: str = "chat.messages."
    SUBSCRIBE_TIMEOUT_SECONDS: float = 5.0

    MESSAGE_POLL_SECONDS: float = 3.0
    POLL_FAILURE_THRESHOLD: int = 3

    FEED_REFRESH_SECONDS: float = 90.0
    NOTIFICATION_REFRESH_SECONDS: float = 30.0

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @property
    def realtime_enabled(self) -> bool:
        return bool(self.REALTIME_URL and self.REALTIME_KEY)

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
