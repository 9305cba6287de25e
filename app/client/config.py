"""Settings for the notification client."""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.config import ENV_FILE, ENV_FILE_ENCODING


class ClientSettings(BaseSettings):
    """Client configuration read from ``NOTIFICATIONS_CLIENT_*`` variables."""

    model_config = SettingsConfigDict(
        env_prefix="NOTIFICATIONS_CLIENT_",
        env_file=ENV_FILE,
        env_file_encoding=ENV_FILE_ENCODING,
        extra="ignore",
    )

    base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL of the notifications REST API",
    )
    ws_url: str | None = Field(
        default=None,
        description="Push channel URL; derived from base_url when omitted",
    )
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    reconnect_base_delay_seconds: float = Field(default=0.5, gt=0)
    reconnect_max_delay_seconds: float = Field(default=30.0, gt=0)
    reconnect_max_attempts: int = Field(
        default=10,
        description="Consecutive failed connection attempts before giving up",
        gt=0,
    )
    heartbeat_interval_seconds: float = Field(default=20.0, gt=0)

    @model_validator(mode="after")
    def _check_backoff_bounds(self) -> "ClientSettings":
        if self.reconnect_max_delay_seconds < self.reconnect_base_delay_seconds:
            raise ValueError(
                "RECONNECT_MAX_DELAY_SECONDS must not be lower than RECONNECT_BASE_DELAY_SECONDS"
            )
        return self

    def push_url(self) -> str:
        """Return the websocket URL of the push channel."""

        if self.ws_url:
            return self.ws_url
        base = self.base_url.rstrip("/")
        if base.startswith("https://"):
            base = "wss://" + base[len("https://") :]
        elif base.startswith("http://"):
            base = "ws://" + base[len("http://") :]
        return f"{base}/notifications/ws"


__all__ = ["ClientSettings"]
