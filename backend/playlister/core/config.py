"""
playlister.core.config
~~~~~~~~~~~~~~~~~~~~~~

Settings loaded with pydantic-settings. Lookup order: environment variables,
``.env.{ENVIRONMENT}``, ``.env``, then field defaults.
"""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_CURRENT_ENV: str = os.getenv("ENVIRONMENT", "dev")


class Settings(BaseSettings):
    PROJECT_NAME: str = Field(default="Playlister")
    VERSION: str = Field(default="0.1.0")
    ENVIRONMENT: Literal["dev", "test", "prod"] = Field(default="dev")

    # Server
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=5000)
    LOG_LEVEL: Optional[str] = Field(default=None, description="Overrides the per-environment default")
    ALLOWED_ORIGINS: str = Field(default="*", description="Comma separated list, * for any")

    # Spotify
    SPOTIFY_CLIENT_ID: str = Field(default="your_client_id")
    SPOTIFY_REDIRECT_URL: str = Field(default="http://127.0.0.1:5000/callback")
    SPOTIFY_SCOPES: str = Field(
        default="streaming user-read-email user-read-private "
        "user-read-playback-state user-modify-playback-state",
    )
    SPOTIFY_AUTHORIZE_URL: str = Field(default="https://accounts.spotify.com/authorize")
    SPOTIFY_TOKEN_URL: str = Field(default="https://accounts.spotify.com/api/token")
    SPOTIFY_API_BASE_URL: str = Field(default="https://api.spotify.com/v1")
    UPSTREAM_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)
    PKCE_STATE_TTL_SECONDS: float = Field(default=600.0, gt=0)

    # Where /callback sends the browser with the token pair. Unset means JSON.
    FRONTEND_URL: Optional[str] = Field(default=None)
    FRONTEND_CALLBACK_PATH: str = Field(default="/create")

    # Rooms
    ROOM_CODE_LENGTH: int = Field(default=6, ge=4, le=16)
    ROOM_CODE_MAX_ATTEMPTS: int = Field(default=5, ge=1)
    PROMOTE_FIRST_JOINER: bool = Field(default=True)
    DEFAULT_DISPLAY_NAME: str = Field(default="Guest")

    # Socket.IO transport liveness; engine.io drops peers that miss a pong
    SOCKET_PING_INTERVAL_SECONDS: float = Field(default=25.0, gt=0)
    SOCKET_PING_TIMEOUT_SECONDS: float = Field(default=20.0, gt=0)

    model_config = SettingsConfigDict(
        env_file=(f".env.{_CURRENT_ENV}", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def debug(self) -> bool:
        return self.ENVIRONMENT == "dev"

    @property
    def effective_log_level(self) -> str:
        """Explicit ``LOG_LEVEL`` wins, otherwise derived from the environment."""
        if self.LOG_LEVEL:
            return self.LOG_LEVEL.upper()
        return {
            "dev": "INFO",
            "test": "DEBUG",
            "prod": "WARNING",
        }.get(self.ENVIRONMENT, "INFO")

    @property
    def cors_origins(self) -> list[str]:
        origins = [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]
        return origins or ["*"]


@lru_cache
def get_settings() -> Settings:
    return Settings()
