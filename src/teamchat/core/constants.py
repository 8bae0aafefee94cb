"""
Constants and configuration for the team chat transport.
Centralizes protocol constants and tunables.
Includes Pydantic validation for environment variables.
"""

from __future__ import annotations

import os
import threading

from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import (
    DotEnvSettingsSource,
    PydanticBaseSettingsSource,
)

# ============================================================================
# Project Paths
# ============================================================================

#: Project root directory (parent of src/)
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent

# ============================================================================
# Wire Protocol
# ============================================================================

#: Default server base URL (scheme + host, no path)
DEFAULT_WS_URL = "ws://localhost:5000"

#: Team chat endpoint path on the server
TEAM_CHAT_PATH = "/ws/team-chat"

#: Query parameter carrying the bearer token
TOKEN_QUERY_PARAM = "token"

#: Discriminator key present on every wire frame
FRAME_TYPE_KEY = "type"

# Client -> server frame types
FRAME_JOIN_TEAM = "join_team"
FRAME_SEND_MESSAGE = "send_message"
FRAME_START_TYPING = "start_typing"
FRAME_STOP_TYPING = "stop_typing"
FRAME_PING = "ping"

# Server -> client frame types
FRAME_CONNECTED = "connected"
FRAME_TEAM_JOINED = "team_joined"
FRAME_NEW_MESSAGE = "new_message"
FRAME_USER_JOINED = "user_joined"
FRAME_USER_LEFT = "user_left"
FRAME_TYPING_INDICATOR = "typing_indicator"
FRAME_ERROR = "error"
FRAME_PONG = "pong"

#: Every server -> client frame type the codec understands
INBOUND_FRAME_TYPES: frozenset[str] = frozenset(
    {
        FRAME_CONNECTED,
        FRAME_TEAM_JOINED,
        FRAME_NEW_MESSAGE,
        FRAME_USER_JOINED,
        FRAME_USER_LEFT,
        FRAME_TYPING_INDICATOR,
        FRAME_ERROR,
        FRAME_PONG,
    }
)

#: Close code the server uses when token authentication fails
CLOSE_CODE_AUTH_FAILED = 4001

#: Server-side maximum payload (1MB); used as the client's inbound frame limit
MAX_FRAME_SIZE = 1024 * 1024

# ============================================================================
# Reconnection
# ============================================================================

#: Fixed delay before a reconnection attempt (seconds)
RECONNECT_DELAY = 3.0

#: Upper bound for the backoff strategy (seconds)
RECONNECT_MAX_DELAY = 30.0

#: Jitter fraction applied on top of the backoff delay
RECONNECT_JITTER = 0.1

ReconnectStrategy = Literal["fixed", "backoff"]

# ============================================================================
# Timeouts
# ============================================================================

#: websockets.connect open timeout (seconds)
WS_OPEN_TIMEOUT = 10.0

#: websockets close handshake timeout (seconds)
WS_CLOSE_TIMEOUT = 5.0

# ============================================================================
# Logging
# ============================================================================

LOG_MAX_SIZE = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT_ERRORS = 2

#: Maximum characters of a raw frame included in a log line
LOG_PREVIEW_LENGTH = 120

#: Length of the per-client id used to correlate log lines
CLIENT_ID_LENGTH = 8

# ============================================================================
# Environment Configuration with Pydantic Validation
# ============================================================================

#: Valid environment names for configuration loading
Environment = Literal["development", "production", "test"]


def _get_env_files() -> list[Path]:
    """Determine which .env files to load based on APP_ENV.

    Load order (later files override earlier - pydantic-settings last-wins):
    1. .env (base defaults) - lowest priority
    2. .env.{environment} (environment-specific overrides)
    3. .env.local (local developer overrides, gitignored) - highest priority

    Returns:
        List of Path objects for env files that exist.
    """
    env_name = os.getenv("APP_ENV", "development").lower()
    if env_name not in ("development", "production", "test"):
        env_name = "development"

    candidates = [
        PROJECT_ROOT / ".env",
        PROJECT_ROOT / f".env.{env_name}",
        PROJECT_ROOT / ".env.local",
    ]
    return [p for p in candidates if p.exists()]


def _reload_dotenv_into_environ() -> None:
    """Reload our dotenv files into os.environ so environment-specific values win.

    Must be called BEFORE Settings() instantiation.
    """
    from dotenv import load_dotenv

    for env_file in _get_env_files():
        load_dotenv(env_file, override=True)


class Settings(BaseSettings):
    """Transport settings with validation and environment-specific file support.

    Configuration priority (highest to lowest):
    1. Values passed to Settings() constructor
    2. Environment variables prefixed with TEAMCHAT_
    3. .env.local > .env.{APP_ENV} > .env (dotenv files, last wins)

    Validates at construction to fail fast on configuration errors.
    """

    app_env: Environment = Field(default="development", description="Application environment")

    # Endpoint
    ws_url: str = Field(default=DEFAULT_WS_URL, description="Server base URL (ws:// or wss://)")
    chat_path: str = Field(default=TEAM_CHAT_PATH, description="Team chat endpoint path")

    # Credential issued elsewhere; the transport only forwards it
    auth_token: SecretStr | None = Field(default=None, description="Bearer token for the chat endpoint")

    # Reconnection
    reconnect_delay: float = Field(default=RECONNECT_DELAY, description="Delay before reconnecting (seconds)")
    reconnect_strategy: ReconnectStrategy = Field(default="fixed", description="'fixed' or 'backoff'")
    reconnect_max_delay: float = Field(default=RECONNECT_MAX_DELAY, description="Backoff delay cap (seconds)")
    reconnect_jitter: float = Field(default=RECONNECT_JITTER, description="Backoff jitter fraction (0-1)")
    reconnect_max_attempts: int | None = Field(
        default=None, description="Give up after this many consecutive attempts (None = unlimited)"
    )

    # Socket
    open_timeout: float = Field(default=WS_OPEN_TIMEOUT, description="Connection open timeout (seconds)")
    close_timeout: float = Field(default=WS_CLOSE_TIMEOUT, description="Close handshake timeout (seconds)")
    max_frame_size: int = Field(default=MAX_FRAME_SIZE, description="Maximum inbound frame size in bytes")
    heartbeat_interval: float | None = Field(
        default=None, description="Application-level ping interval (seconds, None disables)"
    )

    # Debug and logging
    debug: bool = Field(default=False, description="Enable debug logging")
    log_dir: Path | None = Field(default=None, description="Directory for JSON error logs (None disables)")

    model_config = SettingsConfigDict(
        env_prefix="TEAMCHAT_",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Env vars override dotenv files; constructor values override both."""
        dotenv_source = DotEnvSettingsSource(
            settings_cls,
            env_file=_get_env_files(),
            env_file_encoding="utf-8",
        )
        return (init_settings, env_settings, dotenv_source)

    @field_validator("app_env", mode="before")
    @classmethod
    def validate_app_env(cls, v: str | None) -> str:
        """Validate and normalize APP_ENV value."""
        if v is None:
            return "development"
        normalized = str(v).lower()
        if normalized not in ("development", "production", "test"):
            raise ValueError(f"app_env must be 'development', 'production', or 'test', got '{v}'")
        return normalized

    @field_validator("ws_url")
    @classmethod
    def validate_ws_url(cls, v: str) -> str:
        """Require a websocket scheme and strip any trailing slash."""
        if not v.startswith(("ws://", "wss://")):
            raise ValueError("ws_url must start with 'ws://' or 'wss://'")
        return v.rstrip("/")

    @field_validator("chat_path")
    @classmethod
    def validate_chat_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("chat_path must start with '/'")
        return v

    @field_validator("reconnect_delay", "reconnect_max_delay", "open_timeout", "close_timeout")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("delays and timeouts must be positive")
        return v

    @field_validator("heartbeat_interval")
    @classmethod
    def validate_heartbeat(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("heartbeat_interval must be positive or unset")
        return v

    @field_validator("reconnect_jitter")
    @classmethod
    def validate_jitter(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("reconnect_jitter must be between 0 and 1")
        return v

    @field_validator("reconnect_max_attempts")
    @classmethod
    def validate_max_attempts(cls, v: int | None) -> int | None:
        if v is not None and v < 1:
            raise ValueError("reconnect_max_attempts must be >= 1 or unset")
        return v

    @model_validator(mode="after")
    def validate_reconnect_bounds(self) -> Settings:
        """Backoff cap must not be below the base delay."""
        if self.reconnect_strategy == "backoff" and self.reconnect_max_delay < self.reconnect_delay:
            raise ValueError(
                "Configuration Error: reconnect_max_delay must be >= reconnect_delay when "
                "reconnect_strategy='backoff'."
            )
        if self.app_env == "production" and self.ws_url.startswith("ws://"):
            raise ValueError(
                "Configuration Error: ws_url must use wss:// in production.\n"
                "Set TEAMCHAT_WS_URL in your .env.production file."
            )
        return self

    @property
    def endpoint(self) -> str:
        """Full endpoint URL without the token query string."""
        return f"{self.ws_url}{self.chat_path}"

    @property
    def token(self) -> str | None:
        """Configured bearer token, unwrapped."""
        if self.auth_token is None:
            return None
        return self.auth_token.get_secret_value()

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


# ============================================================================
# Settings Management (Thread-safe)
# ============================================================================


class _SettingsManager:
    """Thread-safe settings cache.

    Uses a class to avoid global statement warnings from linters.
    """

    __slots__ = ("_instance", "_lock")

    def __init__(self) -> None:
        self._instance: Settings | None = None
        self._lock = threading.Lock()

    def get(self) -> Settings:
        """Get the cached settings instance, loading it on first use."""
        if self._instance is not None:
            return self._instance

        with self._lock:
            if self._instance is not None:
                return self._instance
            _reload_dotenv_into_environ()
            self._instance = Settings()
            return self._instance

    def reload(self) -> Settings:
        """Force reload settings from environment files."""
        with self._lock:
            _reload_dotenv_into_environ()
            self._instance = Settings()
            return self._instance

    def clear(self) -> None:
        """Clear cached settings instance."""
        with self._lock:
            self._instance = None


# Module-level singleton manager
_settings_manager = _SettingsManager()


def get_settings() -> Settings:
    """Get settings instance.

    This is the primary entry point for accessing transport settings.
    Settings are validated on first access and cached.

    Raises:
        ValueError: If configuration is invalid.
    """
    return _settings_manager.get()


def reload_settings() -> Settings:
    """Force reload settings from environment files."""
    return _settings_manager.reload()


def clear_settings_cache() -> None:
    """Clear cached settings instance.

    Primarily useful for testing to ensure fresh settings on each test.
    """
    _settings_manager.clear()
