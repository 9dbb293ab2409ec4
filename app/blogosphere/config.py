"""
Configuration and logging setup for the blog app.

Everything here is read once at startup and passed explicitly to the
backends and controllers; nothing else reads the environment.
"""

from __future__ import annotations

import locale
import logging
from functools import lru_cache
from typing import Any, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

REQUIRED_FIREBASE_KEYS = ("apiKey", "projectId")


class Settings(BaseSettings):
    """Environment-backed settings (BLOGGER_* variables or a .env file)."""

    model_config = SettingsConfigDict(
        env_prefix="BLOGGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application namespace for the per-user collections
    app_id: str = Field(default="default-app-id")

    # Firebase web config (JSON object) + service-account credentials
    firebase_config: dict[str, Any] = Field(default_factory=dict)
    credentials_path: Optional[str] = Field(default=None)
    initial_auth_token: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Timeouts (seconds)
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    snapshot_timeout_seconds: float = Field(default=15.0, gt=0)

    # UI
    list_refresh_seconds: float = Field(default=2.0, gt=0)
    log_level: str = Field(default="INFO")

    @property
    def api_key(self) -> str:
        return str(self.firebase_config.get("apiKey") or "")

    @property
    def project_id(self) -> str:
        return str(self.firebase_config.get("projectId") or "")

    def require_backend(self) -> None:
        """Raise ConfigurationError if the selected backends cannot start."""
        if not (self.app_id or "").strip():
            raise ConfigurationError("BLOGGER_APP_ID must not be empty.")
        if self.use_in_memory_backends:
            return
        if not self.firebase_config:
            raise ConfigurationError("Firebase config is not provided.")
        missing = [k for k in REQUIRED_FIREBASE_KEYS if not self.firebase_config.get(k)]
        if missing:
            raise ConfigurationError(
                f"Firebase config is missing: {', '.join(missing)}"
            )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    """Root logging setup; a no-op when handlers already exist."""
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def configure_locale() -> None:
    """Adopt the environment's LC_TIME so "%c" timestamps read as the user's locale."""
    try:
        locale.setlocale(locale.LC_TIME, "")
    except locale.Error as e:
        logger.warning("Could not apply the environment locale for dates: %s", e)
