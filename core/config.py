"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for InstaCatalog happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. Only the
      application lifespan calls it; request handlers receive the instance
      (and the collaborators built from it) through app.state.

  Frozen BaseSettings: the instance is immutable once constructed. The token
      service and authorization gate hold a reference to it, so no code path
      can change the signing key or origin list while requests are in flight.

  field_validator on secret_key: dev mode generates a key with a warning,
      production mode refuses to start without one.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. JWT signing
       relies on key entropy -- a short key weakens every issued token.

  [M7] In production mode (DEBUG not set or false), a missing SECRET_KEY is a
       hard startup failure. There is no built-in fallback key.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or posts/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("instacatalog.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'instacatalog.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (with DEBUG=true set).

    Environment variable name mapping: field names are uppercased automatically.
    E.g. `secret_key` reads from SECRET_KEY, `post_creation_status` from
    POST_CREATION_STATUS.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    # debug must stay declared before secret_key: the secret_key validator
    # reads it from the already-validated fields.
    debug: bool = False
    secret_key: str = Field(default="", validate_default=True)
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    token_expire_days: int = 30

    # ------------------------------------------------------------------
    # Post lifecycle
    # ------------------------------------------------------------------

    # "ready"   -> self-posting: new posts can be published immediately.
    # "pending" -> moderated: posts need pending -> approved before publish.
    post_creation_status: Literal["pending", "ready"] = "ready"
    publish_max_attempts: int = 3
    publish_backoff_seconds: float = 1.0

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_origins: list[str] = [
        "https://instacatalog.netlify.app",
        "http://localhost:3000",
        "http://localhost:5500",
    ]

    # ------------------------------------------------------------------
    # Instagram (Meta app) -- empty string means the integration is disabled
    # ------------------------------------------------------------------

    meta_app_id: str = ""
    meta_app_secret: str = ""
    meta_redirect_uri: str = ""
    frontend_url: str = "https://instacatalog.netlify.app"
    oauth_state_ttl_seconds: int = 600

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, value: str, info: ValidationInfo) -> str:
        """Enforce the SECRET_KEY policy [M7].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Issued tokens will not survive a restart -- acceptable locally.

        Production mode: refuse to start if SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters [M6].
        """
        if not value:
            if info.data.get("debug"):
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Tokens will not remain valid across restarts."
                )
                return secrets.token_hex(32)
            raise ValueError(
                "SECRET_KEY is required in production mode. "
                "Set SECRET_KEY in your environment or .env file. "
                "To run in development mode, set DEBUG=true."
            )
        if len(value) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return value

    @field_validator("publish_max_attempts")
    @classmethod
    def validate_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("PUBLISH_MAX_ATTEMPTS must be at least 1.")
        return value


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
