"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the Astralx auth service happen here. No
module should call os.getenv() or os.environ.get() directly -- import
get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET).

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Dev mode (DEBUG=true) generates missing signing keys with a
      warning; production mode refuses to start without them.

Security notes:
  Two independent signing keys: JWT_SECRET signs access tokens,
  JWT_REFRESH_SECRET signs refresh tokens. They must differ, otherwise a
  refresh token would verify as an access token.

  Keys shorter than 32 chars and well-known placeholder values are
  rejected outright. A placeholder secret is a deployment error.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("astralx.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'astralx_auth.db'}"

# Fallback values shipped by earlier deployments and copy-pasted examples.
_PLACEHOLDER_SECRETS = frozenset(
    {
        "default-secret",
        "default-refresh-secret",
        "default-secret-change-me",
        "change-me",
        "changeme",
        "secret",
    }
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (as long as DEBUG=true or both
    secrets are supplied).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Token signing
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The validator below
    # either generates a dev key or raises, so callers never see "".
    jwt_secret: str = ""
    jwt_refresh_secret: str = ""

    access_token_ttl_seconds: int = 15 * 60
    refresh_token_ttl_days: int = 7

    # ------------------------------------------------------------------
    # Single-use grants
    # ------------------------------------------------------------------

    verification_ttl_hours: int = 24
    reset_ttl_hours: int = 1

    # bcrypt cost factor (log2 rounds)
    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # Mail (empty mail_host means dev mode: messages are logged, not sent)
    # ------------------------------------------------------------------

    mail_host: str = ""
    mail_port: int = 587
    mail_user: str = ""
    mail_password: str = ""
    mail_secure: bool = False  # True = implicit SSL, False = STARTTLS
    mail_from: str = "noreply@astralx.com"
    frontend_url: str = "http://localhost:3000"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8081"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_signing_keys(self) -> "Settings":
        """Enforce the signing key policy.

        Dev mode (DEBUG=true): auto-generate any missing key with a warning.
            Issued tokens will not survive a restart.

        Production mode: refuse to start if either key is missing.

        Both modes: reject placeholders, keys shorter than 32 characters, and
            identical access/refresh keys.
        """
        for field_name in ("jwt_secret", "jwt_refresh_secret"):
            value = getattr(self, field_name)
            env_name = field_name.upper()
            if not value:
                if not self.debug:
                    raise ValueError(
                        f"{env_name} is required in production mode. "
                        f"Set {env_name} in your environment or .env file. "
                        "To run in development mode, set DEBUG=true."
                    )
                setattr(self, field_name, secrets.token_hex(32))
                logger.warning("Using auto-generated %s. Issued tokens will not persist across restarts.", env_name)
                continue
            if value.lower() in _PLACEHOLDER_SECRETS:
                raise ValueError(f"{env_name} is set to a placeholder value. Generate a real key.")
            if len(value) < 32:
                raise ValueError(f"{env_name} must be at least 32 characters.")
        if self.jwt_secret == self.jwt_refresh_secret:
            raise ValueError("JWT_SECRET and JWT_REFRESH_SECRET must be different keys.")
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
