"""
core/config.py -- Todolist settings, read once from the environment.

Every environment variable the service understands is declared on Settings
below; nothing else in the tree reads os.environ. main.py and the API
lifespan call get_settings() and pass plain values (URLs, TTLs, rounds,
timeouts) into the stores, the cache client and the token service.

How it is built:
  get_settings() is wrapped in lru_cache, so Settings is constructed on the
      first call and reused afterwards.

  Settings is a pydantic-settings model. Each field is filled from the
      matching upper-case variable (redis_url <- REDIS_URL) or from .env,
      and pydantic coerces and range-checks it.

  validate_secret_key runs once every field is resolved. With DEBUG set it
      invents a throwaway key; without DEBUG a missing key stops startup.

Security notes:
  SECRET_KEY must be at least 32 characters. It is the only thing keeping
  HS256 tokens unforgeable.

  TOKEN_EXPIRE_SECONDS has no default. Token lifetime is a deployment decision
  and must be supplied explicitly.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, cache/, or tasks/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("todolist.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'todolist.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Environment variable name mapping: field names are uppercased automatically.
    E.g. `redis_url` reads from REDIS_URL, `bcrypt_rounds` from BCRYPT_ROUNDS.
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
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    token_expire_seconds: int = Field(gt=0)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # ------------------------------------------------------------------
    # Resource store
    # ------------------------------------------------------------------

    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    cache_enabled: bool = True
    redis_url: str = "redis://localhost:6379/0"
    cache_ttl_seconds: int = Field(default=300, gt=0)
    # Must stay well below client-facing request timeouts: a hanging cache
    # degrades a read into a store query, it never stalls it.
    cache_op_timeout_seconds: float = Field(default=0.25, gt=0)
    cache_health_check_seconds: float = Field(default=5.0, gt=0)
    cache_max_reconnect_attempts: int = Field(default=0, ge=0)  # 0 = unlimited

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Called by the lifespan and the CLI entry point only. Everything else
    receives the values it needs as constructor arguments.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
