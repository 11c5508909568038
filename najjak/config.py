"""
Application Configuration.

Pydantic Settings model for the Najjak authentication client.
All configuration is loaded from environment variables and .env files.
Inject an AppConfig instance via dependency injection where needed.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    # --- Remote identity service ---
    BACKEND_BASE_URL: str = "http://localhost:8000"
    # Prepended to the login / register / logout / forgot-password paths.
    # Deployments that mount the auth routes under ``/api`` set this to "/api".
    AUTH_PATH_PREFIX: str = ""
    CSRF_COOKIE_PATH: str = "/sanctum/csrf-cookie"
    LOGIN_PATH: str = "/login"
    REGISTER_PATH: str = "/register"
    LOGOUT_PATH: str = "/logout"
    FORGOT_PASSWORD_PATH: str = "/forgot-password"
    PROFILE_ENDPOINTS: list[str] = Field(
        default_factory=lambda: ["/api/user", "/api/me"],
    )
    XSRF_COOKIE_NAME: str = "XSRF-TOKEN"
    XSRF_HEADER_NAME: str = "X-XSRF-TOKEN"
    # ``None`` leaves remote calls unbounded; a hung call keeps the
    # session in AUTHENTICATING until the transport resolves.
    HTTP_TIMEOUT_S: Optional[float] = None

    # --- Local persistence ---
    LOCAL_STORE_PATH: Path = Path("najjak_local.db")

    # --- Logging ---
    LOG_FILE: str = "najjak_auth.log"
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _warn_missing_env(self) -> "AppConfig":
        """Emit a startup warning when critical configuration is empty.

        Pydantic silently falls back to defaults when ``.env`` is missing,
        so operators get a hint on first run.
        """
        _log = logging.getLogger("najjak.config")

        if not Path(".env").exists():
            _log.warning(
                "No .env file found; all configuration loaded from "
                "environment variables or defaults."
            )

        if not self.BACKEND_BASE_URL:
            _log.warning(
                "BACKEND_BASE_URL is empty; every remote call will fail "
                "and only local credentials can sign in."
            )

        return self

    def auth_path(self, path: str) -> str:
        """Return *path* with ``AUTH_PATH_PREFIX`` applied."""
        prefix = self.AUTH_PATH_PREFIX.rstrip("/")
        return f"{prefix}{path}" if prefix else path


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Return a cached ``AppConfig`` singleton.

    Uses a check-lock-check pattern so the fast path never takes the lock.
    Prefer constructor injection of ``AppConfig`` in new code; the logger
    factory relies on this for its rotation defaults.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance
