from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

DEFAULT_SECRET = "change-me-before-production"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Environment:
    """Startup configuration handed explicitly to every collaborator."""

    app_id: str = "default-app-id"
    db_path: Path = Path("data/app.db")
    app_secret: str = DEFAULT_SECRET
    bootstrap_token: str | None = None
    remember_me_path: Path | None = None
    remember_me_days: int = 30
    history_limit: int = 100
    refresh_seconds: float = 2.0
    log_level: str = "INFO"

    @property
    def remember_me_seconds(self) -> int:
        return self.remember_me_days * 24 * 60 * 60


def _lookup(name: str, secrets: Mapping[str, Any]) -> str | None:
    env_value = os.getenv(f"GLICEMIA_{name}")
    if env_value:
        return env_value
    secret_value = secrets.get(name)
    if secret_value in (None, ""):
        return None
    return str(secret_value)


def load_environment(secrets: Mapping[str, Any] | None = None) -> Environment:
    """Build the Environment from ``GLICEMIA_*`` variables, then ``secrets``, then defaults."""
    secrets = secrets or {}
    defaults = Environment()

    remember_path = _lookup("REMEMBER_ME_PATH", secrets)
    env = Environment(
        app_id=_lookup("APP_ID", secrets) or defaults.app_id,
        db_path=Path(_lookup("DB_PATH", secrets) or defaults.db_path).expanduser(),
        app_secret=_lookup("APP_SECRET", secrets) or defaults.app_secret,
        bootstrap_token=_lookup("BOOTSTRAP_TOKEN", secrets),
        remember_me_path=Path(remember_path).expanduser() if remember_path else None,
        remember_me_days=int(_lookup("REMEMBER_ME_DAYS", secrets) or defaults.remember_me_days),
        history_limit=int(_lookup("HISTORY_LIMIT", secrets) or defaults.history_limit),
        refresh_seconds=float(_lookup("REFRESH_SECONDS", secrets) or defaults.refresh_seconds),
        log_level=(_lookup("LOG_LEVEL", secrets) or defaults.log_level).upper(),
    )
    if env.app_secret == DEFAULT_SECRET:
        logger.warning("GLICEMIA_APP_SECRET is not set; using the development default")
    return env


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
