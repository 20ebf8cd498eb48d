"""Process configuration, read once from the environment.

    APP_ENV                   dev | test | prod             (dev)
    LOG_LEVEL                 debug | info | warning | error (info)
    LOG_JSON                  emit JSON Lines logs          (false)
    PORT                      listen port                   (8000)
    DATABASE_URL              postgresql+asyncpg://...      (unset: in-memory repos)
    JWT_SECRET                HS256 secret for student tokens (required in prod)
    QUERY_CACHE_TTL_SECONDS   taxonomy query cache TTL      (30)
    QUERY_CACHE_MAX_ENTRIES   entries per resource cache    (50)

Bad values fail at import with a ValueError naming the variable.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_APP_ENVS: tuple[str, ...] = ("dev", "test", "prod")
_LOG_LEVELS: tuple[str, ...] = ("debug", "info", "warning", "error")
_BOOLEANS = {
    **dict.fromkeys(("1", "true", "yes", "on"), True),
    **dict.fromkeys(("0", "false", "no", "off", ""), False),
}

DEV_JWT_SECRET = "studytrack-dev-secret"


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def _env_choice(name: str, default: str, choices: tuple[str, ...]) -> str:
    value = _env(name, default).lower()
    if value not in choices:
        raise ValueError(f"{name} must be {'|'.join(choices)} (got {value!r})")
    return value


def _env_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = _env(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {value})")
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = _env(name, "true" if default else "false").lower()
    if raw not in _BOOLEANS:
        raise ValueError(f"{name} must be a boolean (got {raw!r})")
    return _BOOLEANS[raw]


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    jwt_secret: str
    query_cache_ttl_seconds: int
    query_cache_max_entries: int

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env = _env_choice("APP_ENV", "dev", _APP_ENVS)

    jwt_secret = _env("JWT_SECRET")
    if not jwt_secret:
        if app_env == "prod":
            raise ValueError("JWT_SECRET is required when APP_ENV=prod")
        jwt_secret = DEV_JWT_SECRET

    return Settings(  # type: ignore[arg-type]
        app_env=app_env,
        log_level=_env_choice("LOG_LEVEL", "info", _LOG_LEVELS),
        log_json=_env_bool("LOG_JSON"),
        port=_env_int("PORT", 8000),
        database_url=_env("DATABASE_URL") or None,
        jwt_secret=jwt_secret,
        query_cache_ttl_seconds=_env_int("QUERY_CACHE_TTL_SECONDS", 30, minimum=1),
        query_cache_max_entries=_env_int("QUERY_CACHE_MAX_ENTRIES", 50, minimum=1),
    )


SETTINGS = load_settings()
