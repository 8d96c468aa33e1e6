"""
Environment-driven settings for GeneratorLog.

All variables use the GENERATORLOG_ prefix, e.g. GENERATORLOG_ENV=production.
"""
import os
from dataclasses import dataclass
from functools import lru_cache


ENV_PREFIX = "GENERATORLOG_"


def _env(name: str, default: str) -> str:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


def _env_int(name: str, default: int) -> int:
    raw = _env(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = _env(name, str(default))
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    return _env(name, "true" if default else "false").lower() == "true"


@dataclass(frozen=True)
class Settings:
    env: str = "development"
    database_url: str = "sqlite:///.data/generatorlog.db"
    api_rate_limit: int = 1
    api_rate_window_seconds: float = 1.0
    rate_limit_sweep_seconds: float = 60.0
    session_cookie_name: str = "generatorlog_session"
    session_max_age_seconds: int = 24 * 60 * 60
    log_level: str = "INFO"
    log_to_file: bool = True
    trusted_proxies: str = ""
    cors_origin: str = "http://localhost:5173"

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from GENERATORLOG_* environment variables."""
        settings = cls(
            env=_env("ENV", cls.env),
            database_url=_env("DB_URL", cls.database_url),
            api_rate_limit=_env_int("API_RATE_LIMIT", cls.api_rate_limit),
            api_rate_window_seconds=_env_float("API_RATE_WINDOW_SECONDS", cls.api_rate_window_seconds),
            rate_limit_sweep_seconds=_env_float("RATE_LIMIT_SWEEP_SECONDS", cls.rate_limit_sweep_seconds),
            session_cookie_name=_env("SESSION_COOKIE_NAME", cls.session_cookie_name),
            session_max_age_seconds=_env_int("SESSION_MAX_AGE_SECONDS", cls.session_max_age_seconds),
            log_level=_env("LOG_LEVEL", cls.log_level).upper(),
            log_to_file=_env_bool("LOG_TO_FILE", cls.log_to_file),
            trusted_proxies=_env("TRUSTED_PROXIES", cls.trusted_proxies),
            cors_origin=_env("CORS_ORIGIN", cls.cors_origin),
        )
        if settings.api_rate_limit < 1:
            raise ValueError(f"{ENV_PREFIX}API_RATE_LIMIT must be at least 1")
        if settings.session_max_age_seconds < 1:
            raise ValueError(f"{ENV_PREFIX}SESSION_MAX_AGE_SECONDS must be at least 1")
        return settings


@lru_cache
def get_settings() -> Settings:
    """Get cached settings, parsing the environment on first access."""
    return Settings.from_env()
