from __future__ import annotations

import os


def _env(name: str, default: str = "") -> str:
    return str(os.getenv(name, default) or default).strip()


def _env_int(name: str, default: int) -> int:
    try:
        return int(str(os.getenv(name, "") or "").strip() or default)
    except Exception:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = str(os.getenv(name, "") or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


def _env_csv(name: str, default: str = "") -> list[str]:
    raw = _env(name, default)
    return [p.strip() for p in raw.split(",") if p.strip()]


_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Config:
    """Runtime settings read from the environment (call after load_dotenv)."""

    def __init__(self) -> None:
        self.ENV = _env("ENV", "development").lower()
        self.APP_VERSION = _env("APP_VERSION", "0.1.0")
        self.LOG_LEVEL = _env("LOG_LEVEL", "INFO").upper()
        self.APP_TIMEZONE = _env("APP_TIMEZONE", "UTC")

        self.DATABASE_URL = _env("DATABASE_URL", "sqlite:///./hrflow.db")
        self.DB_POOL_SIZE = max(1, _env_int("DB_POOL_SIZE", 5))
        self.DB_ECHO = _env_bool("DB_ECHO", False)

        self.HOST = _env("HOST", "0.0.0.0")
        self.PORT = _env_int("PORT", 5002)

        self.CORS_ORIGINS = _env_csv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")
        self.CORS_ALLOW_CREDENTIALS = _env_bool("CORS_ALLOW_CREDENTIALS", False)

        self.CACHE_TTL_SECONDS = _env_int("CACHE_TTL_SECONDS", 60)
        self.CACHE_MAX_ITEMS = _env_int("CACHE_MAX_ITEMS", 50000)

        self.DEBUG_ERROR_DETAILS = _env_bool("DEBUG_ERROR_DETAILS", False)
        self.MANAGER_CHAIN_MAX_DEPTH = max(1, _env_int("MANAGER_CHAIN_MAX_DEPTH", 64))

    @property
    def IS_PRODUCTION(self) -> bool:
        return self.ENV in {"prod", "production"}

    def validate(self) -> None:
        if self.LOG_LEVEL not in _LOG_LEVELS:
            raise RuntimeError(f"Invalid LOG_LEVEL: {self.LOG_LEVEL}")
        if not self.DATABASE_URL:
            raise RuntimeError("DATABASE_URL is required")
        if self.IS_PRODUCTION and self.DATABASE_URL.startswith("sqlite"):
            raise RuntimeError("SQLite is not supported in production (set DATABASE_URL)")


def get_config() -> Config:
    cfg = Config()
    cfg.validate()
    return cfg
