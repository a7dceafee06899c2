import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from .errors import ConfigError


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


def normalize_database_url(url: str) -> str:
    """Ensure PostgreSQL URLs use the async driver"""
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def parse_origins(raw: str) -> List[str]:
    if raw.strip() == "*":
        return ["*"]
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@dataclass(frozen=True)
class Settings:
    database_url: str
    host: str = "0.0.0.0"
    port: int = 5000
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    db_connect_retries: int = 3
    db_retry_delay: float = 5.0
    db_echo: bool = False

    @staticmethod
    def from_env(dotenv_path: Optional[str] = None) -> "Settings":
        """Build settings from the process environment (and .env if present)"""
        load_dotenv(dotenv_path, override=False)

        database_url = (os.getenv("DATABASE_URL") or "").strip()
        if not database_url:
            raise ConfigError("DATABASE_URL is not set")

        return Settings(
            database_url=normalize_database_url(database_url),
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_int("PORT", 5000),
            allowed_origins=parse_origins(os.getenv("ALLOWED_ORIGINS", "*")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            db_connect_retries=max(1, _env_int("DB_CONNECT_RETRIES", 3)),
            db_retry_delay=_env_float("DB_RETRY_DELAY", 5.0),
            db_echo=_env_bool("DB_ECHO", False),
        )
