import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from errors import ConfigError

DEFAULT_PORT = 3001
# Non-prod fallback so the server always boots without a hosted Postgres
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./app.db"


@dataclass(frozen=True)
class Settings:
    supabase_url: str
    supabase_anon_key: str
    supabase_jwt_secret: Optional[str] = None
    database_url: str = DEFAULT_DATABASE_URL
    port: int = DEFAULT_PORT
    cors_origins: Tuple[str, ...] = ("*",)
    date_timezone: str = "UTC"
    log_level: str = "INFO"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.date_timezone)


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from the environment, failing fast on missing provider credentials."""
    if environ is None:
        load_dotenv()
        environ = os.environ

    supabase_url = environ.get("SUPABASE_URL", "").strip()
    supabase_anon_key = environ.get("SUPABASE_ANON_KEY", "").strip()
    if not supabase_url or not supabase_anon_key:
        raise ConfigError("Missing Supabase environment variables! Set SUPABASE_URL and SUPABASE_ANON_KEY.")

    raw_port = environ.get("PORT", "").strip() or str(DEFAULT_PORT)
    try:
        port = int(raw_port)
    except ValueError:
        raise ConfigError(f"PORT must be an integer, got {raw_port!r}")

    tz_name = environ.get("TRANSACTION_TIMEZONE", "").strip() or "UTC"
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigError(f"Unknown TRANSACTION_TIMEZONE {tz_name!r}")

    origins = tuple(o.strip() for o in environ.get("CORS_ORIGINS", "*").split(",") if o.strip()) or ("*",)

    return Settings(
        supabase_url=supabase_url.rstrip("/"),
        supabase_anon_key=supabase_anon_key,
        supabase_jwt_secret=environ.get("SUPABASE_JWT_SECRET", "").strip() or None,
        database_url=environ.get("DATABASE_URL", "").strip() or DEFAULT_DATABASE_URL,
        port=port,
        cors_origins=origins,
        date_timezone=tz_name,
        log_level=(environ.get("LOG_LEVEL", "").strip() or "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
