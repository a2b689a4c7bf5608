import os
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        seed_default_categories: bool,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.tzinfo = _load_timezone(timezone)
        self.seed_default_categories = seed_default_categories
        self.log_level = log_level


def _load_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone in BILLS_TIMEZONE: {name!r}") from exc


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("BILLS_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("BILLS_DATABASE_URL")
    if not database_url:
        default_db = _ensure_data_dir() / "bills.db"
        database_url = f"sqlite:///{default_db}"
    timezone = os.getenv("BILLS_TIMEZONE", "UTC")
    seed_default_categories = _env_flag("BILLS_SEED_CATEGORIES", True)
    log_level = os.getenv("BILLS_LOG_LEVEL", "INFO").upper()
    return Settings(
        database_url=database_url,
        timezone=timezone,
        seed_default_categories=seed_default_categories,
        log_level=log_level,
    )
