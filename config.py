import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        default_currency: str,
        scheduler_enabled: bool,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.default_currency = default_currency
        self.scheduler_enabled = scheduler_enabled


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINANCE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "finance.db"
    database_url = os.getenv("FINANCE_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("FINANCE_TIMEZONE", "UTC")
    default_currency = os.getenv("FINANCE_DEFAULT_CURRENCY", "USD").upper()
    scheduler_enabled = _env_flag("FINANCE_SCHEDULER_ENABLED", True)
    return Settings(
        database_url=database_url,
        timezone=timezone,
        default_currency=default_currency,
        scheduler_enabled=scheduler_enabled,
    )
