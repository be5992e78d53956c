import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        data_dir: Path,
        preferences_path: Path,
        strict_month_labels: bool,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.data_dir = data_dir
        self.preferences_path = preferences_path
        self.strict_month_labels = strict_month_labels


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("BILLS_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "bills.db"
    database_url = os.getenv("BILLS_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("BILLS_TIMEZONE", "America/New_York")
    preferences_path = Path(
        os.getenv("BILLS_PREFERENCES_PATH", str(data_dir / "preferences.json"))
    )
    strict_month_labels = _env_flag("BILLS_STRICT_MONTH_LABELS")
    return Settings(
        database_url=database_url,
        timezone=timezone,
        data_dir=data_dir,
        preferences_path=preferences_path,
        strict_month_labels=strict_month_labels,
    )
