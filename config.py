import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        token_secret: str,
        token_max_age_hours: int,
        single_user: bool,
        default_user_id: int,
        summary_window_months: int,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.token_secret = token_secret
        self.token_max_age_hours = token_max_age_hours
        self.single_user = single_user
        self.default_user_id = default_user_id
        self.summary_window_months = summary_window_months
        self.log_level = log_level


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("LEDGER_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("LEDGER_DATABASE_URL")
    if not database_url:
        database_url = f"sqlite:///{_ensure_data_dir() / 'ledger.db'}"
    timezone = os.getenv("LEDGER_TIMEZONE", "Europe/Berlin")
    token_secret = os.getenv(
        "LEDGER_TOKEN_SECRET",
        "3f9c1d7e5b2a48c6a0e4d8b7c6f5a3e2d1c0b9a8f7e6d5c4b3a2918070605040",
    )
    token_max_age_hours = int(os.getenv("LEDGER_TOKEN_MAX_AGE_HOURS", "24"))
    single_user = _env_flag("LEDGER_SINGLE_USER", "true")
    default_user_id = int(os.getenv("LEDGER_DEFAULT_USER_ID", "1"))
    summary_window_months = int(os.getenv("LEDGER_SUMMARY_WINDOW_MONTHS", "3"))
    log_level = os.getenv("LEDGER_LOG_LEVEL", "INFO").upper()
    return Settings(
        database_url=database_url,
        timezone=timezone,
        token_secret=token_secret,
        token_max_age_hours=token_max_age_hours,
        single_user=single_user,
        default_user_id=default_user_id,
        summary_window_months=summary_window_months,
        log_level=log_level,
    )
