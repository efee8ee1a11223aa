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
        report_cache_ttl_secs: float,
        currency_symbol: str,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.token_secret = token_secret
        self.token_max_age_hours = token_max_age_hours
        self.report_cache_ttl_secs = report_cache_ttl_secs
        self.currency_symbol = currency_symbol
        self.log_level = log_level


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINANCE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("FINANCE_DATABASE_URL")
    if not database_url:
        database_url = f"sqlite:///{_ensure_data_dir() / 'finance.db'}"
    timezone = os.getenv("FINANCE_TIMEZONE", "UTC")
    token_secret = os.getenv(
        "FINANCE_TOKEN_SECRET",
        "3f0c9a52e1d84b7f96a1c2e0d5b84f7a0c6e2d9b1a4f8e3c7d5b2a9e6f1c0d84",
    )
    token_max_age_hours = int(os.getenv("FINANCE_TOKEN_MAX_AGE_HOURS", "24"))
    report_cache_ttl_secs = float(os.getenv("FINANCE_REPORT_CACHE_TTL_SECS", "300"))
    currency_symbol = os.getenv("FINANCE_CURRENCY_SYMBOL", "₹")
    log_level = os.getenv("FINANCE_LOG_LEVEL", "INFO").upper()
    return Settings(
        database_url=database_url,
        timezone=timezone,
        token_secret=token_secret,
        token_max_age_hours=token_max_age_hours,
        report_cache_ttl_secs=report_cache_ttl_secs,
        currency_symbol=currency_symbol,
        log_level=log_level,
    )
