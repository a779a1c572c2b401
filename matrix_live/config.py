# matrix_live/config.py
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# Loads variables from a local .env file into environment variables (dev only).
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    # App config
    app_env: str
    log_level: str
    provider: str

    # Provider config (Gaggle group mail)
    gaggle_base_url: str
    gaggle_api_key: str
    gaggle_group_email: str
    gaggle_timeout_seconds: float

    # Email body format
    split_char: str
    symbol_prefix: str

    # Series / polling
    max_series_points: int
    poll_interval_seconds: float
    poll_enabled: bool
    snapshot_path: str

    # Access code for the non-API pages (None = open)
    auth_code: Optional[str]


def get_settings() -> Settings:
    """
    Reads env vars and returns a Settings object.
    The API key is only enforced when the provider is built, so the app can boot without it.
    """
    auth_code = os.getenv("AUTH_CODE", "").strip() or None

    return Settings(
        app_env=os.getenv("APP_ENV", "local"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        provider=os.getenv("PROVIDER", "GAGGLE"),
        gaggle_base_url=os.getenv("GAGGLE_BASE_URL", "https://api.gaggle.email/api/v3"),
        gaggle_api_key=os.getenv("GAGGLE_API_KEY", "").strip(),
        gaggle_group_email=os.getenv("GAGGLE_GROUP_EMAIL", "").strip(),
        gaggle_timeout_seconds=float(os.getenv("GAGGLE_TIMEOUT_SECONDS", "20")),
        split_char=os.getenv("SPLIT_CHAR", "<br/>"),
        symbol_prefix=os.getenv("SYMBOL_PREFIX", "@ES"),
        max_series_points=int(os.getenv("MAX_SERIES_POINTS", "100")),
        poll_interval_seconds=float(os.getenv("POLL_INTERVAL_SECONDS", "120")),
        poll_enabled=_env_bool("POLL_ENABLED", True),
        snapshot_path=os.getenv("SNAPSHOT_PATH", "data/latest.json"),
        auth_code=auth_code,
    )
