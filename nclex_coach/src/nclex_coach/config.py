"""
Runtime Settings

Reads configuration from the environment (and a local .env file).
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

APP_STORAGE_KEY = "nclex_coach_v1"
DEFAULT_DATA_DIR = Path.home() / ".nclex_coach"
DEFAULT_DEBOUNCE_SECONDS = 1.0


@dataclass
class Settings:
    """Settings for one application process."""
    data_dir: Path = DEFAULT_DATA_DIR
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    sync_enabled: bool = True
    sync_debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    log_level: str = "INFO"

    @property
    def sync_configured(self) -> bool:
        """Remote sync needs both credentials and the feature flag."""
        return self.sync_enabled and bool(self.supabase_url and self.supabase_key)


def _env_flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Load settings from environment variables.

    Args:
        env_file: Optional path to a .env file (defaults to ./.env)

    Returns:
        Settings instance
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    data_dir = os.getenv("NCLEX_COACH_DATA_DIR")
    debounce = os.getenv("SYNC_DEBOUNCE_SECONDS")

    try:
        debounce_seconds = float(debounce) if debounce else DEFAULT_DEBOUNCE_SECONDS
    except ValueError:
        debounce_seconds = DEFAULT_DEBOUNCE_SECONDS

    return Settings(
        data_dir=Path(data_dir).expanduser() if data_dir else DEFAULT_DATA_DIR,
        supabase_url=os.getenv("SUPABASE_URL") or None,
        supabase_key=os.getenv("SUPABASE_KEY") or None,
        sync_enabled=_env_flag("SYNC_ENABLED"),
        sync_debounce_seconds=max(0.0, debounce_seconds),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
