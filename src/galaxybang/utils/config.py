import os
from pathlib import Path
from typing import Optional, Tuple

DEFAULT_LOG_LEVEL = "INFO"
UNIVERSE_FILE_NAME = "universe.json"


def get_world_data_path() -> Path:
    """Get world-data path (defaults to ./world-data, override with WORLD_DATA_DIR)."""
    env_path = os.getenv("WORLD_DATA_DIR")
    return Path(env_path) if env_path else Path.cwd() / "world-data"


def get_universe_path() -> Path:
    return get_world_data_path() / UNIVERSE_FILE_NAME


def get_supabase_credentials() -> Tuple[Optional[str], Optional[str]]:
    """Return (SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY) from the environment."""
    url = (os.getenv("SUPABASE_URL") or "").rstrip("/") or None
    key = os.getenv("SUPABASE_SERVICE_ROLE_KEY") or None
    return url, key


def get_log_level() -> str:
    return os.getenv("GALAXYBANG_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
