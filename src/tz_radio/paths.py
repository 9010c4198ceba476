"""Per-user locations for settings and logs."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from platformdirs import AppDirs

DEFAULT_APP_NAME = "tz-radio"
CONFIG_FILE_NAME = "config.json"


@lru_cache(maxsize=4)
def get_app_dirs(app_name: str = DEFAULT_APP_NAME) -> AppDirs:
    return AppDirs(app_name, appauthor=False)


def _ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def config_dir(app_name: str = DEFAULT_APP_NAME) -> Path:
    """Return the settings directory, creating it if needed."""
    return _ensure_dir(Path(get_app_dirs(app_name).user_config_dir))


def log_dir(app_name: str = DEFAULT_APP_NAME) -> Path:
    """Return the platform log directory, creating it if needed."""
    return _ensure_dir(Path(get_app_dirs(app_name).user_log_dir))


def config_path(app_name: str = DEFAULT_APP_NAME) -> Path:
    return config_dir(app_name) / CONFIG_FILE_NAME
