"""JSON persistence for station playback settings.

Loading is tolerant of invalid/missing values so a corrupt or hand-edited
settings file degrades to safe defaults instead of aborting startup. Every
fallback that the user should know about is returned as a notice.
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import suppress
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any
from uuid import uuid4

from tz_radio.runtime_config import (
    MAX_STATION_TRACKS_DEFAULT,
    normalize_station_sort_order,
    validate_max_station_tracks,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RadioConfig:
    """Persisted settings consumed by the station engine."""

    email: str = ""
    password: str = ""
    max_station_tracks: int = MAX_STATION_TRACKS_DEFAULT
    band_filter: str = ""
    flush_them: bool = False
    next_is_thumbs_down: bool = False
    super_previous: bool = False
    use_network_resolution_workaround: bool = False
    sort_order: str = "newest"
    log_level: str = "INFO"

    @property
    def has_credentials(self) -> bool:
        return bool(self.email and self.password)


def _coerce_config(data: dict[str, Any]) -> tuple[RadioConfig, list[str]]:
    """Coerce an untyped JSON object into `RadioConfig` plus warnings.

    Older settings files stored every value as a string (for example
    `"flushThem": "true"`), so both spellings are accepted.
    """
    notices: list[str] = []

    def _lookup(key: str, legacy: str) -> Any:
        return data[key] if key in data else data.get(legacy)

    def _bool_or_default(value: Any, default: bool) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
            return value.strip().lower() == "true"
        return default

    def _str_or_default(value: Any, default: str) -> str:
        if isinstance(value, str):
            return value
        return default

    raw_max = _lookup("max_station_tracks", "maxStationTracks")
    if raw_max is None:
        max_tracks = MAX_STATION_TRACKS_DEFAULT
    else:
        max_tracks, warning = validate_max_station_tracks(raw_max)
        if warning:
            logger.warning("Invalid max_station_tracks %r; using default.", raw_max)
            notices.append(warning)

    config = RadioConfig(
        email=_str_or_default(data.get("email"), ""),
        password=_str_or_default(data.get("password"), ""),
        max_station_tracks=max_tracks,
        band_filter=_str_or_default(_lookup("band_filter", "bandFilter"), ""),
        flush_them=_bool_or_default(_lookup("flush_them", "flushThem"), False),
        next_is_thumbs_down=_bool_or_default(
            _lookup("next_is_thumbs_down", "nextIsThumbsDown"), False
        ),
        super_previous=_bool_or_default(
            _lookup("super_previous", "superPrevious"), False
        ),
        use_network_resolution_workaround=_bool_or_default(
            _lookup("use_network_resolution_workaround", "useCurl302WorkAround"),
            False,
        ),
        sort_order=normalize_station_sort_order(
            _str_or_default(data.get("sort_order"), "newest")
        ),
        log_level=_str_or_default(data.get("log_level"), "INFO"),
    )
    return config, notices


def load_config_with_notices(path: Path) -> tuple[RadioConfig, list[str]]:
    """Load settings and return any user-facing notices."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.info("Config file missing at %s; using defaults.", path)
        return RadioConfig(), []
    except OSError as exc:
        logger.warning("Failed to read config file %s: %s; using defaults.", path, exc)
        return (
            RadioConfig(),
            [
                "Settings were reset to defaults.\n"
                "Likely cause: config file is unreadable due to permissions or IO issues.\n"
                f"Next step: verify access to '{path}' and restart."
            ],
        )

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Config file at %s is invalid JSON; using defaults.", path)
        return (
            RadioConfig(),
            [
                "Settings were reset to defaults.\n"
                "Likely cause: config file is corrupt or partially written.\n"
                f"Next step: remove or repair '{path}' and restart."
            ],
        )

    if not isinstance(data, dict):
        logger.warning("Config file at %s is not a JSON object; using defaults.", path)
        return (
            RadioConfig(),
            [
                "Settings were reset to defaults.\n"
                "Likely cause: config file format is invalid for this app version.\n"
                f"Next step: remove '{path}' and restart."
            ],
        )

    return _coerce_config(data)


def load_config(path: Path) -> RadioConfig:
    """Load settings from disk, falling back to defaults."""
    config, _notices = load_config_with_notices(path)
    return config


def save_config(path: Path, config: RadioConfig) -> None:
    """Persist settings atomically via write-then-replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.{uuid4().hex}.tmp")
    payload = json.dumps(asdict(config), indent=2, sort_keys=True)
    delay_s = 0.02
    try:
        for attempt in range(4):
            tmp_path.write_text(payload, encoding="utf-8")
            try:
                tmp_path.replace(path)
                return
            except PermissionError:
                # Windows refuses the replace while another process reads the file.
                if attempt >= 3:
                    raise
                time.sleep(delay_s)
                delay_s = min(0.25, delay_s * 2.0)
    finally:
        with suppress(OSError):
            tmp_path.unlink()
