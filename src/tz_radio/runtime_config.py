"""Runtime configuration normalization helpers.

These helpers keep flag and setting interpretation deterministic across
entrypoints and the settings file.
"""

from __future__ import annotations

from tz_radio.errors import ConfigurationInvalid

MAX_STATION_TRACKS_DEFAULT = 16
MAX_STATION_TRACKS_MIN = 8
STATION_SORT_ORDERS = ("newest", "oldest", "a-z", "z-a")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def resolve_log_level(*, verbose: bool, quiet: bool, default: str = "INFO") -> str:
    """Resolve effective log level from CLI flags and the configured level.

    Precedence is deterministic: --quiet overrides --verbose, and either flag
    overrides `default`. An unrecognized `default` falls back to INFO.
    """
    if quiet:
        return "WARNING"
    if verbose:
        return "DEBUG"
    level = default.strip().upper()
    return level if level in LOG_LEVELS else "INFO"


def parse_max_station_tracks(value: object) -> int:
    """Parse the per-station track maximum or raise `ConfigurationInvalid`."""
    if isinstance(value, bool):
        raise ConfigurationInvalid("Invalid Song Maximum!")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = int(value.strip())
        except ValueError as exc:
            raise ConfigurationInvalid("Invalid Song Maximum!") from exc
    else:
        raise ConfigurationInvalid("Invalid Song Maximum!")
    if parsed < MAX_STATION_TRACKS_MIN:
        raise ConfigurationInvalid(
            f"Invalid Song Maximum!\nShould be at least {MAX_STATION_TRACKS_MIN}"
        )
    return parsed


def validate_max_station_tracks(value: object) -> tuple[int, str | None]:
    """Return a usable track maximum and an optional user-facing warning."""
    try:
        return parse_max_station_tracks(value), None
    except ConfigurationInvalid as exc:
        return (
            MAX_STATION_TRACKS_DEFAULT,
            f"{exc}\nSetting to default ({MAX_STATION_TRACKS_DEFAULT}).",
        )


def prefetch_floor(max_station_tracks: int) -> int:
    """Minimum count of upcoming station tracks before a fetch is due."""
    return max(MAX_STATION_TRACKS_MIN, int(max_station_tracks) // 2)


def normalize_station_sort_order(value: str) -> str:
    """Normalize persisted/CLI sort order to a supported ordering name."""
    normalized = value.strip().lower()
    if normalized in STATION_SORT_ORDERS:
        return normalized
    return "newest"
