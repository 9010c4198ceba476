"""Error taxonomy shared by the station engine and its collaborators.

Recovery policy lives with the callers: `StationNotFound` aborts the current
operation with a warning, `AuthExpired` is retried once after a silent
re-login, and stream faults (`NetworkError`, `PlaybackStoreError`) are
recovered by skipping to the next track.
"""

from __future__ import annotations


class RadioError(Exception):
    """Base class for all tz-radio errors."""


class StationNotFound(RadioError):
    """Station id is absent from the latest station snapshot."""

    def __init__(self, station_id: str) -> None:
        super().__init__(f"Station not found: {station_id}")
        self.station_id = station_id


class AuthError(RadioError):
    """Credentials were rejected by the station service."""


class AuthExpired(RadioError):
    """Session handle is no longer valid; a fresh login is required."""


class NetworkError(RadioError):
    """Station service or stream endpoint could not be reached."""


class PlaybackStoreError(RadioError):
    """Playback queue store rejected or failed a command."""


class ConfigurationInvalid(RadioError, ValueError):
    """Persisted setting could not be interpreted."""


STREAM_FAULTS: tuple[type[Exception], ...] = (NetworkError, PlaybackStoreError)
