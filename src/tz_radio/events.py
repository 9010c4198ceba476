"""Service events emitted by the orchestrator for UI and telemetry consumers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tz_radio.services.models import Station, Track
    from tz_radio.services.session_state import SessionState


@dataclass(frozen=True)
class SessionStateChanged:
    """Emitted after every command or timer event that changed the session."""

    state: SessionState
    queue: tuple[Track, ...]


@dataclass(frozen=True)
class TrackChanged:
    """Emitted when a new track was handed to the queue store."""

    track: Track | None
    station_name: str | None


@dataclass(frozen=True)
class StationsUpdated:
    """Emitted after the station cache fetched a fresh snapshot."""

    stations: tuple[Station, ...]
