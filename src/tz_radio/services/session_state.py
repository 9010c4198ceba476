"""Session snapshot owned by the playback session orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

SessionStatus = Literal["idle", "playing", "paused", "stopped"]


@dataclass(frozen=True)
class SessionState:
    """Immutable view of the playback session.

    Only the orchestrator produces new snapshots (via `dataclasses.replace`);
    subordinate components receive a snapshot and return a new one.

    `station_selected` means the user just chose a station explicitly and the
    switch sequence has not finished its first reconcile yet. `continuing`
    means the current play was started by a natural track end; only then does
    the previously played station track leave the queue.
    """

    status: SessionStatus = "idle"
    current_station_id: str | None = None
    current_uri: str | None = None
    current_queue_position: int | None = None
    last_played_uri: str | None = None
    station_selected: bool = False
    continuing: bool = False
    old_queue_length: int = 0
    epoch: int = 0
    logged_in: bool = False
    error: str | None = None
