"""Station, track and queue-snapshot value types.

Tracks are immutable; the only mutable aspect of a track is its position in
the shared playback queue, which belongs to the queue store and is always
re-read rather than cached.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class Station:
    """Station metadata as returned by the station service."""

    id: str
    display_name: str
    artist: str = ""
    album: str = ""
    album_art_ref: str = ""


@dataclass(frozen=True)
class Track:
    """One fetched station track.

    `uri` is the stable identity used for every queue lookup. `real_uri` is
    the playable location handed to the queue store. An empty `station_id`
    marks a foreign entry queued by some other source.
    """

    uri: str
    real_uri: str
    station_id: str
    title: str = ""
    artist: str = ""
    album: str = ""
    album_art_ref: str = ""
    fetch_time: float = 0.0
    track_token: str = ""

    @property
    def is_station_track(self) -> bool:
        return bool(self.station_id)


@dataclass(frozen=True)
class QueueEntry:
    track: Track
    index: int


@dataclass(frozen=True)
class StationBlock:
    """Snapshot of one station's tracks in queue order."""

    station_id: str
    entries: tuple[QueueEntry, ...]
    position_in_block: int
    queue_length: int

    @property
    def track_count(self) -> int:
        return len(self.entries)

    @property
    def remaining(self) -> int:
        """Station tracks queued after the current one."""
        if self.position_in_block < 0:
            return len(self.entries)
        return len(self.entries) - self.position_in_block - 1

    @property
    def is_contiguous(self) -> bool:
        return all(
            later.index == earlier.index + 1
            for earlier, later in zip(self.entries, self.entries[1:])
        )

    @property
    def is_last(self) -> bool:
        """Block is contiguous and ends at the queue tail."""
        if not self.entries:
            return True
        return (
            self.is_contiguous and self.entries[-1].index == self.queue_length - 1
        )

    @property
    def uris(self) -> tuple[str, ...]:
        return tuple(entry.track.uri for entry in self.entries)


def build_station_block(
    queue: Sequence[Track], station_id: str | None, current_uri: str | None
) -> StationBlock:
    """Collect the tracks of `station_id` and locate `current_uri` among them."""
    entries = tuple(
        QueueEntry(track=track, index=index)
        for index, track in enumerate(queue)
        if station_id and track.station_id == station_id
    )
    position = -1
    if current_uri is not None:
        for offset, entry in enumerate(entries):
            if entry.track.uri == current_uri:
                position = offset
                break
    return StationBlock(
        station_id=station_id or "",
        entries=entries,
        position_in_block=position,
        queue_length=len(queue),
    )


def index_of_uri(queue: Sequence[Track], uri: str | None) -> int | None:
    """Resolve a queue index by stable identity; `None` when absent."""
    if uri is None:
        return None
    for index, track in enumerate(queue):
        if track.uri == uri:
            return index
    return None
