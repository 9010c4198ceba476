"""Playback queue store contract and event payloads.

The queue store owns the authoritative, shared, ordered queue and the decoder
that plays it. Nothing here is transactional: every caller re-reads the queue
and re-resolves entries by `uri` right before mutating it.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Literal, Protocol

from tz_radio.services.models import Track

StoreStatus = Literal["idle", "playing", "paused", "stopped"]


@dataclass(frozen=True)
class StoreEvent:
    """Marker base type for store-originated events."""

    pass


@dataclass(frozen=True)
class PlaybackAdvanced(StoreEvent):
    """The entry at `finished_index` played to its end."""

    finished_index: int
    uri: str


@dataclass(frozen=True)
class StoreStateChanged(StoreEvent):
    status: StoreStatus


@dataclass(frozen=True)
class StoreFault(StoreEvent):
    """Decoder-reported stream failure for the current entry."""

    message: str


class PlaybackQueueStore(Protocol):
    """Queue/decoder protocol consumed by the station engine.

    All calls may raise `PlaybackStoreError`. Removing an entry before the
    current position shifts the current position so it keeps pointing at the
    same entry.
    """

    def set_event_handler(
        self, handler: Callable[[StoreEvent], Awaitable[None]]
    ) -> None: ...

    async def start(self) -> None: ...

    async def shutdown(self) -> None: ...

    async def append(self, tracks: Sequence[Track]) -> None: ...

    async def move(self, from_index: int, to_index: int) -> None: ...

    async def remove_at(self, index: int) -> None: ...

    async def get_all(self) -> list[Track]: ...

    async def get_current_position(self) -> int | None: ...

    async def set_current_position(self, index: int) -> None: ...

    async def next_index(self) -> int | None: ...

    async def is_random(self) -> bool: ...

    async def set_random(self, enabled: bool) -> None: ...

    async def play(self, index: int, *, playable_uri: str | None = None) -> None: ...

    async def stop(self) -> None: ...

    async def pause(self) -> None: ...

    async def resume(self) -> None: ...

    async def clear(self) -> None: ...

    async def get_elapsed_ms(self) -> int: ...
