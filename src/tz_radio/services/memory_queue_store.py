"""In-memory playback queue store for deterministic testing and demos."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable, Sequence
from contextlib import suppress
from dataclasses import dataclass, field

from tz_radio.errors import PlaybackStoreError
from tz_radio.services.models import Track
from tz_radio.services.queue_store import (
    PlaybackAdvanced,
    StoreEvent,
    StoreFault,
    StoreStateChanged,
    StoreStatus,
)


@dataclass
class _QueueState:
    entries: list[Track] = field(default_factory=list)
    position: int | None = None
    status: StoreStatus = "idle"
    elapsed_ms: int = 0
    random: bool = False


class InMemoryQueueStore:
    """List-backed queue with a ticker that simulates track progress.

    `fail_next` makes the next mutating call raise `PlaybackStoreError`.
    `stalled` freezes elapsed time while playing, which is how a dead stream
    looks from the outside.
    """

    def __init__(
        self,
        *,
        tick_interval_ms: int = 250,
        track_duration_ms: int = 180_000,
        rng: random.Random | None = None,
    ) -> None:
        self._tick_interval_ms = tick_interval_ms
        self._track_duration_ms = track_duration_ms
        self._rng = rng or random.Random()
        self._state = _QueueState()
        self._handler: Callable[[StoreEvent], Awaitable[None]] | None = None
        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self.fail_next: str | None = None
        self.stalled = False
        self.played: list[tuple[int, str, str]] = []

    def set_event_handler(
        self, handler: Callable[[StoreEvent], Awaitable[None]]
    ) -> None:
        self._handler = handler

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._ticker_loop())

    async def shutdown(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def append(self, tracks: Sequence[Track]) -> None:
        async with self._lock:
            self._raise_scripted()
            self._state.entries.extend(tracks)

    async def move(self, from_index: int, to_index: int) -> None:
        async with self._lock:
            self._raise_scripted()
            entries = self._state.entries
            self._check_index(from_index)
            self._check_index(to_index)
            current = self._current_track()
            track = entries.pop(from_index)
            entries.insert(to_index, track)
            if current is not None:
                self._state.position = entries.index(current)

    async def remove_at(self, index: int) -> None:
        async with self._lock:
            self._raise_scripted()
            self._check_index(index)
            del self._state.entries[index]
            position = self._state.position
            if position is None:
                return
            if not self._state.entries:
                self._state.position = None
            elif index < position:
                self._state.position = position - 1
            elif position >= len(self._state.entries):
                self._state.position = len(self._state.entries) - 1

    async def get_all(self) -> list[Track]:
        async with self._lock:
            return list(self._state.entries)

    async def get_current_position(self) -> int | None:
        async with self._lock:
            return self._state.position

    async def set_current_position(self, index: int) -> None:
        async with self._lock:
            self._check_index(index)
            self._state.position = index

    async def next_index(self) -> int | None:
        async with self._lock:
            count = len(self._state.entries)
            if count == 0:
                return None
            position = self._state.position
            if position is None:
                return 0
            if self._state.random and count > 1:
                choices = [index for index in range(count) if index != position]
                return self._rng.choice(choices)
            return (position + 1) % count

    async def is_random(self) -> bool:
        async with self._lock:
            return self._state.random

    async def set_random(self, enabled: bool) -> None:
        async with self._lock:
            self._state.random = bool(enabled)

    async def play(self, index: int, *, playable_uri: str | None = None) -> None:
        async with self._lock:
            self._raise_scripted()
            self._check_index(index)
            track = self._state.entries[index]
            self._state.position = index
            self._state.status = "playing"
            self._state.elapsed_ms = 0
            self.played.append((index, track.uri, playable_uri or track.real_uri))
        await self._emit(StoreStateChanged("playing"))

    async def stop(self) -> None:
        async with self._lock:
            self._raise_scripted()
            self._state.status = "stopped"
            self._state.elapsed_ms = 0
        await self._emit(StoreStateChanged("stopped"))

    async def pause(self) -> None:
        async with self._lock:
            if self._state.status != "playing":
                return
            self._state.status = "paused"
        await self._emit(StoreStateChanged("paused"))

    async def resume(self) -> None:
        async with self._lock:
            if self._state.status != "paused":
                return
            self._state.status = "playing"
        await self._emit(StoreStateChanged("playing"))

    async def clear(self) -> None:
        async with self._lock:
            self._state.entries.clear()
            self._state.position = None
            self._state.status = "stopped"
            self._state.elapsed_ms = 0

    async def get_elapsed_ms(self) -> int:
        async with self._lock:
            return self._state.elapsed_ms

    async def get_status(self) -> StoreStatus:
        async with self._lock:
            return self._state.status

    async def finish_current(self) -> None:
        """Play the current entry to its end immediately."""
        async with self._lock:
            if self._state.status != "playing":
                return
            self._state.elapsed_ms = self._track_duration_ms
        await self._tick()

    async def report_fault(self, message: str) -> None:
        """Emit a decoder fault for the current entry."""
        await self._emit(StoreFault(message))

    async def _ticker_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._tick_interval_ms / 1000)
                await self._tick()
        except asyncio.CancelledError:
            pass

    async def _tick(self) -> None:
        async with self._lock:
            if self._state.status != "playing" or self._state.position is None:
                return
            if not self.stalled and self._state.elapsed_ms < self._track_duration_ms:
                self._state.elapsed_ms += self._tick_interval_ms
            if self._state.elapsed_ms < self._track_duration_ms:
                return
            finished_index = self._state.position
            finished_uri = self._state.entries[finished_index].uri
            self._state.status = "stopped"
            self._state.elapsed_ms = 0
        await self._emit(StoreStateChanged("stopped"))
        await self._emit(PlaybackAdvanced(finished_index, finished_uri))

    def _current_track(self) -> Track | None:
        position = self._state.position
        if position is None or position >= len(self._state.entries):
            return None
        return self._state.entries[position]

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._state.entries):
            raise PlaybackStoreError(
                f"Queue index {index} out of range (length {len(self._state.entries)})"
            )

    def _raise_scripted(self) -> None:
        if self.fail_next is not None:
            message, self.fail_next = self.fail_next, None
            raise PlaybackStoreError(message)

    async def _emit(self, event: StoreEvent) -> None:
        if self._handler is None:
            return
        await self._handler(event)
