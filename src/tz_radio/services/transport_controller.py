"""Transport commands (next/previous/skip/pause/stop) against the queue store.

All commands take the current `SessionState` and return the next one. Rapid
repeated presses are debounced: a next/previous arriving within
`SPAZ_PRESS_MS` of the previous press is discarded. Starting a track is a
fixed sequence (stop, hand off, play, drop the track that was left, refill)
and any failure inside it is recovered by skipping ahead, bounded by
`MAX_SKIP_ATTEMPTS` consecutive faults.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Literal

from tz_radio.config_store import RadioConfig
from tz_radio.errors import STREAM_FAULTS, RadioError
from tz_radio.services.models import Track, index_of_uri
from tz_radio.services.notification_sink import Notifier
from tz_radio.services.queue_store import PlaybackQueueStore
from tz_radio.services.session_state import SessionState
from tz_radio.services.station_service import StationClient
from tz_radio.services.track_prefetcher import TrackPrefetcher
from tz_radio.services.track_pruner import TrackPruner
from tz_radio.services.uri_resolver import resolve_playable_uri

logger = logging.getLogger(__name__)

SPAZ_PRESS_MS = 250
PREVIOUS_REPLAY_MS = 1500
MAX_SKIP_ATTEMPTS = 3

MediaCommand = Literal["next", "previous"]
Classification = Literal["next", "previous", "replay", "spaz"]


class TransportController:
    def __init__(
        self,
        *,
        store: PlaybackQueueStore,
        client: StationClient,
        prefetcher: TrackPrefetcher,
        pruner: TrackPruner,
        notifier: Notifier,
        settings: Callable[[], RadioConfig],
        run_cycle: Callable[[SessionState], Awaitable[SessionState]],
        on_track_started: Callable[[SessionState, Track], Awaitable[None]],
        uri_resolver: Callable[[str], Awaitable[str]] = resolve_playable_uri,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._client = client
        self._prefetcher = prefetcher
        self._pruner = pruner
        self._notifier = notifier
        self._settings = settings
        self._run_cycle = run_cycle
        self._on_track_started = on_track_started
        self._uri_resolver = uri_resolver
        self._clock = clock
        self._last_press_s: float | None = None
        self._consecutive_faults = 0

    def classify(
        self, command: MediaCommand, pressed_at: float | None = None
    ) -> Classification:
        """Debounce a user press and decide between previous and replay.

        `pressed_at` is the clock reading taken when the press arrived; it
        defaults to now.
        """
        now = self._clock() if pressed_at is None else pressed_at
        elapsed_ms = (
            None if self._last_press_s is None else (now - self._last_press_s) * 1000
        )
        self._last_press_s = now
        result: Classification = command
        if elapsed_ms is not None and elapsed_ms < SPAZ_PRESS_MS:
            logger.info("Media button pressed again within %dms; ignored.", SPAZ_PRESS_MS)
            result = "spaz"
        elif (
            command == "previous"
            and self._settings().super_previous
            and (elapsed_ms is None or elapsed_ms > PREVIOUS_REPLAY_MS)
        ):
            result = "replay"
        logger.info('User chose "%s" function.', result)
        return result

    async def next(
        self, session: SessionState, *, pressed_at: float | None = None
    ) -> SessionState:
        if self.classify("next", pressed_at) == "spaz":
            return session
        thumbs_down = self._settings().next_is_thumbs_down
        left = await self._current_track(session)
        session = replace(session, last_played_uri=None, continuing=False)
        if not thumbs_down or left is None:
            return await self.clear_add_play(session, None)

        await self._rate(left, is_positive=False)
        queue = await self._store.get_all()
        if index_of_uri(queue, left.uri) == len(queue) - 1:
            # The replacement must be queued before the left track goes.
            await self._prefetcher.maybe_prefetch(session, force=True)
        # A thumbed-down track leaves the queue like one that finished playing.
        session = await self.clear_add_play(
            replace(session, last_played_uri=left.uri, continuing=True), None
        )
        await self._pruner.remove_track(left.uri)
        return session

    async def previous(
        self, session: SessionState, *, pressed_at: float | None = None
    ) -> SessionState:
        result = self.classify("previous", pressed_at)
        if result == "spaz":
            return session
        session = replace(session, last_played_uri=None, continuing=False)
        queue = await self._store.get_all()
        if not queue:
            return session
        position = await self._store.get_current_position()
        if position is None:
            position = index_of_uri(queue, session.current_uri) or 0
        if result == "replay":
            return await self.clear_add_play(session, queue[position])
        if await self._store.is_random():
            return await self.clear_add_play(session, None)
        position = (position + len(queue) - 1) % len(queue)
        await self._store.set_current_position(position)
        return await self.clear_add_play(session, queue[position])

    async def skip(self, session: SessionState) -> SessionState:
        """Advance without a user press: bad uri or a dead stream."""
        session = replace(session, last_played_uri=None, continuing=False)
        return await self.clear_add_play(session, None)

    async def advance(self, session: SessionState) -> SessionState:
        """Continue after the current track ended naturally."""
        session = replace(session, continuing=True, station_selected=False)
        return await self.clear_add_play(session, None)

    async def recover(self, session: SessionState, reason: str) -> SessionState:
        """Handle a stream fault: skip ahead, or stop after repeated faults."""
        self._consecutive_faults += 1
        logger.error("Stream fault (%d in a row): %s", self._consecutive_faults, reason)
        if self._consecutive_faults > MAX_SKIP_ATTEMPTS:
            self._consecutive_faults = 0
            await self._notifier.toast(
                "error", "Playback stopped: the stream could not be recovered."
            )
            return await self._stopped(session, error=reason)
        await self._notifier.toast("warning", f"Stream problem, skipping track: {reason}")
        return await self.skip(session)

    async def clear_add_play(
        self, session: SessionState, track: Track | None
    ) -> SessionState:
        """Start `track`, or the store's next entry when `track` is None."""
        try:
            return await self._clear_add_play(session, track)
        except STREAM_FAULTS as exc:
            logger.warning("Stream fault while starting track: %s", exc)
            return await self.recover(session, str(exc) or type(exc).__name__)
        except Exception as exc:
            logger.exception("Failed to start track.")
            return await self.recover(session, str(exc) or type(exc).__name__)

    async def _clear_add_play(
        self, session: SessionState, track: Track | None
    ) -> SessionState:
        await self._store.stop()
        if track is None:
            index = await self._store.next_index()
            if index is None:
                logger.info("Queue is empty; nothing to play.")
                return await self._stopped(session)
            track = (await self._store.get_all())[index]

        queue = await self._store.get_all()
        last_index = (
            index_of_uri(queue, session.last_played_uri) if session.continuing else None
        )
        left = queue[last_index] if last_index is not None else None
        if left is not None and (
            left.uri == track.uri
            or not left.is_station_track
            or left.station_id != track.station_id
        ):
            left = None
        station_id = track.station_id or session.current_station_id
        session = replace(
            session,
            last_played_uri=track.uri,
            current_uri=track.uri,
            current_station_id=station_id,
            epoch=session.epoch
            if station_id == session.current_station_id
            else session.epoch + 1,
        )
        playable_uri = await self._playable_uri(track)
        index = index_of_uri(await self._store.get_all(), track.uri)
        if index is None:
            raise RadioError(f"Track {track.uri} is no longer queued.")
        await self._store.play(index, playable_uri=playable_uri)
        # The left track stops being current only once the new one plays.
        if left is not None:
            await self._pruner.remove_track(left.uri)
        session = replace(
            session,
            status="playing",
            current_queue_position=await self._store.get_current_position(),
            error=None,
        )
        await self._on_track_started(session, track)
        session = await self._run_cycle(session)
        self._consecutive_faults = 0
        return session

    async def toggle_pause(self, session: SessionState) -> SessionState:
        if session.status == "playing":
            await self._store.pause()
            return replace(session, status="paused")
        if session.status == "paused":
            await self._store.resume()
            return replace(session, status="playing")
        return session

    async def stop(self, session: SessionState) -> SessionState:
        return await self._stopped(session)

    async def rate_current(self, session: SessionState, is_positive: bool) -> None:
        track = await self._current_track(session)
        if track is None:
            return
        await self._rate(track, is_positive=is_positive)

    async def _rate(self, track: Track, *, is_positive: bool) -> None:
        try:
            await self._client.rate_track(track, is_positive)
        except RadioError as exc:
            logger.warning("Rating %s failed: %s", track.uri, exc)
            await self._notifier.toast("warning", f"Could not rate track: {exc}")

    async def _stopped(
        self, session: SessionState, *, error: str | None = None
    ) -> SessionState:
        try:
            await self._store.stop()
        except RadioError as exc:
            logger.warning("Queue store refused stop: %s", exc)
        return replace(
            session, status="stopped", last_played_uri=None, continuing=False, error=error
        )

    async def _current_track(self, session: SessionState) -> Track | None:
        queue = await self._store.get_all()
        index = index_of_uri(queue, session.current_uri)
        if index is None:
            return None
        return queue[index]

    async def _playable_uri(self, track: Track) -> str:
        if not self._settings().use_network_resolution_workaround:
            return track.real_uri
        try:
            return await self._uri_resolver(track.real_uri)
        except OSError as exc:
            logger.error("Error resolving %s: %s", track.real_uri, exc)
            await self._notifier.toast("error", f"Could not resolve stream host: {exc}")
            return track.real_uri
