"""Playback session orchestration for one logged-in station account.

`PlaybackSessionOrchestrator` owns the `SessionState` and is the only place it
changes. Public entry points, background timers and queue-store events all
become items on a single ordered inbox consumed by one task, so session
mutations never interleave. Timers and store events only enqueue; public
entry points enqueue and await the outcome.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable
from contextlib import suppress
from dataclasses import dataclass, replace
from typing import Any, Callable

from tz_radio.config_store import RadioConfig
from tz_radio.errors import (
    AuthError,
    AuthExpired,
    NetworkError,
    RadioError,
    StationNotFound,
)
from tz_radio.events import SessionStateChanged, StationsUpdated, TrackChanged
from tz_radio.runtime_config import (
    normalize_station_sort_order,
    validate_max_station_tracks,
)
from tz_radio.services.models import Station, Track
from tz_radio.services.notification_sink import NotificationSink, Notifier
from tz_radio.services.queue_reconciler import QueueReconciler
from tz_radio.services.queue_store import (
    PlaybackAdvanced,
    PlaybackQueueStore,
    StoreEvent,
    StoreFault,
)
from tz_radio.services.session_state import SessionState
from tz_radio.services.session_timers import PeriodicTimer, TimerIntervals
from tz_radio.services.station_cache import StationCache
from tz_radio.services.station_service import StationClient, StationService
from tz_radio.services.track_prefetcher import TrackPrefetcher
from tz_radio.services.track_pruner import TrackPruner
from tz_radio.services.transport_controller import TransportController
from tz_radio.services.uri_resolver import resolve_playable_uri

logger = logging.getLogger(__name__)

_SERVICE_FAULTS = (AuthError, AuthExpired, NetworkError)


@dataclass(frozen=True)
class _InboxItem:
    name: str
    run: Callable[[], Awaitable[Any]]
    future: asyncio.Future[Any] | None = None


class PlaybackSessionOrchestrator:
    """Sequences station switches, track ends, transport commands and timers."""

    def __init__(
        self,
        *,
        service: StationService,
        store: PlaybackQueueStore,
        emit_event: Callable[[object], Awaitable[None]],
        config: RadioConfig | None = None,
        sink: NotificationSink | None = None,
        intervals: TimerIntervals | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
        uri_resolver: Callable[[str], Awaitable[str]] = resolve_playable_uri,
    ) -> None:
        self._store = store
        self._emit_event = emit_event
        self._config = config or RadioConfig()
        self._intervals = intervals or TimerIntervals()
        self._clock = clock
        self._wall_clock = wall_clock
        self._state = SessionState()
        self._client = StationClient(service)
        self._notifier = Notifier(sink)
        self._cache = StationCache(self._client.list_stations, clock=clock)
        self._prefetcher = TrackPrefetcher(
            client=self._client,
            store=store,
            notifier=self._notifier,
            settings=self._settings,
            current_epoch=lambda: self._state.epoch,
        )
        self._reconciler = QueueReconciler(store=store, settings=self._settings)
        self._pruner = TrackPruner(store=store)
        self._transport = TransportController(
            store=store,
            client=self._client,
            prefetcher=self._prefetcher,
            pruner=self._pruner,
            notifier=self._notifier,
            settings=self._settings,
            run_cycle=self._run_cycle,
            on_track_started=self._on_track_started,
            uri_resolver=uri_resolver,
            clock=clock,
        )
        self._inbox: asyncio.Queue[_InboxItem] = asyncio.Queue()
        self._consumer: asyncio.Task[None] | None = None
        self._closed = False
        self._timers: list[PeriodicTimer] = []
        self._last_elapsed_ms: int | None = None
        self._stall_count = 0
        self._missing_station_warned: str | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def config(self) -> RadioConfig:
        return self._config

    @property
    def stations(self) -> dict[str, Station]:
        return dict(self._cache.stations)

    @property
    def timers(self) -> tuple[PeriodicTimer, ...]:
        return tuple(self._timers)

    def _settings(self) -> RadioConfig:
        return self._config

    # Lifecycle

    async def start(self, email: str | None = None, password: str | None = None) -> bool:
        """Start the store, inbox consumer and timers, then log in.

        Returns whether the login succeeded. A failed login leaves the session
        running so that `apply_config` can retry with new credentials.
        """
        if self._consumer is None:
            self._closed = False
            self._store.set_event_handler(self._handle_store_event)
            await self._store.start()
            self._consumer = asyncio.create_task(self._consume(), name="radio-inbox")
            self._start_timers()
        email = self._config.email if email is None else email
        password = self._config.password if password is None else password
        return bool(await self._submit("login", lambda: self._login(email, password)))

    async def shutdown(self) -> None:
        """Stop timers and the consumer, then flush and release the store."""
        self._closed = True
        for timer in self._timers:
            await timer.stop()
        self._timers = []
        if self._consumer is not None:
            self._consumer.cancel()
            with suppress(asyncio.CancelledError):
                await self._consumer
            self._consumer = None
        while not self._inbox.empty():
            item = self._inbox.get_nowait()
            if item.future is not None and not item.future.done():
                item.future.cancel()
        try:
            await self._store.stop()
            await self._pruner.flush_station_tracks()
        except RadioError as exc:
            logger.warning("Queue cleanup during shutdown failed: %s", exc)
        with suppress(Exception):
            await self._store.shutdown()
        self._state = replace(self._state, status="stopped", last_played_uri=None)
        logger.info("Playback session shut down.")

    # Public entry points

    async def select_station(self, station_id: str) -> None:
        await self._submit("select_station", lambda: self._select_station(station_id))

    async def play_station_by_name(self, name: str) -> None:
        await self._submit(
            "play_station_by_name", lambda: self._play_station_by_name(name)
        )

    async def next(self) -> None:
        # Presses are debounced by arrival time, not by when the inbox runs them.
        pressed_at = self._clock()
        await self._submit(
            "next",
            lambda: self._transport_step(
                lambda session: self._transport.next(session, pressed_at=pressed_at)
            ),
        )

    async def previous(self) -> None:
        pressed_at = self._clock()
        await self._submit(
            "previous",
            lambda: self._transport_step(
                lambda session: self._transport.previous(
                    session, pressed_at=pressed_at
                )
            ),
        )

    async def toggle_pause(self) -> None:
        await self._submit(
            "toggle_pause", lambda: self._transport_step(self._transport.toggle_pause)
        )

    async def stop(self) -> None:
        await self._submit("stop", lambda: self._transport_step(self._transport.stop))

    async def thumb(self, is_up: bool) -> None:
        await self._submit("thumb", lambda: self._thumb(is_up))

    async def apply_config(self, config: RadioConfig) -> RadioConfig:
        return await self._submit("apply_config", lambda: self._apply_config(config))

    async def list_stations(self, order: str | None = None) -> list[Station]:
        return await self._submit("list_stations", lambda: self._list_stations(order))

    # Inbox

    async def _submit(self, name: str, run: Callable[[], Awaitable[Any]]) -> Any:
        if self._closed or self._consumer is None:
            raise RuntimeError("Playback session is not running.")
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._inbox.put_nowait(_InboxItem(name, run, future))
        return await future

    def _post(self, name: str, run: Callable[[], Awaitable[Any]]) -> None:
        if self._closed:
            logger.debug("Dropping %s posted after shutdown.", name)
            return
        self._inbox.put_nowait(_InboxItem(name, run))

    async def _consume(self) -> None:
        while True:
            item = await self._inbox.get()
            if self._closed:
                if item.future is not None and not item.future.done():
                    item.future.cancel()
                continue
            result: Any = None
            try:
                result = await item.run()
            except asyncio.CancelledError:
                if item.future is not None and not item.future.done():
                    item.future.cancel()
                raise
            except Exception as exc:
                logger.exception("Session command %s failed.", item.name)
                self._state = replace(self._state, error=str(exc))
                await self._notifier.toast("error", f"{item.name} failed: {exc}")
            if item.future is not None and not item.future.done():
                item.future.set_result(result)
            await self._emit_state()

    async def _emit_state(self) -> None:
        try:
            queue = tuple(await self._store.get_all())
            await self._emit_event(SessionStateChanged(self._state, queue))
        except Exception:
            logger.exception("Failed to publish session state.")

    # Store events and timers

    async def _handle_store_event(self, event: StoreEvent) -> None:
        if isinstance(event, PlaybackAdvanced):
            self._post("track_end", lambda: self._on_track_end(event))
        elif isinstance(event, StoreFault):
            self._post("stream_fault", lambda: self._on_stream_fault(event.message))
        else:
            logger.debug("Queue store event: %s", event)

    def _start_timers(self) -> None:
        intervals = self._intervals
        self._timers = [
            PeriodicTimer(
                "station-expiry",
                intervals.station_check_s,
                lambda: self._post("station_check", self._check_stations),
            ),
            PeriodicTimer(
                "track-expiry",
                intervals.track_expiry_s,
                lambda: self._post("track_expiry", self._expire_tracks),
            ),
            PeriodicTimer(
                "auth-keep-alive",
                intervals.keep_alive_s,
                lambda: self._post("keep_alive", self._keep_alive),
            ),
            PeriodicTimer(
                "stream-life",
                intervals.stream_check_s,
                lambda: self._post("stream_check", self._check_stream),
            ),
        ]
        for timer in self._timers:
            timer.start()

    # Handlers (run only on the inbox consumer)

    async def _login(self, email: str, password: str) -> bool:
        if not email or not password:
            await self._notifier.toast(
                "warning", "Need email address and password. See plugin settings."
            )
            self._state = replace(self._state, logged_in=False)
            return False
        try:
            await self._client.login(email, password)
        except (AuthError, NetworkError) as exc:
            logger.error("Login failed: %s", exc)
            await self._notifier.toast("error", f"Login failed: {exc}")
            self._state = replace(self._state, logged_in=False, error=str(exc))
            return False
        first_login = not self._state.logged_in
        self._state = replace(self._state, logged_in=True, error=None)
        if first_login:
            # Tracks left over from an earlier run carry expired stream urls.
            await self._pruner.flush_station_tracks()
        await self._refresh_stations(force=True)
        return True

    def _require_login(self) -> bool:
        if self._state.logged_in:
            return True
        logger.warning("Station command ignored: not logged in.")
        return False

    async def _refresh_stations(self, *, force: bool = False) -> None:
        before = self._cache.stations
        try:
            stations = await self._cache.refresh(force_if_stale=force)
        except _SERVICE_FAULTS as exc:
            logger.warning("Station refresh failed: %s", exc)
            await self._notifier.toast("warning", f"Could not refresh stations: {exc}")
            return
        if stations is before:
            return
        ordered = tuple(self._cache.sorted_stations(self._config.sort_order))
        await self._notifier.publish(
            "stationData", [station.display_name for station in ordered]
        )
        await self._emit_event(StationsUpdated(ordered))

    async def _select_station(self, station_id: str) -> None:
        if not self._require_login():
            await self._notifier.toast("warning", "Log in before choosing a station.")
            return
        await self._refresh_stations()
        try:
            station = self._cache.lookup(station_id)
        except StationNotFound as exc:
            logger.warning("%s", exc)
            await self._notifier.toast(
                "warning", f"Station {station_id} no longer exists. Choose another."
            )
            return
        await self._switch_to(station)

    async def _play_station_by_name(self, name: str) -> None:
        if not self._require_login():
            await self._notifier.toast("warning", "Log in before choosing a station.")
            return
        await self._refresh_stations()
        try:
            station = self._cache.find_by_name_prefix(name)
        except StationNotFound:
            logger.warning("No station named %r.", name)
            await self._notifier.toast("warning", f"No station named {name!r}.")
            return
        await self._switch_to(station)

    async def _switch_to(self, station: Station) -> None:
        previous = self._state
        if previous.current_station_id == station.id and previous.status in {
            "playing",
            "paused",
        }:
            block = await self._prefetcher.station_block(previous)
            if block.track_count:
                logger.info("Station %s is already playing.", station.id)
                return
        flushed = False
        if self._config.flush_them:
            flushed = await self._pruner.flush_station_tracks() > 0
        session = replace(
            previous,
            current_station_id=station.id,
            epoch=previous.epoch + 1,
            station_selected=True,
            continuing=False,
            last_played_uri=None,
        )
        self._state = session
        self._missing_station_warned = None
        logger.info("Switching to station %s (%s).", station.id, station.display_name)
        await self._notifier.publish("stationName", station.display_name)
        try:
            result = await self._prefetcher.maybe_prefetch(session, force=True)
        except StationNotFound as exc:
            logger.warning("%s", exc)
            await self._notifier.toast(
                "warning", f"Station {station.display_name} no longer exists."
            )
            self._state = self._abandoned_switch(previous, session.epoch, flushed)
            return
        if not result.tracks:
            self._state = self._abandoned_switch(previous, session.epoch, flushed)
            return
        session = replace(session, old_queue_length=result.queue_length_before)
        self._state = session
        self._state = await self._transport.clear_add_play(session, result.tracks[0])

    @staticmethod
    def _abandoned_switch(
        previous: SessionState, epoch: int, flushed: bool
    ) -> SessionState:
        """State after a switch that produced nothing to play."""
        if not flushed:
            return replace(previous, epoch=epoch)
        # The old station's tracks are gone, so nothing is playing any more.
        return replace(
            previous,
            epoch=epoch,
            status="stopped",
            current_uri=None,
            current_queue_position=None,
            last_played_uri=None,
            continuing=False,
        )

    async def _run_cycle(self, session: SessionState) -> SessionState:
        """Prefetch, reconcile and prune after a track started playing."""
        self._state = session
        station_id = session.current_station_id
        if station_id is None:
            return session
        if self._cache.is_stale and session.logged_in:
            await self._refresh_stations()
        new_tracks: tuple[Track, ...] = ()
        if not session.station_selected:
            # A switch already fetched its batch before starting playback.
            try:
                result = await self._prefetcher.maybe_prefetch(session)
            except StationNotFound as exc:
                logger.warning("%s", exc)
                await self._notifier.toast(
                    "warning", "The current station was deleted. Choose another."
                )
                return replace(session, station_selected=False)
            new_tracks = result.tracks
        position = await self._reconciler.reconcile(new_tracks, session)
        if position is not None:
            await self._store.set_current_position(position)
        block = await self._prefetcher.station_block(session)
        diff = self._prefetcher.compute_song_max_diff(block)
        if diff > 0 and block.position_in_block > 0:
            await self._pruner.prune_oldest_block(
                station_id, block.position_in_block, diff
            )
        session = replace(
            session,
            station_selected=False,
            current_queue_position=await self._store.get_current_position(),
        )
        self._state = session
        return session

    async def _on_track_started(self, session: SessionState, track: Track) -> None:
        self._state = session
        self._last_elapsed_ms = None
        self._stall_count = 0
        station = self._cache.stations.get(track.station_id)
        await self._emit_event(
            TrackChanged(track, station.display_name if station else None)
        )

    async def _transport_step(
        self, command: Callable[[SessionState], Awaitable[SessionState]]
    ) -> None:
        self._state = await command(self._state)

    async def _thumb(self, is_up: bool) -> None:
        if not self._require_login():
            await self._notifier.toast("warning", "Log in before rating tracks.")
            return
        await self._transport.rate_current(self._state, is_up)

    async def _on_track_end(self, event: PlaybackAdvanced) -> None:
        state = self._state
        if state.status != "playing" or event.uri != state.current_uri:
            logger.debug("Ignoring stale track end for %s.", event.uri)
            return
        self._state = await self._transport.advance(state)

    async def _on_stream_fault(self, message: str) -> None:
        if self._state.status not in {"playing", "paused"}:
            return
        self._state = await self._transport.recover(self._state, message)

    async def _check_stations(self) -> None:
        if not self._state.logged_in or not self._cache.is_stale:
            return
        await self._refresh_stations()
        station_id = self._state.current_station_id
        if station_id is None or station_id in self._cache.stations:
            return
        if self._missing_station_warned != station_id:
            self._missing_station_warned = station_id
            logger.warning("Active station %s was deleted.", station_id)
            await self._notifier.toast(
                "warning", "The current station was deleted. Choose another."
            )

    async def _expire_tracks(self) -> None:
        await self._pruner.remove_expired(
            max_age_s=self._intervals.track_max_age_s, now=self._wall_clock()
        )

    async def _keep_alive(self) -> None:
        if not self._state.logged_in:
            return
        try:
            await self._client.reauthenticate()
        except _SERVICE_FAULTS as exc:
            logger.warning("Session keep-alive failed: %s", exc)

    async def _check_stream(self) -> None:
        if self._state.status != "playing":
            self._last_elapsed_ms = None
            self._stall_count = 0
            return
        elapsed = await self._store.get_elapsed_ms()
        if elapsed == self._last_elapsed_ms:
            self._stall_count += 1
        else:
            self._stall_count = 0
        self._last_elapsed_ms = elapsed
        if self._stall_count < self._intervals.stall_checks:
            return
        logger.warning("Stream made no progress for %d checks.", self._stall_count)
        self._stall_count = 0
        self._state = await self._transport.recover(self._state, "stream stalled")

    async def _apply_config(self, config: RadioConfig) -> RadioConfig:
        max_tracks, warning = validate_max_station_tracks(config.max_station_tracks)
        if warning:
            await self._notifier.toast("warning", warning)
        config = replace(
            config,
            max_station_tracks=max_tracks,
            sort_order=normalize_station_sort_order(config.sort_order),
        )
        credentials_changed = (config.email, config.password) != (
            self._config.email,
            self._config.password,
        )
        self._config = config
        if credentials_changed or not self._state.logged_in:
            await self._login(config.email, config.password)
        return config

    async def _list_stations(self, order: str | None) -> list[Station]:
        if self._state.logged_in:
            await self._refresh_stations()
        return self._cache.sorted_stations(order or self._config.sort_order)
