"""Scenario tests for the playback session orchestrator with in-process fakes."""

from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from tz_radio.config_store import RadioConfig
from tz_radio.events import SessionStateChanged, StationsUpdated, TrackChanged
from tz_radio.services.fake_station_service import FakeStationService
from tz_radio.services.memory_queue_store import InMemoryQueueStore
from tz_radio.services.models import build_station_block
from tz_radio.services.session_orchestrator import PlaybackSessionOrchestrator
from tz_radio.services.session_timers import TimerIntervals

EMAIL = "listener@example.invalid"
PASSWORD = "pw"
QUIET_TIMERS = TimerIntervals(
    station_check_s=3600,
    track_expiry_s=3600,
    keep_alive_s=3600,
    stream_check_s=3600,
)


def _run(coro):
    return asyncio.run(coro)


class FakeClock:
    def __init__(self) -> None:
        self.now = 5000.0

    def __call__(self) -> float:
        return self.now


class RecordingSink:
    def __init__(self) -> None:
        self.toasts: list[tuple[str, str]] = []
        self.published: list[tuple[str, object]] = []

    async def publish(self, topic: str, payload: object) -> None:
        self.published.append((topic, payload))

    async def toast(self, severity: str, title: str, message: str) -> None:
        self.toasts.append((severity, message))


class Rig:
    def __init__(
        self,
        *,
        service: FakeStationService | None = None,
        config: RadioConfig | None = None,
        intervals: TimerIntervals = QUIET_TIMERS,
        store: InMemoryQueueStore | None = None,
        wall_clock=None,
    ) -> None:
        self.service = service or FakeStationService()
        self.store = store or InMemoryQueueStore()
        self.sink = RecordingSink()
        self.clock = FakeClock()
        self.events: list[object] = []
        kwargs = {} if wall_clock is None else {"wall_clock": wall_clock}
        self.orchestrator = PlaybackSessionOrchestrator(
            service=self.service,
            store=self.store,
            emit_event=self._emit,
            config=config or RadioConfig(email=EMAIL, password=PASSWORD),
            sink=self.sink,
            intervals=intervals,
            clock=self.clock,
            **kwargs,
        )

    async def _emit(self, event: object) -> None:
        self.events.append(event)

    async def settle(self) -> None:
        """Wait until everything posted so far has been handled."""
        await asyncio.sleep(0)
        await self.orchestrator.list_stations()

    async def end_track(self) -> None:
        await self.store.finish_current()
        await self.settle()

    async def uris(self) -> list[str]:
        return [track.uri for track in await self.store.get_all()]

    def warnings(self) -> list[str]:
        return [message for severity, message in self.sink.toasts if severity == "warning"]


def test_start_logs_in_and_publishes_stations() -> None:
    async def run() -> None:
        rig = Rig()
        assert await rig.orchestrator.start() is True
        assert rig.orchestrator.state.logged_in is True
        updates = [event for event in rig.events if isinstance(event, StationsUpdated)]
        assert len(updates) == 1
        assert {station.id for station in updates[0].stations} == {
            "1001",
            "1002",
            "1003",
            "1004",
        }
        assert rig.sink.published[0][0] == "stationData"
        await rig.orchestrator.shutdown()

    _run(run())


def test_select_station_fetches_and_plays_first_track() -> None:
    async def run() -> None:
        rig = Rig()
        await rig.orchestrator.start()
        await rig.orchestrator.select_station("1001")
        state = rig.orchestrator.state
        queue = await rig.store.get_all()
        assert len(queue) == 16
        assert state.status == "playing"
        assert state.current_uri == queue[0].uri
        assert state.station_selected is False
        assert rig.store.played[0][1] == queue[0].uri
        changed = [event for event in rig.events if isinstance(event, TrackChanged)]
        assert changed[-1].station_name == "Thumbprint Radio"
        assert ("stationName", "Thumbprint Radio") in rig.sink.published
        assert isinstance(rig.events[-1], SessionStateChanged)
        assert rig.events[-1].state == state
        await rig.orchestrator.shutdown()

    _run(run())


def test_track_ends_refill_only_when_remaining_drops_below_floor() -> None:
    async def run() -> None:
        rig = Rig()
        await rig.orchestrator.start()
        await rig.orchestrator.select_station("1001")
        assert len(rig.service.calls.fetch_tracks) == 1

        for ended in range(1, 8):
            await rig.end_track()
            state = rig.orchestrator.state
            block = build_station_block(
                await rig.store.get_all(), "1001", state.current_uri
            )
            assert block.position_in_block == 0
            assert block.remaining == 15 - ended
            assert len(rig.service.calls.fetch_tracks) == 1

        await rig.end_track()
        assert len(rig.service.calls.fetch_tracks) == 2
        queue = await rig.store.get_all()
        block = build_station_block(queue, "1001", rig.orchestrator.state.current_uri)
        assert block.remaining == 7 + 16
        assert block.is_contiguous
        assert len(set(block.uris)) == len(queue)
        await rig.orchestrator.shutdown()

    _run(run())


def test_selecting_the_playing_station_again_changes_nothing() -> None:
    async def run() -> None:
        rig = Rig()
        await rig.orchestrator.start()
        await rig.orchestrator.select_station("1001")
        before = await rig.uris()
        state = rig.orchestrator.state
        await rig.orchestrator.select_station("1001")
        assert await rig.uris() == before
        assert len(rig.service.calls.fetch_tracks) == 1
        assert rig.orchestrator.state.current_uri == state.current_uri
        assert len(rig.store.played) == 1
        await rig.orchestrator.shutdown()

    _run(run())


def test_switching_back_keeps_station_block_contiguous() -> None:
    async def run() -> None:
        rig = Rig()
        await rig.orchestrator.start()
        await rig.orchestrator.select_station("1001")
        await rig.orchestrator.select_station("1002")
        assert rig.orchestrator.state.old_queue_length == 16
        await rig.orchestrator.select_station("1001")

        queue = await rig.store.get_all()
        state = rig.orchestrator.state
        block = build_station_block(queue, "1001", state.current_uri)
        assert block.is_contiguous
        assert block.is_last
        assert len(set(block.uris)) == block.track_count
        assert [t.station_id for t in queue[:16]] == ["1002"] * 16
        position = await rig.store.get_current_position()
        assert position is not None
        assert queue[position].uri == state.current_uri
        assert state.current_queue_position == position
        await rig.orchestrator.shutdown()

    _run(run())


def test_flush_on_switch_keeps_only_new_station() -> None:
    async def run() -> None:
        rig = Rig(config=RadioConfig(email=EMAIL, password=PASSWORD, flush_them=True))
        await rig.orchestrator.start()
        await rig.orchestrator.select_station("1001")
        await rig.orchestrator.select_station("1002")
        queue = await rig.store.get_all()
        assert len(queue) == 16
        assert {track.station_id for track in queue} == {"1002"}
        await rig.orchestrator.shutdown()

    _run(run())


def test_flushed_switch_to_deleted_station_stops_playback() -> None:
    async def run() -> None:
        rig = Rig(config=RadioConfig(email=EMAIL, password=PASSWORD, flush_them=True))
        await rig.orchestrator.start()
        await rig.orchestrator.select_station("1001")
        rig.service.delete_station("1002")
        await rig.orchestrator.select_station("1002")
        state = rig.orchestrator.state
        assert state.status == "stopped"
        assert state.current_uri is None
        assert state.current_queue_position is None
        assert await rig.uris() == []
        assert any("no longer exists" in message for message in rig.warnings())
        await rig.orchestrator.shutdown()

    _run(run())


def test_unflushed_switch_to_deleted_station_keeps_playing() -> None:
    async def run() -> None:
        rig = Rig()
        await rig.orchestrator.start()
        await rig.orchestrator.select_station("1001")
        playing = rig.orchestrator.state.current_uri
        rig.service.delete_station("1002")
        await rig.orchestrator.select_station("1002")
        state = rig.orchestrator.state
        assert state.status == "playing"
        assert state.current_uri == playing
        assert state.current_station_id == "1001"
        assert len(await rig.uris()) == 16
        await rig.orchestrator.shutdown()

    _run(run())


def test_unknown_station_warns_and_aborts() -> None:
    async def run() -> None:
        rig = Rig()
        await rig.orchestrator.start()
        await rig.orchestrator.select_station("9999")
        assert rig.orchestrator.state.status == "idle"
        assert rig.service.calls.fetch_tracks == []
        assert any("no longer exists" in message for message in rig.warnings())
        await rig.orchestrator.shutdown()

    _run(run())


def test_station_deleted_before_refill_warns_without_crashing() -> None:
    async def run() -> None:
        rig = Rig(service=FakeStationService(tracks_per_fetch=8))
        await rig.orchestrator.start()
        await rig.orchestrator.select_station("1001")
        rig.service.delete_station("1001")
        await rig.end_track()
        state = rig.orchestrator.state
        assert state.status == "playing"
        assert any("deleted" in message for message in rig.warnings())
        await rig.orchestrator.next()
        assert rig.orchestrator.state.status == "playing"
        await rig.orchestrator.shutdown()

    _run(run())


def test_missing_credentials_warn_and_block_station_commands() -> None:
    async def run() -> None:
        rig = Rig(config=RadioConfig())
        assert await rig.orchestrator.start() is False
        assert any("email address and password" in m for m in rig.warnings())
        await rig.orchestrator.select_station("1001")
        assert rig.service.calls.fetch_tracks == []
        assert rig.orchestrator.state.logged_in is False
        await rig.orchestrator.shutdown()

    _run(run())


def test_rejected_password_is_reported() -> None:
    async def run() -> None:
        rig = Rig(service=FakeStationService(password="secret"))
        assert await rig.orchestrator.start() is False
        assert rig.sink.toasts[-1][0] == "error"
        assert "Login failed" in rig.sink.toasts[-1][1]
        config = await rig.orchestrator.apply_config(
            RadioConfig(email=EMAIL, password="secret")
        )
        assert config.password == "secret"
        assert rig.orchestrator.state.logged_in is True
        await rig.orchestrator.shutdown()

    _run(run())


def test_expired_session_is_renewed_transparently() -> None:
    async def run() -> None:
        rig = Rig()
        await rig.orchestrator.start()
        rig.service.expire_session()
        await rig.orchestrator.select_station("1002")
        assert rig.orchestrator.state.status == "playing"
        assert rig.service.calls.authenticate == 2
        await rig.orchestrator.shutdown()

    _run(run())


def test_next_presses_are_debounced() -> None:
    async def run() -> None:
        rig = Rig()
        await rig.orchestrator.start()
        await rig.orchestrator.select_station("1001")
        await rig.orchestrator.next()
        await rig.orchestrator.next()
        assert len(rig.store.played) == 2
        await rig.orchestrator.shutdown()

    _run(run())


class SlowStopStore(InMemoryQueueStore):
    """A store whose stop takes 400ms of clock time."""

    def __init__(self) -> None:
        super().__init__()
        self.clock: FakeClock | None = None

    async def stop(self) -> None:
        if self.clock is not None:
            self.clock.now += 0.4
        await super().stop()


def test_simultaneous_presses_advance_once_behind_a_slow_store() -> None:
    async def run() -> None:
        store = SlowStopStore()
        rig = Rig(store=store)
        store.clock = rig.clock
        await rig.orchestrator.start()
        await rig.orchestrator.select_station("1001")
        await asyncio.gather(rig.orchestrator.next(), rig.orchestrator.next())
        assert len(rig.store.played) == 2
        await rig.orchestrator.shutdown()

    _run(run())


def test_thumbs_and_pause_commands() -> None:
    async def run() -> None:
        rig = Rig()
        await rig.orchestrator.start()
        await rig.orchestrator.select_station("1001")
        await rig.orchestrator.thumb(True)
        assert rig.service.calls.rate_track == [("token-1", True)]
        await rig.orchestrator.toggle_pause()
        assert rig.orchestrator.state.status == "paused"
        await rig.orchestrator.toggle_pause()
        await rig.orchestrator.stop()
        assert rig.orchestrator.state.status == "stopped"
        await rig.orchestrator.shutdown()

    _run(run())


def test_play_station_by_name_and_sorted_listing() -> None:
    async def run() -> None:
        rig = Rig()
        await rig.orchestrator.start()
        await rig.orchestrator.play_station_by_name("Miles")
        assert rig.orchestrator.state.current_station_id == "1002"
        names = [s.display_name for s in await rig.orchestrator.list_stations("a-z")]
        assert names == sorted(names, key=str.lower)
        newest = await rig.orchestrator.list_stations("newest")
        assert [s.id for s in newest] == ["1004", "1003", "1002", "1001"]
        await rig.orchestrator.shutdown()

    _run(run())


def test_apply_config_clamps_invalid_track_maximum() -> None:
    async def run() -> None:
        rig = Rig()
        await rig.orchestrator.start()
        config = await rig.orchestrator.apply_config(
            replace(rig.orchestrator.config, max_station_tracks=3)
        )
        assert config.max_station_tracks == 16
        assert any("Setting to default (16)" in m for m in rig.warnings())
        await rig.orchestrator.shutdown()

    _run(run())


def test_stalled_stream_is_skipped() -> None:
    async def run() -> None:
        store = InMemoryQueueStore(tick_interval_ms=10)
        rig = Rig(
            store=store,
            intervals=replace(QUIET_TIMERS, stream_check_s=0.02, stall_checks=3),
        )
        await rig.orchestrator.start()
        await rig.orchestrator.select_station("1001")
        store.stalled = True
        await asyncio.sleep(0.3)
        store.stalled = False
        await rig.settle()
        assert len(store.played) >= 2
        assert any("Stream problem" in message for message in rig.warnings())
        await rig.orchestrator.shutdown()

    _run(run())


def test_track_expiry_sweep_removes_old_tracks_but_not_current() -> None:
    async def run() -> None:
        service = FakeStationService(clock=lambda: 1000.0)
        rig = Rig(
            service=service,
            intervals=replace(QUIET_TIMERS, track_expiry_s=0.02, track_max_age_s=60),
            wall_clock=lambda: 1000.0 + 120,
        )
        await rig.orchestrator.start()
        await rig.orchestrator.select_station("1001")
        await asyncio.sleep(0.1)
        await rig.settle()
        assert await rig.uris() == [rig.orchestrator.state.current_uri]
        await rig.orchestrator.shutdown()

    _run(run())


def test_station_check_warns_once_when_active_station_disappears() -> None:
    async def run() -> None:
        rig = Rig(intervals=replace(QUIET_TIMERS, station_check_s=0.02))
        await rig.orchestrator.start()
        await rig.orchestrator.select_station("1003")
        rig.service.delete_station("1003")
        rig.clock.now += 301
        await asyncio.sleep(0.1)
        await rig.settle()
        assert "1003" not in rig.orchestrator.stations
        deleted = [m for m in rig.warnings() if "deleted" in m]
        assert len(deleted) == 1
        await rig.orchestrator.shutdown()

    _run(run())


def test_shutdown_stops_timers_and_rejects_commands() -> None:
    async def run() -> None:
        rig = Rig(
            intervals=TimerIntervals(
                station_check_s=0.01,
                track_expiry_s=0.01,
                keep_alive_s=0.01,
                stream_check_s=0.01,
            )
        )
        await rig.orchestrator.start()
        await rig.orchestrator.select_station("1001")
        timers = rig.orchestrator.timers
        assert timers and all(timer.running for timer in timers)
        await rig.orchestrator.shutdown()
        assert not any(timer.running for timer in timers)
        authenticated = rig.service.calls.authenticate
        await asyncio.sleep(0.05)
        assert rig.service.calls.authenticate == authenticated
        assert await rig.store.get_all() == []
        with pytest.raises(RuntimeError):
            await rig.orchestrator.next()

    _run(run())


def test_decoder_fault_skips_to_next_track() -> None:
    async def run() -> None:
        rig = Rig()
        await rig.orchestrator.start()
        await rig.orchestrator.select_station("1001")
        first = rig.orchestrator.state.current_uri
        await rig.store.report_fault("stream closed by peer")
        await rig.settle()
        state = rig.orchestrator.state
        assert state.status == "playing"
        assert state.current_uri != first
        assert any("stream closed by peer" in m for m in rig.warnings())
        await rig.orchestrator.shutdown()

    _run(run())


def test_track_end_for_stale_uri_is_ignored() -> None:
    async def run() -> None:
        rig = Rig()
        await rig.orchestrator.start()
        await rig.orchestrator.select_station("1001")
        await rig.orchestrator.stop()
        await rig.store.finish_current()
        await rig.settle()
        assert rig.orchestrator.state.status == "stopped"
        assert len(rig.store.played) == 1
        await rig.orchestrator.shutdown()

    _run(run())
