"""Textual TUI app for tz-radio."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path

from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Footer, Header, OptionList, Static

from . import __version__
from .config_store import RadioConfig, load_config_with_notices, save_config
from .events import SessionStateChanged, StationsUpdated, TrackChanged
from .logging_utils import setup_logging
from .paths import config_path, log_dir
from .runtime_config import STATION_SORT_ORDERS, resolve_log_level
from .services.fake_station_service import FakeStationService
from .services.memory_queue_store import InMemoryQueueStore
from .services.models import Station, Track
from .services.notification_sink import Severity
from .services.session_orchestrator import PlaybackSessionOrchestrator
from .services.session_state import SessionState
from .ui.queue_pane import QueuePane
from .ui.station_list import StationList
from .ui.status_line import StatusLine
from .utils.async_utils import run_blocking
from .version import build_help_epilog

logger = logging.getLogger(__name__)
DEMO_EMAIL = "demo@example.invalid"
DEMO_PASSWORD = "demo"
_TEXTUAL_SEVERITY = {
    "info": "information",
    "success": "information",
    "warning": "warning",
    "error": "error",
}


class TextualNotificationSink:
    """Shows toasts as Textual notifications; telemetry only goes to the log."""

    def __init__(self, app: App) -> None:
        self._app = app

    async def publish(self, topic: str, payload: object) -> None:
        logger.debug("Telemetry %s: %r", topic, payload)

    async def toast(self, severity: Severity, title: str, message: str) -> None:
        self._app.notify(
            message, title=title, severity=_TEXTUAL_SEVERITY.get(severity, "information")
        )


class RadioApp(App):
    TITLE = "tz-radio"
    CSS = """
    Screen {
        layout: vertical;
    }

    #main {
        height: 1fr;
    }

    #station-list {
        width: 1fr;
        max-width: 40%;
        border: solid white;
    }

    #right-pane {
        width: 2fr;
    }

    #now-playing {
        height: 6;
        border: solid white;
        padding: 0 1;
    }

    #queue-pane {
        border: solid white;
        padding: 0 1;
    }

    #status-line {
        padding: 0 1;
    }
    """
    BINDINGS = [
        ("space", "play_pause", "Play/Pause"),
        ("n", "next_track", "Next"),
        ("p", "previous_track", "Previous"),
        ("x", "stop", "Stop"),
        ("+", "thumb_up", "Thumb up"),
        ("-", "thumb_down", "Thumb down"),
        ("o", "cycle_sort", "Sort"),
        ("q", "quit", "Quit"),
    ]

    def __init__(self, *, auto_init: bool = True, demo: bool = False) -> None:
        super().__init__()
        self._auto_init = auto_init
        self._demo = demo
        self.config = RadioConfig()
        self.orchestrator: PlaybackSessionOrchestrator | None = None
        self.session_state = SessionState()
        self.current_track: Track | None = None
        self.current_station_name: str | None = None
        self.stations: tuple[Station, ...] = ()

    def compose(self) -> ComposeResult:
        yield Header()
        yield Horizontal(
            StationList(id="station-list"),
            Vertical(
                Static("Nothing playing", id="now-playing"),
                QueuePane(id="queue-pane"),
                id="right-pane",
            ),
            id="main",
        )
        yield StatusLine(id="status-line")
        yield Footer()

    def on_mount(self) -> None:
        if self._auto_init:
            asyncio.create_task(self._initialize_session())

    async def _initialize_session(self) -> None:
        try:
            self.config, notices = await run_blocking(
                load_config_with_notices, config_path()
            )
            for notice in notices:
                self.notify(notice, title="Settings", severity="warning")
            self.orchestrator = PlaybackSessionOrchestrator(
                service=FakeStationService(),
                store=InMemoryQueueStore(),
                emit_event=self._handle_session_event,
                config=self.config,
                sink=TextualNotificationSink(self),
            )
            if self._demo and not self.config.has_credentials:
                await self.orchestrator.start(DEMO_EMAIL, DEMO_PASSWORD)
            else:
                await self.orchestrator.start()
            self._update_status_line()
            self.query_one(StationList).focus()
        except Exception as exc:
            logger.exception("Failed to initialize app: %s", exc)
            self.query_one(StatusLine).set_runtime_notice(
                "Startup failed; review the log file."
            )

    async def on_unmount(self) -> None:
        if self.orchestrator is not None:
            await self.orchestrator.shutdown()

    async def on_option_list_option_selected(
        self, event: OptionList.OptionSelected
    ) -> None:
        if self.orchestrator is None or event.option.id is None:
            return
        await self.orchestrator.select_station(event.option.id)

    async def action_play_pause(self) -> None:
        if self.orchestrator is None:
            return
        if self.session_state.status in {"playing", "paused"}:
            await self.orchestrator.toggle_pause()
            return
        station_id = self.session_state.current_station_id
        if station_id is None:
            option = self.query_one(StationList).highlighted_option
            station_id = option.id if option is not None else None
        if station_id is not None:
            await self.orchestrator.select_station(station_id)

    async def action_next_track(self) -> None:
        if self.orchestrator is None:
            return
        await self.orchestrator.next()

    async def action_previous_track(self) -> None:
        if self.orchestrator is None:
            return
        await self.orchestrator.previous()

    async def action_stop(self) -> None:
        if self.orchestrator is None:
            return
        await self.orchestrator.stop()

    async def action_thumb_up(self) -> None:
        if self.orchestrator is None:
            return
        await self.orchestrator.thumb(True)

    async def action_thumb_down(self) -> None:
        if self.orchestrator is None:
            return
        await self.orchestrator.thumb(False)

    async def action_cycle_sort(self) -> None:
        order = _next_sort_order(self.config.sort_order)
        self.config = replace(self.config, sort_order=order)
        if self.orchestrator is not None:
            self.config = await self.orchestrator.apply_config(self.config)
            self.stations = tuple(await self.orchestrator.list_stations(order))
            self._update_station_list()
        try:
            await run_blocking(save_config, config_path(), self.config)
        except OSError as exc:
            logger.warning("Failed to save settings: %s", exc)
        self._update_status_line()

    async def action_quit(self) -> None:
        self.exit()

    async def _handle_session_event(self, event: object) -> None:
        if isinstance(event, SessionStateChanged):
            self.session_state = event.state
            self.query_one(QueuePane).update_queue(
                event.queue, event.state.current_uri, event.state.current_station_id
            )
            self._update_status_line()
        elif isinstance(event, TrackChanged):
            self.current_track = event.track
            self.current_station_name = event.station_name
            self._update_now_playing()
        elif isinstance(event, StationsUpdated):
            self.stations = event.stations
            self._update_station_list()

    def _update_station_list(self) -> None:
        self.query_one(StationList).set_stations(
            self.stations, self.session_state.current_station_id
        )

    def _update_status_line(self) -> None:
        self.query_one(StatusLine).update_state(self.session_state, self.config)

    def _update_now_playing(self) -> None:
        pane = self.query_one("#now-playing", Static)
        track = self.current_track
        if track is None:
            pane.update("Nothing playing")
            return
        title = track.title or track.uri
        artist = track.artist or "Unknown artist"
        album = track.album or "Unknown album"
        station = self.current_station_name or "Unknown station"
        pane.update(f"{title}\n{artist}\n{album}\n{station}")


def _next_sort_order(current: str) -> str:
    try:
        index = STATION_SORT_ORDERS.index(current)
    except ValueError:
        return STATION_SORT_ORDERS[0]
    return STATION_SORT_ORDERS[(index + 1) % len(STATION_SORT_ORDERS)]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tz-radio",
        description="Personalized internet-radio player for the terminal.",
        epilog=build_help_epilog(),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument(
        "--quiet", action="store_true", help="Only show warnings and errors"
    )
    parser.add_argument("--log-file", help="Write logs to a file path")
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Log in with demo credentials when none are configured.",
    )
    return parser


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    try:
        config, _notices = load_config_with_notices(config_path())
        level = resolve_log_level(
            verbose=args.verbose, quiet=args.quiet, default=config.log_level
        )
        setup_logging(
            log_dir=log_dir(),
            level=level,
            log_file=Path(args.log_file) if args.log_file else None,
        )
        logging.getLogger(__name__).info("Starting tz-radio TUI")
        RadioApp(demo=args.demo).run()
        return 0
    except Exception as exc:  # pragma: no cover - top-level safety net
        logging.getLogger(__name__).exception("Fatal startup error: %s", exc)
        print(
            "Startup failed. Verify config/log paths and re-run with --verbose.",
            file=sys.stderr,
        )
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
