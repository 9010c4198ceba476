"""Fake station service for deterministic testing and offline demos."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field

from tz_radio.errors import AuthError, AuthExpired, StationNotFound
from tz_radio.services.models import Station, Track

DEMO_STATIONS = (
    Station("1001", "Thumbprint Radio", album_art_ref="/art/thumbprint.png"),
    Station("1002", "Miles Davis Radio", artist="Miles Davis"),
    Station("1003", "Blue Train Radio", artist="John Coltrane", album="Blue Train"),
    Station("1004", "Ambient Radio"),
)


@dataclass
class FakeCallLog:
    authenticate: int = 0
    list_stations: int = 0
    fetch_tracks: list[tuple[str, int, str]] = field(default_factory=list)
    rate_track: list[tuple[str, bool]] = field(default_factory=list)


class FakeStationService:
    """In-memory station service with scriptable failures.

    Every fetch returns `max_count` brand-new tracks unless `tracks_per_fetch`
    caps it. `fail_next` raises the given exception on the next call that
    reaches the service, and `expire_session()` makes the next call raise
    `AuthExpired` once.
    """

    def __init__(
        self,
        stations: Sequence[Station] = DEMO_STATIONS,
        *,
        password: str | None = None,
        tracks_per_fetch: int | None = None,
        fetch_delay_s: float = 0.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._stations = {station.id: station for station in stations}
        self._password = password
        self._tracks_per_fetch = tracks_per_fetch
        self._fetch_delay_s = fetch_delay_s
        self._clock = clock
        self._counter = 0
        self._session_valid = False
        self.fail_next: Exception | None = None
        self.calls = FakeCallLog()

    def expire_session(self) -> None:
        self._session_valid = False

    def delete_station(self, station_id: str) -> None:
        self._stations.pop(station_id, None)

    def add_station(self, station: Station) -> None:
        self._stations[station.id] = station

    async def authenticate(self, email: str, password: str) -> object:
        self.calls.authenticate += 1
        self._raise_scripted()
        if self._password is not None and password != self._password:
            raise AuthError("Invalid username and/or password.")
        self._session_valid = True
        return {"user": email}

    async def list_stations(self) -> Mapping[str, Station]:
        self.calls.list_stations += 1
        self._check_session()
        return dict(self._stations)

    async def fetch_tracks(
        self, station_id: str, max_count: int, band_filter: str
    ) -> Sequence[Track]:
        self.calls.fetch_tracks.append((station_id, max_count, band_filter))
        self._check_session()
        if self._fetch_delay_s > 0:
            await asyncio.sleep(self._fetch_delay_s)
        station = self._stations.get(station_id)
        if station is None:
            raise StationNotFound(station_id)
        count = max_count
        if self._tracks_per_fetch is not None:
            count = min(count, self._tracks_per_fetch)
        now = self._clock()
        tracks = []
        for _ in range(max(0, count)):
            self._counter += 1
            number = self._counter
            tracks.append(
                Track(
                    uri=f"station:{station_id}:track:{number}",
                    real_uri=f"http://audio.example.invalid/{station_id}/{number}.mp3",
                    station_id=station_id,
                    title=f"{station.display_name} Song {number}",
                    artist=station.artist or "Various Artists",
                    album=station.album or station.display_name,
                    album_art_ref=station.album_art_ref,
                    fetch_time=now,
                    track_token=f"token-{number}",
                )
            )
        return tracks

    async def rate_track(self, track_token: str, is_positive: bool) -> None:
        self.calls.rate_track.append((track_token, is_positive))
        self._check_session()

    def _check_session(self) -> None:
        self._raise_scripted()
        if not self._session_valid:
            self._session_valid = True
            raise AuthExpired("Session expired")

    def _raise_scripted(self) -> None:
        if self.fail_next is not None:
            exc, self.fail_next = self.fail_next, None
            raise exc
