"""Station service contract and the re-authenticating client wrapper.

Concrete services (network backed or the in-process fake) implement
`StationService`. The engine never calls a service directly; it goes through
`StationClient`, which keeps the credentials and turns an expired session into
one silent re-login plus a single retry.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Protocol, TypeVar

from tz_radio.errors import AuthError, AuthExpired
from tz_radio.services.models import Station, Track

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StationService(Protocol):
    """Streaming backend protocol consumed by `StationClient`."""

    async def authenticate(self, email: str, password: str) -> object: ...

    async def list_stations(self) -> Mapping[str, Station]: ...

    async def fetch_tracks(
        self, station_id: str, max_count: int, band_filter: str
    ) -> Sequence[Track]: ...

    async def rate_track(self, track_token: str, is_positive: bool) -> None: ...


async def run_with_reauth_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    reauthenticate: Callable[[], Awaitable[None]],
    op_name: str,
) -> T:
    """Run `operation`, re-authenticating and retrying exactly once on expiry."""
    try:
        return await operation()
    except AuthExpired:
        logger.info("Session expired during %s; re-authenticating.", op_name)
    await reauthenticate()
    return await operation()


class StationClient:
    """Credential-holding facade over a `StationService`."""

    def __init__(self, service: StationService) -> None:
        self._service = service
        self._email = ""
        self._password = ""
        self._session: object | None = None

    @property
    def logged_in(self) -> bool:
        return self._session is not None

    async def login(self, email: str, password: str) -> None:
        """Authenticate with new credentials; raises `AuthError` on rejection."""
        if not email or not password:
            self._session = None
            raise AuthError("Need email address and password.")
        self._email = email
        self._password = password
        self._session = None
        self._session = await self._service.authenticate(email, password)
        logger.info("Logged in to station service as %s.", email)

    async def reauthenticate(self) -> None:
        """Refresh the session with the stored credentials."""
        self._session = None
        self._session = await self._service.authenticate(self._email, self._password)
        logger.debug("Station service session refreshed.")

    async def list_stations(self) -> Mapping[str, Station]:
        return await run_with_reauth_retry(
            self._service.list_stations,
            reauthenticate=self.reauthenticate,
            op_name="list_stations",
        )

    async def fetch_tracks(
        self, station_id: str, max_count: int, band_filter: str
    ) -> list[Track]:
        async def _fetch() -> list[Track]:
            return list(
                await self._service.fetch_tracks(station_id, max_count, band_filter)
            )

        return await run_with_reauth_retry(
            _fetch, reauthenticate=self.reauthenticate, op_name="fetch_tracks"
        )

    async def rate_track(self, track: Track, is_positive: bool) -> None:
        async def _rate() -> None:
            await self._service.rate_track(track.track_token, is_positive)

        await run_with_reauth_retry(
            _rate, reauthenticate=self.reauthenticate, op_name="rate_track"
        )
        logger.info(
            "Rated %r thumbs %s.", track.title or track.uri, "up" if is_positive else "down"
        )
