"""Time-to-live cache of the account's stations."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from types import MappingProxyType

from tz_radio.errors import StationNotFound
from tz_radio.runtime_config import normalize_station_sort_order
from tz_radio.services.models import Station

logger = logging.getLogger(__name__)

STATION_TTL_S = 5 * 60.0


def _age_key(station: Station) -> tuple[int, int | str]:
    # Station ids are issued in creation order; numeric ids sort numerically.
    if station.id.isdigit():
        return (0, int(station.id))
    return (1, station.id)


class StationCache:
    """Holds the latest station snapshot and refreshes it on a TTL."""

    def __init__(
        self,
        fetch_stations: Callable[[], Awaitable[Mapping[str, Station]]],
        *,
        ttl_s: float = STATION_TTL_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch_stations = fetch_stations
        self._ttl_s = ttl_s
        self._clock = clock
        self._stations: Mapping[str, Station] = MappingProxyType({})
        self._last_refresh: float | None = None

    @property
    def stations(self) -> Mapping[str, Station]:
        return self._stations

    @property
    def is_stale(self) -> bool:
        if self._last_refresh is None:
            return True
        return self._clock() - self._last_refresh >= self._ttl_s

    async def refresh(self, *, force_if_stale: bool = False) -> Mapping[str, Station]:
        """Fetch a new snapshot when the TTL elapsed (or when forced)."""
        if not force_if_stale and not self.is_stale:
            return self._stations
        stations = await self._fetch_stations()
        self._stations = MappingProxyType(dict(stations))
        self._last_refresh = self._clock()
        logger.info("Station list refreshed (%d stations).", len(self._stations))
        return self._stations

    def lookup(self, station_id: str) -> Station:
        """Return the station or raise `StationNotFound` (deleted server-side)."""
        try:
            return self._stations[station_id]
        except KeyError:
            raise StationNotFound(station_id) from None

    def find_by_name_prefix(self, name: str) -> Station:
        wanted = name.strip()
        for station in self._stations.values():
            if wanted and station.display_name.startswith(wanted):
                return station
        raise StationNotFound(name)

    def sorted_stations(self, order: str = "newest") -> list[Station]:
        stations = list(self._stations.values())
        order = normalize_station_sort_order(order)
        if order == "newest":
            return sorted(stations, key=_age_key, reverse=True)
        if order == "oldest":
            return sorted(stations, key=_age_key)
        by_name = sorted(stations, key=lambda station: station.display_name.lower())
        return by_name if order == "a-z" else by_name[::-1]
