"""Decides when to fetch more station tracks and appends them to the queue.

The decision is made from a `StationBlock` snapshot: fetch when fewer than
`floor` station tracks are queued after the current one, or when the current
track is not at the start of its block. At most one fetch per station switch
(epoch) is outstanding; overlapping requests are dropped rather than queued so
the same batch can never be appended twice.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from tz_radio.config_store import RadioConfig
from tz_radio.errors import AuthError, AuthExpired, NetworkError
from tz_radio.runtime_config import prefetch_floor
from tz_radio.services.models import StationBlock, Track, build_station_block
from tz_radio.services.notification_sink import Notifier
from tz_radio.services.queue_store import PlaybackQueueStore
from tz_radio.services.session_state import SessionState
from tz_radio.services.station_service import StationClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrefetchResult:
    """Outcome of one prefetch decision.

    `tracks` holds the appended tracks in fetch order (possibly empty).
    `queue_length_before` is the queue length read right before the append.
    """

    tracks: tuple[Track, ...] = ()
    queue_length_before: int = 0
    fetched: bool = False


class TrackPrefetcher:
    def __init__(
        self,
        *,
        client: StationClient,
        store: PlaybackQueueStore,
        notifier: Notifier,
        settings: Callable[[], RadioConfig],
        current_epoch: Callable[[], int],
    ) -> None:
        self._client = client
        self._store = store
        self._notifier = notifier
        self._settings = settings
        self._current_epoch = current_epoch
        self._in_flight: set[int] = set()

    @property
    def fetch_in_flight(self) -> bool:
        return bool(self._in_flight)

    def floor(self) -> int:
        return prefetch_floor(self._settings().max_station_tracks)

    def compute_song_max_diff(self, block: StationBlock) -> int:
        """Surplus (> 0) or shortfall (< 0) of upcoming station tracks."""
        return block.remaining - self.floor()

    def should_fetch(self, block: StationBlock) -> bool:
        return self.compute_song_max_diff(block) < 0 or block.position_in_block != 0

    async def station_block(self, session: SessionState) -> StationBlock:
        queue = await self._store.get_all()
        return build_station_block(
            queue, session.current_station_id, session.current_uri
        )

    async def maybe_prefetch(
        self,
        session: SessionState,
        block: StationBlock | None = None,
        *,
        force: bool = False,
    ) -> PrefetchResult:
        """Fetch and append a batch when the block needs one.

        Raises `StationNotFound` when the station was deleted server-side;
        other station-service failures are reported and yield an empty result.
        """
        station_id = session.current_station_id
        if station_id is None:
            return PrefetchResult()
        if block is None:
            block = await self.station_block(session)
        if not force and not self.should_fetch(block):
            logger.info(
                "Not fetching tracks: position %d at block start, %d remaining.",
                block.position_in_block,
                block.remaining,
            )
            return PrefetchResult()
        epoch = session.epoch
        if epoch in self._in_flight:
            logger.info("Fetch already in flight for station %s; suppressed.", station_id)
            return PrefetchResult()

        settings = self._settings()
        logger.info(
            "Fetching tracks for station %s (diff=%d, position=%d).",
            station_id,
            self.compute_song_max_diff(block),
            block.position_in_block,
        )
        self._in_flight.add(epoch)
        try:
            fetched = await self._client.fetch_tracks(
                station_id, settings.max_station_tracks, settings.band_filter
            )
        except (AuthError, AuthExpired, NetworkError) as exc:
            logger.warning("Track fetch for station %s failed: %s", station_id, exc)
            await self._notifier.toast("error", f"Failed to fetch tracks: {exc}")
            return PrefetchResult()
        finally:
            self._in_flight.discard(epoch)

        if self._current_epoch() != epoch:
            logger.info(
                "Discarding %d tracks fetched for a superseded station switch.",
                len(fetched),
            )
            return PrefetchResult()
        if not fetched:
            logger.warning("Station %s returned no tracks.", station_id)
            await self._notifier.toast(
                "error", "Track unavailable: the station returned no tracks."
            )
            return PrefetchResult(fetched=True)

        queue = await self._store.get_all()
        seen = {track.uri for track in queue}
        fresh: list[Track] = []
        for track in fetched:
            if track.uri in seen:
                logger.debug("Dropping duplicate track %s.", track.uri)
                continue
            seen.add(track.uri)
            fresh.append(track)
        if fresh:
            await self._store.append(fresh)
        logger.info("Added %d track(s) to the queue.", len(fresh))
        return PrefetchResult(
            tracks=tuple(fresh), queue_length_before=len(queue), fetched=True
        )
