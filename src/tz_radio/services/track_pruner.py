"""Removes played, expired or unwanted station tracks from the queue.

Every removal re-reads the live queue and re-resolves the entry by `uri`
immediately before removing it; indices captured earlier are never trusted.
The entry at the current playback position is never removed.
"""

from __future__ import annotations

import logging

from tz_radio.services.models import build_station_block, index_of_uri
from tz_radio.services.queue_store import PlaybackQueueStore

logger = logging.getLogger(__name__)


class TrackPruner:
    def __init__(self, *, store: PlaybackQueueStore) -> None:
        self._store = store

    async def remove_track(
        self, uri: str | None, *, only_if_older_than_current: bool = False
    ) -> bool:
        """Remove one track by identity; missing or current entries are skipped."""
        if not uri:
            return False
        queue = await self._store.get_all()
        index = index_of_uri(queue, uri)
        position = await self._store.get_current_position()
        if (
            index is None
            or index == position
            or (only_if_older_than_current and (position is None or index > position))
        ):
            logger.info("Not removing track %s at queue index %s.", uri, index)
            return False
        await self._store.remove_at(index)
        logger.info("Removed track %s at queue index %d.", uri, index)
        return True

    async def prune_oldest_block(
        self,
        station_id: str,
        current_position_in_block: int,
        count_to_remove: int,
    ) -> int:
        """Remove up to `min(position, count)` already-played tracks, oldest first."""
        limit = min(current_position_in_block, count_to_remove)
        if limit <= 0:
            return 0
        queue = await self._store.get_all()
        block = build_station_block(queue, station_id, None)
        removed = 0
        for uri in block.uris[:limit]:
            if await self.remove_track(uri, only_if_older_than_current=True):
                removed += 1
        logger.info("Pruned %d of %d old track(s) from station %s.", removed, limit, station_id)
        return removed

    async def remove_expired(self, *, max_age_s: float, now: float) -> int:
        """Remove station tracks fetched more than `max_age_s` ago."""
        queue = await self._store.get_all()
        expired = [
            track.uri
            for track in queue
            if track.is_station_track and now - track.fetch_time > max_age_s
        ]
        removed = 0
        for uri in expired:
            if await self.remove_track(uri):
                removed += 1
        if expired:
            logger.info("Expired %d of %d stale track(s).", removed, len(expired))
        return removed

    async def flush_station_tracks(self) -> int:
        """Drop every station track, keeping entries queued by other sources."""
        queue = await self._store.get_all()
        foreign = [track for track in queue if not track.is_station_track]
        removed = len(queue) - len(foreign)
        if removed == 0:
            return 0
        await self._store.clear()
        if foreign:
            await self._store.append(foreign)
        logger.info("Flushed %d station track(s) from the queue.", removed)
        return removed
