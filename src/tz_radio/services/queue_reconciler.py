"""Keeps the active station's tracks in one contiguous run of the queue."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from tz_radio.config_store import RadioConfig
from tz_radio.services.models import Track, build_station_block, index_of_uri
from tz_radio.services.queue_store import PlaybackQueueStore
from tz_radio.services.session_state import SessionState

logger = logging.getLogger(__name__)


class QueueReconciler:
    """Relocates station tracks after an append left the block split.

    Only meaningful while several stations may share the queue; with
    `flush_them` the queue is cleared on every switch and this is a no-op.
    """

    def __init__(
        self, *, store: PlaybackQueueStore, settings: Callable[[], RadioConfig]
    ) -> None:
        self._store = store
        self._settings = settings

    async def reconcile(
        self, new_tracks: Sequence[Track], session: SessionState
    ) -> int | None:
        """Make the station block contiguous.

        Returns the recomputed current queue position, or `None` when the
        current entry did not move.
        """
        if self._settings().flush_them:
            return None
        station_id = session.current_station_id
        if station_id is None:
            return None
        queue = await self._store.get_all()
        block = build_station_block(queue, station_id, session.current_uri)
        if block.is_last:
            return None

        if session.station_selected:
            # The switch appended the new batch at the tail and started playing
            # it; pull the station's older tracks in right before that batch.
            target = min(session.old_queue_length, len(queue)) - 1
            movers = [
                entry.track.uri
                for entry in block.entries
                if entry.index <= target
            ]
        else:
            target = len(queue) - 1
            movers = list(block.uris)
        if target < 0 or not movers:
            return None

        moved = 0
        for uri in movers:
            queue = await self._store.get_all()
            from_index = index_of_uri(queue, uri)
            if from_index is None:
                logger.info("Track %s left the queue before it could be moved.", uri)
                continue
            if from_index != target:
                await self._store.move(from_index, target)
            moved += 1
        logger.info(
            "Moved %d station track(s) to index %d (%d newly fetched).",
            moved,
            target,
            len(new_tracks),
        )

        if session.station_selected:
            return None
        queue = await self._store.get_all()
        block = build_station_block(queue, station_id, session.current_uri)
        if block.position_in_block < 0:
            return None
        position = target - block.track_count + block.position_in_block + 1
        logger.info("Set new queue position to %d.", position)
        return position
