"""Periodic background timers that only enqueue work for the orchestrator."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimerIntervals:
    """Timer periods in seconds plus the thresholds they act on."""

    station_check_s: float = 60.0
    track_expiry_s: float = 5 * 60.0
    track_max_age_s: float = 60 * 60.0
    keep_alive_s: float = 3 * 60 * 60.0
    stream_check_s: float = 5.0
    stall_checks: int = 3


class PeriodicTimer:
    """Calls `callback` every `interval_s` seconds until stopped.

    The callback must not block; it is expected to post an inbox item and
    return. Once `stop()` was called a pending fire is dropped.
    """

    def __init__(
        self, name: str, interval_s: float, callback: Callable[[], None]
    ) -> None:
        self.name = name
        self._interval_s = max(0.01, float(interval_s))
        self._callback = callback
        self._task: asyncio.Task[None] | None = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._stopped

    def start(self) -> None:
        if self._task is not None:
            return
        self._stopped = False
        self._task = asyncio.create_task(self._run(), name=f"timer:{self.name}")

    async def stop(self) -> None:
        self._stopped = True
        if self._task is None:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval_s)
            if self._stopped:
                return
            try:
                self._callback()
            except Exception:
                logger.exception("Timer %s callback failed.", self.name)
