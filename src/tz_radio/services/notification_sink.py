"""Notification/telemetry sink contract and the fire-and-forget notifier."""

from __future__ import annotations

import logging
from typing import Literal, Protocol

logger = logging.getLogger(__name__)

Severity = Literal["info", "success", "warning", "error"]
TOAST_TITLE = "Station Radio"


class NotificationSink(Protocol):
    async def publish(self, topic: str, payload: object) -> None: ...

    async def toast(self, severity: Severity, title: str, message: str) -> None: ...


class LoggingNotificationSink:
    """Sink that only writes to the log; used headless and as the default."""

    async def publish(self, topic: str, payload: object) -> None:
        logger.debug("Telemetry %s: %r", topic, payload)

    async def toast(self, severity: Severity, title: str, message: str) -> None:
        level = logging.WARNING if severity in {"warning", "error"} else logging.INFO
        logger.log(level, "[%s] %s: %s", severity, title, message)


class Notifier:
    """Wraps a sink so delivery failures are logged and never propagated."""

    def __init__(self, sink: NotificationSink | None = None) -> None:
        self._sink: NotificationSink = sink or LoggingNotificationSink()

    async def publish(self, topic: str, payload: object) -> None:
        try:
            await self._sink.publish(topic, payload)
        except Exception as exc:
            logger.warning("Telemetry publish to %s failed: %s", topic, exc)

    async def toast(
        self, severity: Severity, message: str, *, title: str = TOAST_TITLE
    ) -> None:
        try:
            await self._sink.toast(severity, title, message)
        except Exception as exc:
            logger.warning("Toast delivery failed (%s): %s", message, exc)
