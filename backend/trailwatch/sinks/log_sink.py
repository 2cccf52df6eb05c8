"""Structlog-backed notification sink.

Writes every notification event to the application log. Good enough for
headless deployments; a dashboard tails the JSON log output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from trailwatch.core.models import EventKind

if TYPE_CHECKING:
    from trailwatch.core.models import NotificationEvent

log = structlog.get_logger()

_LEVELS = {
    EventKind.SOS: "error",
    EventKind.LOW_BATTERY: "warning",
    EventKind.OFF_TRACK: "warning",
    EventKind.BACK_ON_TRACK: "info",
}


class LogNotificationSink:
    """NotificationSink that logs events instead of pushing them anywhere."""

    def __init__(self) -> None:
        self.delivered = 0

    async def deliver(self, event: NotificationEvent) -> None:
        level = _LEVELS.get(event.kind, "info")
        getattr(log, level)(
            "notification",
            kind=event.kind.value,
            hiker=event.hiker_id,
            message=event.message,
            timestamp_ms=event.timestamp_ms,
            **event.data,
        )
        self.delivered += 1
