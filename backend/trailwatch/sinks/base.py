"""Notification sink interface (port) for alert delivery."""

from __future__ import annotations

from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from trailwatch.core.models import NotificationEvent


class NotificationSink(Protocol):
    """Port: delivers notification events to operators."""

    async def deliver(self, event: NotificationEvent) -> None: ...
