"""Live position source backed by asyncio queues.

Whatever transport carries device reports (socket push, realtime DB
listener) calls ``submit`` with the raw payload. Operator SOS updates go
the other way through ``next_command``.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import structlog

from trailwatch.errors import ReportRejected
from trailwatch.ingest.parsing import parse_report
from trailwatch.sources.base import SosCommand

if TYPE_CHECKING:
    from trailwatch.core.models import PositionReport, SosState
    from trailwatch.core.stats import MonitorStats

log = structlog.get_logger()


class QueuePositionSource:
    """PositionSource fed by an external transport. Zero dependencies."""

    name = "live"

    def __init__(self, max_size: int = 10_000, stats: MonitorStats | None = None) -> None:
        self._reports: asyncio.Queue[PositionReport] = asyncio.Queue(maxsize=max_size)
        self._commands: asyncio.Queue[SosCommand] = asyncio.Queue()
        self._stats = stats

    async def submit(self, raw: dict[str, Any], now_ms: int | None = None) -> bool:
        """Parse and enqueue one raw report. Returns False if it was rejected."""
        try:
            report = parse_report(raw, now_ms)
        except ReportRejected as exc:
            log.warning("report_rejected", reason=str(exc))
            if self._stats is not None:
                self._stats.record_rejected()
            return False
        await self._reports.put(report)
        return True

    async def poll(self) -> list[PositionReport]:
        """Everything buffered since the last poll, oldest first."""
        reports = []
        while True:
            try:
                reports.append(self._reports.get_nowait())
            except asyncio.QueueEmpty:
                break
        return reports

    async def publish_sos(self, hiker_id: str, state: SosState) -> None:
        message = "Help is on the way!" if state.raised else "SOS cleared"
        await self._commands.put(SosCommand(hiker_id=hiker_id, state=state, message=message))
        log.debug("sos_command_queued", hiker=hiker_id, message=message)

    async def next_command(self) -> SosCommand:
        return await self._commands.get()

    def pending_commands(self) -> int:
        return self._commands.qsize()

    def qsize(self) -> int:
        return self._reports.qsize()
