"""Hiker monitor — turns position reports into snapshots, verdicts and alerts.

This is the core business logic loop. It depends on the PositionSource
and NotificationSink protocols, not concrete implementations.

One tick:
  poll source → record history → reconcile SOS → classify movement
  → safety check → dedup alerts → deliver events
"""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Iterable

import structlog

from trailwatch.core.history import HikerHistory
from trailwatch.core.models import (
    ConditionKind,
    EventKind,
    HikerSnapshot,
    MovementState,
    NotificationEvent,
    SosState,
)
from trailwatch.core.movement import classify_movement
from trailwatch.core.notifications import NotificationLedger
from trailwatch.core.safety import DEFAULT_DEVIATION_THRESHOLD_M, check_hiker_safety
from trailwatch.core.sos import NORMAL_STATE, SosLifecycle, reconcile, status_text
from trailwatch.errors import UnknownHikerError

if TYPE_CHECKING:
    from trailwatch.core.models import PositionReport, SafetyVerdict
    from trailwatch.core.stats import MonitorStats
    from trailwatch.core.tracks import TrackRegistry
    from trailwatch.sinks.base import NotificationSink
    from trailwatch.sources.base import PositionSource

log = structlog.get_logger()


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class MonitorSettings:
    safety_enabled: bool = True
    deviation_threshold_m: float = DEFAULT_DEVIATION_THRESHOLD_M
    sos_alerts: bool = True
    battery_alerts: bool = True
    battery_threshold: float = 20.0
    track_deviation_alerts: bool = True


@dataclass
class HikerRecord:
    """What the monitor knows about one hiker between ticks."""
    hiker_id: str
    name: str
    active: bool = True
    last_report_ms: int = 0
    remote_sos: SosState = NORMAL_STATE
    override: SosState | None = None
    sos: SosState = NORMAL_STATE


@dataclass(frozen=True)
class TickResult:
    snapshots: list[HikerSnapshot] = field(default_factory=list)
    unsafe: list[SafetyVerdict] = field(default_factory=list)
    events: list[NotificationEvent] = field(default_factory=list)


class HikerMonitor:
    """Evaluates every known hiker once per tick."""

    def __init__(
        self,
        source: PositionSource,
        tracks: TrackRegistry,
        sink: NotificationSink,
        stats: MonitorStats,
        *,
        ledger: NotificationLedger | None = None,
        history: HikerHistory | None = None,
        settings: MonitorSettings | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._source = source
        self._tracks = tracks
        self._sink = sink
        self._stats = stats
        self._ledger = ledger if ledger is not None else NotificationLedger()
        self._history = history if history is not None else HikerHistory()
        self.settings = settings if settings is not None else MonitorSettings()
        self._clock = clock
        self._records: dict[str, HikerRecord] = {}

    # -- ingestion ---------------------------------------------------------

    def ingest(self, reports: Iterable[PositionReport]) -> int:
        """Record reports into history. Returns how many were taken."""
        count = 0
        for report in reports:
            record = self._records.get(report.hiker_id)
            if record is None:
                record = HikerRecord(hiker_id=report.hiker_id, name=report.name)
                self._records[report.hiker_id] = record
            self._history.add(report.hiker_id, report.entry)
            # Late-arriving fixes go into history but don't roll state back.
            if report.entry.timestamp_ms >= record.last_report_ms:
                record.last_report_ms = report.entry.timestamp_ms
                record.name = report.name
                record.active = report.active
                record.remote_sos = report.remote_sos
            self._stats.record_report(report.hiker_id, self._source.name)
            count += 1
        return count

    # -- evaluation --------------------------------------------------------

    def _snapshot(self, record: HikerRecord) -> HikerSnapshot | None:
        latest = self._history.latest(record.hiker_id)
        if latest is None:
            return None
        if record.sos.raised:
            state = MovementState.SOS
        elif not record.active:
            state = MovementState.INACTIVE
        else:
            state = classify_movement(self._history.entries(record.hiker_id))
        return HikerSnapshot(
            id=record.hiker_id,
            name=record.name,
            position=latest.point,
            movement_state=state,
            battery_percent=latest.battery_percent,
            last_update_ms=latest.timestamp_ms,
            sos=record.sos,
        )

    def _alerts(
        self,
        snapshot: HikerSnapshot,
        verdict: SafetyVerdict | None,
        now_ms: int,
    ) -> list[NotificationEvent]:
        s = self.settings
        hid = snapshot.id
        name = snapshot.name
        events = []

        if self._ledger.should_notify(hid, ConditionKind.SOS, s.sos_alerts and snapshot.sos.raised):
            events.append(NotificationEvent(
                hiker_id=hid,
                kind=EventKind.SOS,
                message=f"SOS Alert: {name} needs assistance!",
                timestamp_ms=now_ms,
            ))

        low = snapshot.battery_percent <= s.battery_threshold
        if self._ledger.should_notify(hid, ConditionKind.LOW_BATTERY, s.battery_alerts and low):
            events.append(NotificationEvent(
                hiker_id=hid,
                kind=EventKind.LOW_BATTERY,
                message=f"Low Battery Alert: {name}'s device at {round(snapshot.battery_percent)}%",
                timestamp_ms=now_ms,
                data={"battery": snapshot.battery_percent},
            ))

        was_off_track = self._ledger.is_active(hid, ConditionKind.OFF_TRACK)
        off_track = verdict is not None and not verdict.is_safe
        if self._ledger.should_notify(hid, ConditionKind.OFF_TRACK, s.track_deviation_alerts and off_track):
            if math.isinf(verdict.distance_m):
                message = f"{name} is away from every designated track"
            else:
                message = f"{name} has deviated {round(verdict.distance_m)}m from the designated track"
            events.append(NotificationEvent(
                hiker_id=hid,
                kind=EventKind.OFF_TRACK,
                message=message,
                timestamp_ms=now_ms,
                data={"distance_m": verdict.distance_m, "track_id": verdict.closest_track_id},
            ))
        elif s.track_deviation_alerts and was_off_track and verdict is not None and verdict.is_safe:
            events.append(NotificationEvent(
                hiker_id=hid,
                kind=EventKind.BACK_ON_TRACK,
                message=f"{name} is now back on a designated safe track",
                timestamp_ms=now_ms,
                data={"track_id": verdict.closest_track_id},
            ))

        return events

    def evaluate(self) -> TickResult:
        """Derive snapshots, unsafe verdicts and new alerts for all hikers."""
        now_ms = self._clock()
        tracks = self._tracks.snapshot()
        result = TickResult()

        for record in self._records.values():
            rec = reconcile(record.override, record.remote_sos)
            if record.override is not None and rec.override is None:
                log.debug("sos_override_confirmed", hiker=record.hiker_id)
            record.override = rec.override
            record.sos = rec.effective

            snapshot = self._snapshot(record)
            if snapshot is None:
                continue
            result.snapshots.append(snapshot)

            verdict = None
            if self.settings.safety_enabled:
                verdict = check_hiker_safety(
                    snapshot.id, snapshot.position, tracks, self.settings.deviation_threshold_m,
                )
                if not verdict.is_safe:
                    result.unsafe.append(verdict)

            result.events.extend(self._alerts(snapshot, verdict, now_ms))

        sos_active = sum(1 for s in result.snapshots if s.sos.raised)
        self._stats.record_tick(unsafe=len(result.unsafe), sos_active=sos_active)
        return result

    async def tick(self) -> TickResult:
        """Poll the source once, evaluate, and deliver new alerts."""
        reports = await self._source.poll()
        self.ingest(reports)
        result = self.evaluate()

        for event in result.events:
            try:
                await self._sink.deliver(event)
            except Exception:
                log.error("notification_delivery_failed", hiker=event.hiker_id,
                          kind=event.kind.value, exc_info=True)
                self._stats.record_sink_error()
        self._stats.record_events(len(result.events))

        log.debug("tick_complete", reports=len(reports), hikers=len(result.snapshots),
                  unsafe=len(result.unsafe), events=len(result.events))
        return result

    async def run(self, interval_s: float) -> None:
        """Tick forever. Runs as a background task."""
        log.info("monitor_started", source=self._source.name, interval_s=interval_s)
        while True:
            try:
                await self.tick()
            except Exception:
                log.error("tick_failed", exc_info=True)
                self._stats.record_tick_failure()
            await asyncio.sleep(interval_s)

    # -- operator actions --------------------------------------------------

    async def _transition(self, hiker_id: str, apply: Callable[[SosLifecycle], bool]) -> bool:
        record = self._records.get(hiker_id)
        if record is None:
            raise UnknownHikerError(hiker_id)
        lifecycle = SosLifecycle(hiker_id, record.sos, ledger=self._ledger, clock=self._clock)
        if not apply(lifecycle):
            return False
        # Hold the local result until the source reports it back.
        record.override = lifecycle.state
        record.sos = lifecycle.state
        await self._source.publish_sos(hiker_id, lifecycle.state)
        return True

    async def mark_sos_handled(self, hiker_id: str) -> bool:
        return await self._transition(hiker_id, SosLifecycle.mark_handled)

    async def dispatch_emergency(self, hiker_id: str) -> bool:
        return await self._transition(hiker_id, SosLifecycle.dispatch_emergency)

    async def reset_sos(self, hiker_id: str) -> bool:
        return await self._transition(hiker_id, SosLifecycle.reset)

    # -- queries -----------------------------------------------------------

    def hiker_ids(self) -> list[str]:
        return list(self._records)

    def sos_state(self, hiker_id: str) -> SosState:
        record = self._records.get(hiker_id)
        if record is None:
            raise UnknownHikerError(hiker_id)
        return record.sos

    def sos_status_text(self, hiker_id: str) -> str:
        return status_text(self.sos_state(hiker_id))

    def pending_sos(self) -> list[str]:
        """Hikers with a raised SOS nobody has handled yet."""
        return [r.hiker_id for r in self._records.values() if r.sos.raised and not r.sos.handled]
