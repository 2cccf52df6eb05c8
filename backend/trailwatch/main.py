"""TrailWatch — main entry point.

This is the only file that knows about concrete implementations.
It wires together the core, the position source and the notification sink.

Usage:
    python -m trailwatch.main --config config.yaml
    TRAIL_SOURCE_BACKEND=simulated python -m trailwatch.main
"""

from __future__ import annotations

import argparse
import asyncio
import atexit
import logging
from pathlib import Path

import structlog

from trailwatch.config import AppConfig, load_config
from trailwatch.core.history import HikerHistory
from trailwatch.core.models import GeoPoint
from trailwatch.core.monitor import HikerMonitor, MonitorSettings
from trailwatch.core.notifications import NotificationLedger
from trailwatch.core.stats import MonitorStats
from trailwatch.core.tracks import TrackRegistry, track_from_dict
from trailwatch.sinks.log_sink import LogNotificationSink
from trailwatch.sources.base import PositionSource
from trailwatch.sources.live import QueuePositionSource
from trailwatch.sources.simulated import SimulatedPositionSource

log = structlog.get_logger()


def _setup_logging(config: AppConfig) -> None:
    """Configure structlog based on the logging config."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if config.logging.format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=not config.logging.file))

    logger_factory = None
    if config.logging.file:
        # Held open for the life of the process; closed on interpreter exit.
        log_file = Path(config.logging.file).open("a", encoding="utf-8")
        atexit.register(log_file.close)
        logger_factory = structlog.WriteLoggerFactory(file=log_file)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(config.logging.level.upper()),
        ),
        logger_factory=logger_factory or structlog.PrintLoggerFactory(),
    )


def build_tracks(config: AppConfig) -> TrackRegistry:
    """Track registry from config; raises InvalidTrackError on bad entries."""
    registry = TrackRegistry(track_from_dict(raw) for raw in config.safety.tracks)
    if not len(registry) and config.safety.sample_track:
        registry.add_sample_track()
    return registry


def build_source(config: AppConfig, stats: MonitorStats) -> PositionSource:
    backend = config.source.backend
    if backend == "simulated":
        return SimulatedPositionSource(
            config.source.sim_hikers,
            auto_sos=config.source.sim_auto_sos,
            base=GeoPoint(config.source.base_lat, config.source.base_lon),
            seed=config.source.sim_seed,
        )
    if backend == "live":
        return QueuePositionSource(max_size=config.source.queue_max_size, stats=stats)
    raise ValueError(f"unknown source backend {backend!r} (expected 'live' or 'simulated')")


def build_monitor(config: AppConfig, source: PositionSource | None = None) -> HikerMonitor:
    """Create a fully wired monitor. Pass ``source`` to override the backend."""
    stats = MonitorStats(active_window_seconds=config.limits.active_window_seconds)
    if source is None:
        source = build_source(config, stats)
    settings = MonitorSettings(
        safety_enabled=config.safety.enabled,
        deviation_threshold_m=config.safety.deviation_threshold_m,
        sos_alerts=config.notifications.sos_alerts,
        battery_alerts=config.notifications.battery_alerts,
        battery_threshold=config.notifications.battery_threshold,
        track_deviation_alerts=config.notifications.track_deviation_alerts,
    )
    return HikerMonitor(
        source=source,
        tracks=build_tracks(config),
        sink=LogNotificationSink(),
        stats=stats,
        ledger=NotificationLedger(),
        history=HikerHistory(max_points=config.limits.history_max_points),
        settings=settings,
    )


async def run(config: AppConfig) -> None:
    monitor = build_monitor(config)
    log.info("trailwatch_starting",
             source=config.source.backend,
             tracks=len(config.safety.tracks),
             tick_interval_s=config.monitor.tick_interval_s)
    try:
        await monitor.run(config.monitor.tick_interval_s)
    finally:
        log.info("trailwatch_stopped")


def main() -> None:
    parser = argparse.ArgumentParser(description="TrailWatch hiker safety monitor")
    parser.add_argument("--config", default="config.yaml", help="Path to config.yaml")
    parser.add_argument("--source", choices=("live", "simulated"),
                        help="Override the configured position source")
    args = parser.parse_args()

    config = load_config(args.config)
    if args.source:
        config.source.backend = args.source
    _setup_logging(config)

    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
