"""TrailWatch configuration.

Loads from config.yaml if present, with environment variable overrides.
Environment variables use the pattern: TRAIL_<SECTION>_<KEY> (uppercase).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class MonitorConfig:
    tick_interval_s: float = 3.0


@dataclass
class SourceConfig:
    backend: str = "live"  # "live" or "simulated"
    queue_max_size: int = 10_000
    sim_hikers: int = 10
    sim_auto_sos: bool = True
    sim_seed: int | None = None
    base_lat: float = 3.139
    base_lon: float = 101.6869


@dataclass
class SafetyConfig:
    enabled: bool = True
    deviation_threshold_m: float = 50.0
    sample_track: bool = False  # add the demo trail when no tracks are configured
    tracks: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class NotificationConfig:
    sos_alerts: bool = True
    battery_alerts: bool = True
    battery_threshold: float = 20.0
    track_deviation_alerts: bool = True


@dataclass
class LimitsConfig:
    history_max_points: int = 1000
    active_window_seconds: float = 600.0


@dataclass
class LoggingConfig:
    level: str = "info"
    format: str = "console"  # "console" or "json"
    file: str = ""


@dataclass
class AppConfig:
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    source: SourceConfig = field(default_factory=SourceConfig)
    safety: SafetyConfig = field(default_factory=SafetyConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _apply_env_overrides(config: AppConfig) -> None:
    """Override config values from environment variables."""
    mapping = {
        "TRAIL_MONITOR_TICK_INTERVAL": lambda v: setattr(config.monitor, "tick_interval_s", float(v)),
        "TRAIL_SOURCE_BACKEND": lambda v: setattr(config.source, "backend", v),
        "TRAIL_SOURCE_QUEUE_MAX_SIZE": lambda v: setattr(config.source, "queue_max_size", int(v)),
        "TRAIL_SOURCE_SIM_HIKERS": lambda v: setattr(config.source, "sim_hikers", int(v)),
        "TRAIL_SOURCE_SIM_AUTO_SOS": lambda v: setattr(config.source, "sim_auto_sos", _as_bool(v)),
        "TRAIL_SOURCE_SIM_SEED": lambda v: setattr(config.source, "sim_seed", int(v)),
        "TRAIL_SOURCE_BASE_LAT": lambda v: setattr(config.source, "base_lat", float(v)),
        "TRAIL_SOURCE_BASE_LON": lambda v: setattr(config.source, "base_lon", float(v)),
        "TRAIL_SAFETY_ENABLED": lambda v: setattr(config.safety, "enabled", _as_bool(v)),
        "TRAIL_SAFETY_DEVIATION_THRESHOLD": lambda v: setattr(config.safety, "deviation_threshold_m", float(v)),
        "TRAIL_NOTIFY_SOS": lambda v: setattr(config.notifications, "sos_alerts", _as_bool(v)),
        "TRAIL_NOTIFY_BATTERY": lambda v: setattr(config.notifications, "battery_alerts", _as_bool(v)),
        "TRAIL_NOTIFY_BATTERY_THRESHOLD": lambda v: setattr(config.notifications, "battery_threshold", float(v)),
        "TRAIL_NOTIFY_TRACK_DEVIATION": lambda v: setattr(config.notifications, "track_deviation_alerts", _as_bool(v)),
        "TRAIL_LIMITS_HISTORY_MAX_POINTS": lambda v: setattr(config.limits, "history_max_points", int(v)),
        "TRAIL_LIMITS_ACTIVE_WINDOW": lambda v: setattr(config.limits, "active_window_seconds", float(v)),
        "TRAIL_LOG_LEVEL": lambda v: setattr(config.logging, "level", v),
        "TRAIL_LOG_FORMAT": lambda v: setattr(config.logging, "format", v),
        "TRAIL_LOG_FILE": lambda v: setattr(config.logging, "file", v),
    }
    for env_key, setter in mapping.items():
        val = os.environ.get(env_key)
        if val is not None:
            setter(val)


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load configuration from YAML file + environment overrides."""
    config = AppConfig()

    # Try to load YAML
    if config_path is None:
        config_path = Path("config.yaml")
    else:
        config_path = Path(config_path)

    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

        for section_name in ("monitor", "source", "safety", "notifications", "limits", "logging"):
            section = getattr(config, section_name)
            for k, v in (raw.get(section_name) or {}).items():
                if hasattr(section, k):
                    setattr(section, k, v)

    # Environment overrides always win
    _apply_env_overrides(config)
    return config
