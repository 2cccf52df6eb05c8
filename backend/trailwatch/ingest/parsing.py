"""Raw report parsing — the only place where input is coerced.

Field devices and the realtime backend send loosely-typed JSON: numbers
as strings, timestamps in seconds or milliseconds or as bare clock times,
booleans as "true". Everything is normalised here so the core only ever
sees well-formed PositionReport values.
"""

from __future__ import annotations

import math
import time
from datetime import datetime, timezone
from typing import Any

import structlog

from trailwatch.core.models import GeoPoint, PositionLogEntry, PositionReport
from trailwatch.core.sos import sos_state_from_flags
from trailwatch.errors import ReportRejected

log = structlog.get_logger()

# Epoch values below this are taken to be seconds, not milliseconds.
_SECONDS_CUTOFF = 10_000_000_000


def _now_ms() -> int:
    return int(time.time() * 1000)


def _parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def _parse_epoch(value: float) -> int | None:
    """Epoch seconds or milliseconds → ms; None for non-positive or non-finite."""
    if not math.isfinite(value) or value <= 0:
        return None
    if value < _SECONDS_CUTOFF:
        return int(value * 1000)
    return int(value)


def parse_timestamp(value: Any, now_ms: int | None = None) -> int:
    """Best-effort conversion of a report timestamp to epoch milliseconds.

    Accepts epoch seconds or milliseconds (numbers or numeric strings),
    ``HH:MM:SS`` clock times (today, UTC) and ISO-8601 strings. Anything
    else falls back to ``now_ms``.
    """
    if now_ms is None:
        now_ms = _now_ms()
    if value is None or value == "" or isinstance(value, bool):
        return now_ms

    if isinstance(value, (int, float)):
        try:
            parsed = _parse_epoch(float(value))
        except OverflowError:
            parsed = None
        return now_ms if parsed is None else parsed

    if isinstance(value, str):
        text = value.strip()
        try:
            number = float(text)
        except ValueError:
            number = None
        if number is not None:
            parsed = _parse_epoch(number)
            return now_ms if parsed is None else parsed

        if text.count(":") == 2 and "T" not in text and "-" not in text:
            try:
                hours, minutes, seconds = (int(part) for part in text.split(":"))
                today = datetime.fromtimestamp(now_ms / 1000, tz=timezone.utc)
                clock = today.replace(hour=hours, minute=minutes, second=seconds, microsecond=0)
                return int(clock.timestamp() * 1000)
            except ValueError:
                pass

        try:
            dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return int(dt.timestamp() * 1000)
        except ValueError:
            pass

    log.warning("timestamp_unparseable", value=repr(value)[:40])
    return now_ms


def parse_coordinate(value: Any, limit: float) -> float:
    """Float in [-limit, limit]; 0.0 when unparseable."""
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if math.isnan(number):
        return 0.0
    return max(-limit, min(limit, number))


def parse_battery(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 100.0
    if math.isnan(number):
        return 100.0
    return max(0.0, min(100.0, number))


def _parse_optional_ms(value: Any, now_ms: int) -> int | None:
    if value is None or value == "":
        return None
    return parse_timestamp(value, now_ms)


def _hiker_id(raw: dict[str, Any]) -> str:
    for key in ("hiker_id", "node_id", "id"):
        value = raw.get(key)
        if value is None:
            continue
        text = str(value).replace('"', "").strip()
        if text:
            return text
    raise ReportRejected("report has no hiker id")


def parse_report(raw: dict[str, Any], now_ms: int | None = None) -> PositionReport:
    """Parse one raw report dict into a PositionReport.

    Raises ReportRejected if the report can't be attributed to a hiker.
    """
    if not isinstance(raw, dict):
        raise ReportRejected(f"report must be an object, got {type(raw).__name__}")
    if now_ms is None:
        now_ms = _now_ms()

    hiker_id = _hiker_id(raw)
    name = raw.get("name") or f"Hiker {hiker_id}"
    lat = parse_coordinate(raw.get("latitude", raw.get("lat")), 90.0)
    lon = parse_coordinate(raw.get("longitude", raw.get("lon")), 180.0)
    timestamp_ms = parse_timestamp(raw.get("timestamp", raw.get("time")), now_ms)
    sos_raised = _parse_bool(raw.get("sos_status", False))

    remote_sos = sos_state_from_flags(
        raised=sos_raised,
        handled=_parse_bool(raw.get("sos_handled", False)),
        handled_at_ms=_parse_optional_ms(raw.get("sos_handled_time"), now_ms),
        emergency_dispatched=_parse_bool(raw.get("sos_emergency", False)),
        emergency_at_ms=_parse_optional_ms(raw.get("sos_emergency_time"), now_ms),
    )

    return PositionReport(
        hiker_id=hiker_id,
        name=str(name),
        entry=PositionLogEntry(
            point=GeoPoint(lat=lat, lon=lon),
            timestamp_ms=timestamp_ms,
            battery_percent=parse_battery(raw.get("battery", 100)),
            sos_raised=sos_raised,
        ),
        active=raw.get("active") is not False,
        remote_sos=remote_sos,
    )
