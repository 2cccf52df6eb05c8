"""TrailWatch error types."""

from __future__ import annotations


class TrailWatchError(Exception):
    """Base class for all TrailWatch errors."""


class ReportRejected(TrailWatchError):
    """A raw position report could not be turned into a PositionReport."""


class InvalidTrackError(TrailWatchError):
    """A track definition is malformed (bad width, bad points)."""


class UnknownHikerError(TrailWatchError):
    """An operator action referenced a hiker the monitor has never seen."""

    def __init__(self, hiker_id: str) -> None:
        super().__init__(f"unknown hiker {hiker_id!r}")
        self.hiker_id = hiker_id
