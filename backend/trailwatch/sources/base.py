"""Position source interface (port).

Live and simulated feeds both implement this, so the monitor never
branches on where its data comes from.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from trailwatch.core.models import PositionReport, SosState


@dataclass(frozen=True)
class SosCommand:
    """Outbound instruction to the field, issued after an operator action."""
    hiker_id: str
    state: SosState
    message: str


class PositionSource(Protocol):
    """Port: yields parsed position reports and accepts SOS updates."""

    name: str

    async def poll(self) -> list[PositionReport]: ...

    async def publish_sos(self, hiker_id: str, state: SosState) -> None: ...
