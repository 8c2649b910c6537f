"""
Canonical dial events and the position → delta tracker.

Every transport turns its raw readings into a ``DialEvent``.  Serial and BLE
report absolute positions, so they run each reading through a
``PositionTracker``; the network transport receives deltas already computed
upstream and builds events with ``DialEvent.from_delta``.
"""

import time
from dataclasses import dataclass, field
from enum import Enum


class Direction(str, Enum):
    CLOCKWISE = "clockwise"
    COUNTERCLOCKWISE = "counterclockwise"

    @classmethod
    def of(cls, delta: int) -> "Direction":
        return cls.CLOCKWISE if delta > 0 else cls.COUNTERCLOCKWISE


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class DialEvent:
    """One normalized rotation.  ``delta`` is never zero."""

    delta: int
    direction: Direction
    position: int | None = None
    timestamp: int = field(default_factory=_now_ms)  # epoch ms, when materialized

    @classmethod
    def from_delta(cls, delta: int, position: int | None = None) -> "DialEvent":
        if delta == 0:
            raise ValueError("a dial event needs a nonzero delta")
        return cls(delta=delta, direction=Direction.of(delta), position=position)

    def to_dict(self) -> dict:
        return {
            "position": self.position,
            "delta": self.delta,
            "direction": self.direction.value,
            "timestamp": self.timestamp,
        }


def position_delta(previous: int, current: int) -> int:
    """Signed movement between two absolute readings.  Wraparound is not handled."""
    return current - previous


class PositionTracker:
    """Last-position memory for a single transport instance.

    The last position always takes the new reading, even when the delta is
    zero, so repeated non-movement never accumulates a phantom delta.
    """

    def __init__(self):
        self.last_position = 0

    def update(self, position: int) -> DialEvent | None:
        delta = position_delta(self.last_position, position)
        self.last_position = position
        if delta == 0:
            return None
        return DialEvent.from_delta(delta, position)

    def reset(self) -> None:
        self.last_position = 0
