"""Dial transports, canonical dial events and the SSE fan-out hub."""

from .errors import (
    ConnectionTimeoutError,
    DialError,
    MalformedPayloadError,
    TransportConnectionError,
    UnsupportedTransportError,
    ValidationError,
)
from .events import ConnectionState, DialEvent, Direction, PositionTracker, position_delta
