"""
SSE fan-out for the dial hub.

The hub relays whatever a publisher posts to every open event stream.  It
does not interpret payloads beyond requiring a ``type`` field; each payload
is serialized once and written verbatim as ``data: <json>\\n\\n``.

A listener that fails a write is dropped from the registry on the spot;
the rest still get the frame.
"""

import asyncio
import json
import logging

from aiohttp import web

from .errors import MalformedPayloadError, ValidationError

log = logging.getLogger("dial-hub.broadcast")

KEEPALIVE_FRAME = b": keepalive\n\n"


def format_frame(payload: dict) -> bytes:
    """One SSE event, compact JSON with no spaces after separators."""
    body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    return f"data: {body}\n\n".encode("utf-8")


def _reject_constant(name: str):
    # NaN, Infinity and -Infinity are not JSON
    raise MalformedPayloadError("Invalid JSON")


def parse_payload(body: bytes | str) -> dict:
    """Decode a publisher's POST body, or raise a PayloadError subclass."""
    try:
        if isinstance(body, bytes):
            body = body.decode("utf-8")
        payload = json.loads(body, parse_constant=_reject_constant)
    except ValueError as e:  # JSONDecodeError, UnicodeDecodeError
        raise MalformedPayloadError("Invalid JSON") from e
    if not isinstance(payload, dict):
        raise MalformedPayloadError("Invalid JSON")
    if not payload.get("type"):
        raise ValidationError("Missing type field")
    return payload


class SSEListener:
    """Write handle into one open event-stream response."""

    def __init__(self, response: web.StreamResponse):
        self._response = response
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    async def write(self, frame: bytes) -> None:
        if self.closed:
            raise ConnectionResetError("listener closed")
        await self._response.write(frame)

    def close(self) -> None:
        self._closed.set()

    async def wait_closed(self, timeout: float) -> bool:
        """True once closed; False if ``timeout`` passed first."""
        try:
            await asyncio.wait_for(self._closed.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True


class ListenerRegistry:
    """The set of open event streams.  Only the hub adds or removes entries."""

    def __init__(self):
        self._listeners: set = set()

    def __len__(self) -> int:
        return len(self._listeners)

    def __contains__(self, listener) -> bool:
        return listener in self._listeners

    def add(self, listener) -> None:
        self._listeners.add(listener)
        log.info("Listener connected (%d total)", len(self._listeners))

    def discard(self, listener) -> None:
        if listener in self._listeners:
            self._listeners.discard(listener)
            log.info("Listener removed (%d remaining)", len(self._listeners))

    async def broadcast(self, payload: dict) -> int:
        """Write ``payload`` to every listener.  Returns how many took it."""
        if not self._listeners:
            return 0

        frame = format_frame(payload)
        listeners = list(self._listeners)
        results = await asyncio.gather(
            *(listener.write(frame) for listener in listeners),
            return_exceptions=True,
        )

        delivered = 0
        for listener, result in zip(listeners, results):
            if isinstance(result, BaseException):
                log.debug("Dropping dead listener: %s", result)
                self.discard(listener)
                listener.close()
            else:
                delivered += 1
        return delivered

    def close_all(self) -> None:
        """End every stream (server shutdown)."""
        for listener in list(self._listeners):
            listener.close()
        self._listeners.clear()
