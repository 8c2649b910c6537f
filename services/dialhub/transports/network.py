"""
Network dial transport: consumes the hub's Server-Sent Events stream.

Each SSE frame carries one JSON envelope:

    {"type": "connected"}
    {"type": "dial", "position": 12, "delta": 2}
    {"type": "click"}

Deltas arrive already computed by the publisher and are forwarded verbatim,
so this transport never touches its position tracker beyond the reset on
connect.
"""

import asyncio
import json
import logging

import aiohttp

from ..config import cfg
from ..errors import ConnectionTimeoutError, TransportConnectionError
from ..events import ConnectionState, DialEvent
from .base import DialTransport

log = logging.getLogger("dial-hub.transport.network")

DEFAULT_URL = "http://localhost:5173/api/arduino"
CONNECT_TIMEOUT = 10.0  # seconds


class NetworkDialTransport(DialTransport):
    """Dial relayed over WiFi through the SSE hub."""

    type = "wifi"

    def __init__(self, url: str | None = None, connect_timeout: float | None = None):
        super().__init__()
        self._url = url or cfg("network", "url", default=DEFAULT_URL)
        self._connect_timeout = float(
            connect_timeout or cfg("network", "connect_timeout", default=CONNECT_TIMEOUT)
        )
        self._session: aiohttp.ClientSession | None = None
        self._response: aiohttp.ClientResponse | None = None
        self._read_task: asyncio.Task | None = None

    # -- lifecycle --

    async def connect(self) -> None:
        if self.is_connected:
            log.info("Dial stream already open on %s", self._url)
            return

        self._begin_connect()
        session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=None))
        try:
            response = await asyncio.wait_for(self._open_stream(session), self._connect_timeout)
        except asyncio.TimeoutError:
            await session.close()
            err = ConnectionTimeoutError(
                f"Dial stream connection timeout after {self._connect_timeout:.0f}s"
            )
            self._fail(err)
            raise err from None
        except TransportConnectionError as e:
            await session.close()
            self._fail(e)
            raise
        except (aiohttp.ClientError, OSError) as e:
            await session.close()
            self._fail(e)
            raise TransportConnectionError(f"Failed to connect to dial stream: {e}") from e

        self._session = session
        self._response = response
        self.state = ConnectionState.CONNECTED
        self._read_task = asyncio.create_task(self._read_stream(response), name="dial-sse-read")
        log.info("Dial stream connected: %s", self._url)

    async def _open_stream(self, session: aiohttp.ClientSession) -> aiohttp.ClientResponse:
        response = await session.get(
            self._url,
            headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
        )
        if response.status != 200:
            response.release()
            raise TransportConnectionError(f"Dial stream refused: HTTP {response.status}")
        return response

    async def disconnect(self) -> None:
        task, self._read_task = self._read_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        was_open = self._session is not None
        await self._close_stream()
        self.state = ConnectionState.DISCONNECTED
        if was_open:
            log.info("Dial stream disconnected")

    async def _close_stream(self) -> None:
        response, self._response = self._response, None
        session, self._session = self._session, None
        if response is not None:
            response.close()
        if session is not None:
            await session.close()

    # -- stream reading --

    async def _read_stream(self, response: aiohttp.ClientResponse) -> None:
        data_lines: list[str] = []
        try:
            async for raw in response.content:
                line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                if not line:
                    if data_lines:
                        self._handle_frame("\n".join(data_lines))
                        data_lines = []
                    continue
                if line.startswith(":"):
                    continue  # comment / keepalive
                name, _, value = line.partition(":")
                if name == "data":
                    data_lines.append(value[1:] if value.startswith(" ") else value)
        except asyncio.CancelledError:
            raise
        except (aiohttp.ClientError, OSError, ValueError) as e:
            log.error("Dial stream error: %s", e)
            self._fail(e)
        else:
            log.info("Dial stream closed by server")
            self.state = ConnectionState.DISCONNECTED
        await self._close_stream()

    def _handle_frame(self, data: str) -> None:
        try:
            message = json.loads(data)
        except json.JSONDecodeError as e:
            log.error("Error parsing dial message %r: %s", data, e)
            return
        if not isinstance(message, dict):
            log.warning("Ignoring non-object dial message: %r", data)
            return
        self.handle_message(message)

    def handle_message(self, message: dict) -> None:
        msg_type = message.get("type")

        if msg_type == "connected":
            log.info("Dial stream ready")

        elif msg_type == "dial":
            delta = message.get("delta")
            if delta is None:
                log.debug("Dial message without delta: %s", message)
                return
            if not isinstance(delta, int) or isinstance(delta, bool):
                log.warning("Dial message with non-integer delta: %r", delta)
                return
            if delta == 0:
                return
            position = message.get("position")
            if not isinstance(position, int) or isinstance(position, bool):
                position = None
            self._emit_dial(DialEvent.from_delta(delta, position))

        elif msg_type == "click":
            self._emit_click()

        else:
            log.info("Unknown dial message type: %s", msg_type)

    def _status_details(self) -> dict:
        return {"endpoint": self._url}
