#!/usr/bin/env python3
"""
Dial Bridge (dial-bridge)

Runs a local dial transport (serial or Bluetooth LE) and republishes every
rotation and click to the dial hub, so browsers on other devices can use
the dial over the network transport.

  dial --serial/BLE--> bridge.py --HTTP POST--> hub.py --SSE--> clients

Deltas are computed here; the hub and its listeners pass them through.
"""

import asyncio
import logging
import os
import signal
import sys

import aiohttp

# Ensure services/ is on the path for sibling imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from dialhub.config import cfg
from dialhub.events import DialEvent
from dialhub.transports import DialTransport, NetworkDialTransport, create_transport

logger = logging.getLogger("dial-bridge")

HUB_URL = os.getenv("HUB_URL", cfg("bridge", "hub_url", default="http://localhost:5173/api/arduino"))
MAX_QUEUE_SIZE = 64  # unsent messages kept while the hub is slow


class DialBridge:
    """Forwards one transport's events to the hub, in order, best-effort."""

    def __init__(self, transport: DialTransport, hub_url: str, session: aiohttp.ClientSession):
        self.transport = transport
        self.hub_url = hub_url
        self._session = session
        self._queue: asyncio.Queue[dict] = asyncio.Queue(maxsize=MAX_QUEUE_SIZE)
        self._sender_task: asyncio.Task | None = None

        transport.set_dial_change_handler(self._on_dial)
        transport.set_click_handler(self._on_click)

    # -- transport callbacks --

    def _on_dial(self, event: DialEvent) -> None:
        self._enqueue({"type": "dial", "position": event.position, "delta": event.delta})

    def _on_click(self) -> None:
        self._enqueue({"type": "click"})

    def _enqueue(self, message: dict) -> None:
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Hub backlog full: dropping %s", message.get("type"))

    # -- sending --

    async def publish(self, message: dict) -> bool:
        """POST one message to the hub.  Never raises."""
        try:
            async with self._session.post(
                self.hub_url,
                json=message,
                timeout=aiohttp.ClientTimeout(total=2.0),
            ) as resp:
                if resp.status == 200:
                    logger.debug("-> hub: %s", message)
                    return True
                logger.warning("Hub rejected %s: HTTP %d", message.get("type"), resp.status)
        except asyncio.TimeoutError:
            logger.warning("Hub timeout: %s", message.get("type"))
        except aiohttp.ClientError as e:
            logger.warning("Hub unreachable: %s", e)
        return False

    async def _sender_loop(self):
        while True:
            message = await self._queue.get()
            await self.publish(message)

    # -- lifecycle --

    async def start(self):
        await self.transport.connect()
        self._sender_task = asyncio.create_task(self._sender_loop(), name="dial-bridge-sender")
        logger.info("Bridging %s dial -> %s", self.transport.type, self.hub_url)

    async def stop(self):
        await self.transport.disconnect()
        task, self._sender_task = self._sender_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


async def main():
    transport = create_transport()
    if isinstance(transport, NetworkDialTransport):
        logger.error("dial.transport must be serial or bluetooth for the bridge")
        return 1

    async with aiohttp.ClientSession() as session:
        bridge = DialBridge(transport, HUB_URL, session)
        await bridge.start()

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop_event.set)
        try:
            await stop_event.wait()
        finally:
            await bridge.stop()
    return 0


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="[%(asctime)s] %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    sys.exit(asyncio.run(main()))
