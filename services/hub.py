#!/usr/bin/env python3
"""
Dial Hub (dial-hub)

Relays dial readings from a networked publisher (the controller's WiFi
firmware or services/bridge.py) to every browser/app listening on the
event stream.

  POST /api/arduino   publish one JSON message ({"type": ..., ...})
  GET  /api/arduino   Server-Sent Events stream of every published message
  GET  /health        liveness check

Port: 5173
"""

import logging
import os
import sys

from aiohttp import web

# Ensure services/ is on the path for sibling imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from dialhub.broadcast import KEEPALIVE_FRAME, ListenerRegistry, SSEListener, format_frame, parse_payload
from dialhub.config import cfg
from dialhub.errors import PayloadError
from dialhub.http_utils import CORS_HEADERS, SSE_HEADERS

logger = logging.getLogger("dial-hub")

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
HUB_HOST = cfg("hub", "host", default="0.0.0.0")
HUB_PORT = int(os.getenv("HUB_PORT", cfg("hub", "port", default=5173)))
HUB_PATH = cfg("hub", "path", default="/api/arduino")
KEEPALIVE_INTERVAL = float(cfg("hub", "keepalive", default=15))  # seconds between SSE comments

REGISTRY = web.AppKey("registry", ListenerRegistry)
KEEPALIVE = web.AppKey("keepalive", float)


# ---------------------------------------------------------------------------
# HTTP handlers
# ---------------------------------------------------------------------------
async def handle_publish(request: web.Request) -> web.Response:
    """POST: validate a publisher's message and fan it out to every listener."""
    try:
        payload = parse_payload(await request.read())
    except PayloadError as e:
        logger.warning("Rejected dial message: %s", e)
        return web.json_response({"error": str(e)}, status=400, headers=CORS_HEADERS)

    logger.info("Dial data received: %s", payload)
    delivered = await request.app[REGISTRY].broadcast(payload)
    logger.debug("Delivered %s to %d listeners", payload.get("type"), delivered)
    return web.json_response({"success": True}, headers=CORS_HEADERS)


async def handle_subscribe(request: web.Request) -> web.StreamResponse:
    """GET: hold an event stream open until the listener goes away."""
    registry = request.app[REGISTRY]
    keepalive = request.app[KEEPALIVE]

    response = web.StreamResponse(headers=SSE_HEADERS)
    await response.prepare(request)

    listener = SSEListener(response)
    try:
        await listener.write(format_frame({"type": "connected"}))
    except (ConnectionError, RuntimeError) as e:
        logger.debug("Listener gone before registration: %s", e)
        return response

    registry.add(listener)
    try:
        while not await listener.wait_closed(keepalive):
            try:
                await listener.write(KEEPALIVE_FRAME)
            except (ConnectionError, RuntimeError):
                break
    finally:
        registry.discard(listener)
        listener.close()
    return response


async def handle_options(request: web.Request) -> web.Response:
    """CORS preflight."""
    return web.Response(headers=CORS_HEADERS)


async def handle_health(request: web.Request) -> web.Response:
    return web.json_response({
        "status": "ok",
        "service": "dial-hub",
        "listeners": len(request.app[REGISTRY]),
    })


# ---------------------------------------------------------------------------
# App lifecycle
# ---------------------------------------------------------------------------
async def on_shutdown(app: web.Application):
    count = len(app[REGISTRY])
    app[REGISTRY].close_all()
    if count:
        logger.info("Closed %d event streams", count)


def create_app(registry: ListenerRegistry | None = None,
               keepalive: float = KEEPALIVE_INTERVAL,
               path: str = HUB_PATH) -> web.Application:
    app = web.Application()
    app[REGISTRY] = registry if registry is not None else ListenerRegistry()
    app[KEEPALIVE] = float(keepalive)
    app.router.add_post(path, handle_publish)
    app.router.add_get(path, handle_subscribe)
    app.router.add_options(path, handle_options)
    app.router.add_get("/health", handle_health)
    app.on_shutdown.append(on_shutdown)
    return app


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="[%(asctime)s] %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    web.run_app(create_app(), host=HUB_HOST, port=HUB_PORT, print=lambda msg: logger.info(msg))
