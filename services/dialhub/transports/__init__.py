"""
Interchangeable dial transports.

Each transport turns one raw protocol into canonical ``DialEvent``s and
click notifications behind the same ``DialTransport`` interface.  The
factory function ``create_transport`` reads config.json and returns the
right one.

Supported types:
  - ``serial``               – USB/UART link, ``DIAL:<int>`` lines (default)
  - ``bluetooth`` / ``ble``  – Bluetooth LE GATT notifications
  - ``wifi`` / ``network``   – SSE stream relayed through the dial hub
"""

import logging

from ..config import cfg
from .base import DialTransport
from .ble import BleDialTransport
from .network import NetworkDialTransport
from .serial_link import SerialDialTransport

logger = logging.getLogger("dial-hub.transport")

__all__ = [
    "DialTransport",
    "BleDialTransport",
    "NetworkDialTransport",
    "SerialDialTransport",
    "create_transport",
]


def create_transport(kind: str | None = None) -> DialTransport:
    """Create the right dial transport.

    ``kind`` overrides config.json "dial" → "transport"
    (default "serial").  Per-transport settings are read by the
    transport itself from the "serial", "ble" and "network" sections.
    """
    kind = str(kind or cfg("dial", "transport", default="serial")).lower()

    if kind in ("bluetooth", "ble"):
        transport = BleDialTransport()
    elif kind in ("wifi", "network"):
        transport = NetworkDialTransport()
    elif kind == "serial":
        transport = SerialDialTransport()
    else:
        raise ValueError(f"Unknown dial transport: {kind}")

    logger.info("Dial transport: %s", transport.type)
    return transport
