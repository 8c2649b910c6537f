# Dial Hub
# Copyright (C) 2026 Dial Hub contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Abstract base class for dial transports.

Every transport must implement connect, disconnect and _status_details.
The base class owns the consumer-facing side: handler registration, the
single dispatch point for dial and click events, the connection state and
the per-instance position tracker.

Consumers only ever talk to this interface:

    transport = create_transport("bluetooth")
    transport.set_dial_change_handler(on_dial)   # on_dial(event: DialEvent)
    transport.set_click_handler(on_click)        # on_click()
    await transport.connect()
    ...
    await transport.disconnect()
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable

from ..events import ConnectionState, DialEvent, PositionTracker

log = logging.getLogger("dial-hub.transport")

DialChangeHandler = Callable[[DialEvent], None]
ClickHandler = Callable[[], None]


class DialTransport(ABC):
    """Interface every dial transport must implement."""

    type: str = ""

    def __init__(self):
        self._dial_handler: DialChangeHandler | None = None
        self._click_handler: ClickHandler | None = None
        self._tracker = PositionTracker()
        self.state = ConnectionState.DISCONNECTED
        self.last_error: str | None = None

    # -- Lifecycle --

    @abstractmethod
    async def connect(self) -> None:
        """Open the link.  Raises on failure; never retries."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Tear the link down.  Safe to call twice."""
        ...

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def last_position(self) -> int:
        return self._tracker.last_position

    # -- Handler registration --

    def set_dial_change_handler(self, handler: DialChangeHandler | None) -> None:
        self._dial_handler = handler

    def set_click_handler(self, handler: ClickHandler | None) -> None:
        self._click_handler = handler

    # -- Status --

    def get_connection_status(self) -> dict:
        status = {
            "connected": self.is_connected,
            "state": self.state.value,
            "type": self.type,
            "last_error": self.last_error,
        }
        status.update(self._status_details())
        return status

    @abstractmethod
    def _status_details(self) -> dict: ...

    # -- Shared plumbing for subclasses --

    def _begin_connect(self) -> None:
        """Enter ``connecting``.  A fresh session diffs against position 0."""
        self._tracker.reset()
        self.last_error = None
        self.state = ConnectionState.CONNECTING

    def _fail(self, error: BaseException) -> None:
        """Record a transient error on the way back to ``disconnected``."""
        self.last_error = str(error) or error.__class__.__name__
        self.state = ConnectionState.DISCONNECTED

    def _handle_position(self, position: int) -> None:
        event = self._tracker.update(position)
        if event is not None:
            self._emit_dial(event)

    def _emit_dial(self, event: DialEvent) -> None:
        log.debug("%s dial: position=%s delta=%d", self.type, event.position, event.delta)
        if self._dial_handler is None:
            return
        try:
            self._dial_handler(event)
        except Exception:
            log.exception("Dial handler raised")

    def _emit_click(self) -> None:
        log.debug("%s click", self.type)
        if self._click_handler is None:
            return
        try:
            self._click_handler()
        except Exception:
            log.exception("Click handler raised")
