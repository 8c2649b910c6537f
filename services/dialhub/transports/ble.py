"""
Bluetooth LE dial transport.

The dial firmware advertises as "Arduino Dial" and exposes one GATT service
with two notify characteristics:

  position  int32, little-endian   absolute encoder position
  click     uint8                  1 on press, 0 on release

Only press edges (value 1) fire the click handler.  The firmware sends 1 for
every press, so repeated 1s re-trigger by design of the hardware.

Needs the ``bleak`` package (``pip install dial-hub[ble]``).
"""

import logging
import struct
import sys

from ..config import cfg
from ..errors import TransportConnectionError, UnsupportedTransportError
from ..events import ConnectionState
from .base import DialTransport

log = logging.getLogger("dial-hub.transport.ble")

DEVICE_NAME = "Arduino Dial"
SERVICE_UUID = "12345678-1234-1234-1234-123456789abc"
POSITION_CHAR_UUID = "12345678-1234-1234-1234-123456789abd"
CLICK_CHAR_UUID = "12345678-1234-1234-1234-123456789abe"

POSITION = struct.Struct("<i")


def _bluetooth_unavailable(error: BaseException) -> bool:
    """True when bleak reports that the host has no usable adapter."""
    # a bleak exception can only exist once bleak.exc has been imported
    exc = sys.modules.get("bleak.exc")
    return exc is not None and isinstance(error, exc.BleakBluetoothNotAvailableError)


def is_supported() -> bool:
    """True when the bleak package can be imported on this host."""
    try:
        import bleak  # noqa: F401
    except ImportError:
        return False
    return True


class BleDialTransport(DialTransport):
    """Dial over Bluetooth LE notifications.

    ``scanner`` and ``client_cls`` default to bleak's ``BleakScanner`` and
    ``BleakClient``; anything with the same shape can stand in.
    """

    type = "bluetooth"

    def __init__(self, device_name: str | None = None, scan_timeout: float | None = None,
                 scanner=None, client_cls=None):
        super().__init__()
        self._device_name = device_name or cfg("ble", "device_name", default=DEVICE_NAME)
        self._scan_timeout = float(scan_timeout or cfg("ble", "scan_timeout", default=10.0))
        self._scanner = scanner
        self._client_cls = client_cls
        self._device = None
        self._client = None
        self._position_char = None
        self._click_char = None

    def _backend(self):
        if self._scanner is not None and self._client_cls is not None:
            return self._scanner, self._client_cls
        try:
            from bleak import BleakClient, BleakScanner
        except ImportError as e:
            raise UnsupportedTransportError(
                "Bluetooth LE support needs the 'bleak' package"
            ) from e
        return self._scanner or BleakScanner, self._client_cls or BleakClient

    # -- lifecycle --

    def _matches(self, device, adv) -> bool:
        if device.name == self._device_name or adv.local_name == self._device_name:
            return True
        return SERVICE_UUID in (u.lower() for u in adv.service_uuids)

    async def connect(self) -> None:
        if self.is_connected:
            log.info("BLE already connected to %s", self._device.name)
            return

        self._begin_connect()
        try:
            scanner, client_cls = self._backend()
        except UnsupportedTransportError as e:
            self._fail(e)
            raise

        log.info("Scanning for %s (%.0fs)...", self._device_name, self._scan_timeout)
        try:
            device = await scanner.find_device_by_filter(self._matches, timeout=self._scan_timeout)
        except Exception as e:
            self._fail(e)
            if _bluetooth_unavailable(e):
                raise UnsupportedTransportError(f"Bluetooth LE not available: {e}") from e
            raise

        if device is None:
            err = TransportConnectionError(f"No BLE device found matching {self._device_name}")
            self._fail(err)
            raise err

        log.info("Dial selected: %s [%s]", device.name, device.address)
        self._device = device
        client = client_cls(device, disconnected_callback=self._on_disconnected)
        self._client = client
        try:
            await client.connect()
            service = client.services.get_service(SERVICE_UUID)
            if service is None:
                raise TransportConnectionError(f"Dial service {SERVICE_UUID} not found")
            position_char = service.get_characteristic(POSITION_CHAR_UUID)
            click_char = service.get_characteristic(CLICK_CHAR_UUID)
            if position_char is None or click_char is None:
                raise TransportConnectionError("Dial characteristics not found")
            await client.start_notify(position_char, self._on_position)
            await client.start_notify(click_char, self._on_click)
            if self._client is not client:
                raise TransportConnectionError("Dial disconnected during setup")
        except Exception as e:
            log.error("Failed to connect to %s: %s", device.name, e)
            await self._teardown(client)
            self._fail(e)
            raise

        self._position_char = position_char
        self._click_char = click_char
        self.state = ConnectionState.CONNECTED
        log.info("BLE connected, notifications started")

    async def disconnect(self) -> None:
        was_connected = self._client is not None
        await self._teardown()
        if was_connected:
            log.info("BLE disconnected")

    async def _teardown(self, client=None) -> None:
        """Best-effort unsubscribe and disconnect; always clears local state."""
        if client is None:
            client = self._client
        if client is not None:
            for char in (self._position_char, self._click_char):
                if char is None:
                    continue
                try:
                    await client.stop_notify(char)
                except Exception as e:
                    log.warning("Error stopping notifications on %s: %s", char.uuid, e)
            try:
                if client.is_connected:
                    await client.disconnect()
            except Exception as e:
                log.warning("Error during Bluetooth disconnect: %s", e)
        self._cleanup()

    def _cleanup(self) -> None:
        self._device = None
        self._client = None
        self._position_char = None
        self._click_char = None
        self.state = ConnectionState.DISCONNECTED

    def _on_disconnected(self, client) -> None:
        if client is not self._client:
            return
        log.info("Dial disconnected by peer")
        self._cleanup()

    # -- notifications --

    def _on_position(self, sender, data: bytearray) -> None:
        if len(data) < POSITION.size:
            log.warning("Short position payload: %s", bytes(data).hex())
            return
        (position,) = POSITION.unpack_from(data)
        self._handle_position(position)

    def _on_click(self, sender, data: bytearray) -> None:
        if not data:
            log.warning("Empty click payload")
            return
        if data[0] == 1:
            self._emit_click()

    def _status_details(self) -> dict:
        return {
            "device_name": self._device.name if self._device else None,
            "device_id": self._device.address if self._device else None,
        }
