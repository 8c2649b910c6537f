"""
Serial dial transport: reads ``DIAL:<int>`` lines from a USB/UART link.

The controller prints one absolute position per line.  Lines are framed on
``\\n``; anything that is not ``DIAL:`` followed by an integer is ignored.
"""

import asyncio
import codecs
import logging

import serial  # pyserial
from serial import SerialException
from serial.tools import list_ports

from ..config import cfg
from ..errors import TransportConnectionError, UnsupportedTransportError
from ..events import ConnectionState
from .base import DialTransport

log = logging.getLogger("dial-hub.transport.serial")

LINE_PREFIX = "DIAL:"
DEFAULT_BAUDRATE = 9600
READ_TIMEOUT = 0.1  # seconds; bounds how long a cancelled read loop lingers


def discover_ports() -> list[str]:
    """Serial devices the host currently exposes, in enumeration order."""
    return [p.device for p in list_ports.comports()]


class SerialDialTransport(DialTransport):
    """Dial over a byte-stream port at 9600 8N1."""

    type = "serial"

    def __init__(self, port: str | None = None, baudrate: int | None = None):
        super().__init__()
        self._port = port or cfg("serial", "port", default="auto")
        self._baudrate = int(baudrate or cfg("serial", "baudrate", default=DEFAULT_BAUDRATE))
        self._active_port: str | None = None
        self._serial: serial.SerialBase | None = None
        self._read_task: asyncio.Task | None = None
        self._stop = asyncio.Event()
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    # -- lifecycle --

    async def connect(self) -> None:
        if self.is_connected:
            log.info("Serial already connected on %s", self._active_port)
            return

        self._begin_connect()
        try:
            port = self._resolve_port()
        except UnsupportedTransportError as e:
            self._fail(e)
            raise

        loop = asyncio.get_running_loop()
        try:
            self._serial = await loop.run_in_executor(None, self._open, port)
        except (SerialException, OSError, ValueError) as e:
            self._fail(e)
            raise TransportConnectionError(f"Could not open serial port {port}: {e}") from e

        self._active_port = port
        self._reset_framing()
        self._stop = asyncio.Event()
        self.state = ConnectionState.CONNECTED
        self._read_task = asyncio.create_task(self._read_loop(), name="dial-serial-read")
        log.info("Serial connected on %s @ %d baud", port, self._baudrate)

    async def disconnect(self) -> None:
        self._stop.set()
        task, self._read_task = self._read_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        was_open = self._serial is not None
        self._close_port()
        self._reset_framing()
        self.state = ConnectionState.DISCONNECTED
        if was_open:
            log.info("Serial disconnected from %s", self._active_port)

    # -- port handling --

    def _resolve_port(self) -> str:
        if self._port and str(self._port).lower() != "auto":
            return str(self._port)
        ports = discover_ports()
        if not ports:
            raise UnsupportedTransportError("No serial ports available on this host")
        log.info("Serial port auto-detected: %s (of %d)", ports[0], len(ports))
        return ports[0]

    def _open(self, port: str) -> serial.SerialBase:
        # URL ports (loop://, socket://, rfc2217://) go through serial_for_url
        if "://" in port:
            ser = serial.serial_for_url(port, do_not_open=True)
        else:
            ser = serial.Serial()
            ser.port = port
        ser.baudrate = self._baudrate
        ser.bytesize = serial.EIGHTBITS
        ser.stopbits = serial.STOPBITS_ONE
        ser.parity = serial.PARITY_NONE
        ser.timeout = READ_TIMEOUT
        ser.open()
        return ser

    def _close_port(self) -> None:
        ser, self._serial = self._serial, None
        if ser is None:
            return
        try:
            ser.close()
        except (SerialException, OSError) as e:
            log.warning("Error closing serial port: %s", e)

    # -- read loop --

    def _read_chunk(self) -> bytes:
        ser = self._serial
        if ser is None:
            return b""
        return ser.read(ser.in_waiting or 1)

    async def _read_loop(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            while not self._stop.is_set():
                data = await loop.run_in_executor(None, self._read_chunk)
                if data:
                    self.feed(data)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.error("Serial read failed on %s: %s", self._active_port, e)
            self._close_port()
            self._fail(e)

    # -- framing & parsing --

    def _reset_framing(self) -> None:
        self._decoder.reset()
        self._buffer = ""

    def feed(self, data: bytes) -> None:
        """Accept raw bytes; only complete lines are processed."""
        self._buffer += self._decoder.decode(data)
        *lines, self._buffer = self._buffer.split("\n")
        for line in lines:
            self._process_line(line.strip())

    def _process_line(self, line: str) -> None:
        if not line:
            return
        if not line.startswith(LINE_PREFIX):
            log.debug("Ignoring serial line: %r", line)
            return
        try:
            position = int(line[len(LINE_PREFIX):])
        except ValueError:
            log.debug("Non-numeric dial value: %r", line)
            return
        self._handle_position(position)

    def _status_details(self) -> dict:
        return {
            "port": self._active_port,
            "reading": self._read_task is not None and not self._read_task.done(),
        }
