"""Serial port connection to the controller.

Wraps ``pyserial``. The link runs 8N1 with no flow control and must be
8-bit clean; pyserial opens ports in raw mode so no external ``stty``
setup is needed.
"""

from __future__ import annotations

import logging

import serial

logger = logging.getLogger(__name__)

DEFAULT_BAUDRATE = 115200


class SerialConnection:
    """Manages the serial connection to the controller.

    Usage::

        conn = SerialConnection("/dev/ttyUSB0")
        conn.open()
        conn.write(packet_bytes)
        conn.flush()
        b = conn.read_byte()
        conn.close()
    """

    def __init__(self, port: str, baudrate: int = DEFAULT_BAUDRATE) -> None:
        if not port:
            raise ValueError("port name required")
        self._port = port
        self._baudrate = baudrate
        self._serial: serial.Serial | None = None

    @property
    def port(self) -> str:
        return self._port

    @property
    def connected(self) -> bool:
        return self._serial is not None and self._serial.is_open

    @property
    def baudrate(self) -> int:
        return self._baudrate

    @baudrate.setter
    def baudrate(self, value: int) -> None:
        if self._serial is not None:
            self._serial.baudrate = value
        logger.info("Baud rate %d -> %d on %s", self._baudrate, value, self._port)
        self._baudrate = value

    def open(self) -> SerialConnection:
        """Open the port.

        Raises:
            ConnectionError: If the port cannot be opened.
        """
        if self.connected:
            return self
        try:
            self._serial = serial.Serial(
                self._port,
                self._baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=None,
                xonxoff=False,
                rtscts=False,
                dsrdtr=False,
            )
        except (serial.SerialException, ValueError) as e:
            raise ConnectionError(
                f"Could not open serial port {self._port} at {self._baudrate} bps: {e}"
            ) from e

        logger.info("Opened %s at %d bps", self._port, self._baudrate)
        return self

    def close(self) -> None:
        """Close the port; further I/O is not possible."""
        if self._serial is None:
            return
        try:
            self._serial.close()
        except serial.SerialException as e:
            logger.warning("Error closing %s: %s", self._port, e)
        finally:
            self._serial = None
            logger.info("Closed %s", self._port)

    def _require_open(self) -> serial.Serial:
        if self._serial is None:
            raise ConnectionError("Serial port is not open")
        return self._serial

    def available(self) -> int:
        return self._require_open().in_waiting

    def read_byte(self) -> int:
        data = self._require_open().read(1)
        if not data:
            raise ConnectionError(f"Read from {self._port} returned no data")
        return data[0]

    def write(self, data: bytes) -> int:
        return self._require_open().write(data)

    def flush(self) -> None:
        self._require_open().flush()
