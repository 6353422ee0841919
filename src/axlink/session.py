"""The session: one connection to one controller.

Usage::

    with Session.connect("/dev/ttyUSB0") as session:
        session.set_read_format([(1, AX12[PRESENT_POSITION], 1)])
        result = session.read(natural=True)
"""

from __future__ import annotations

import logging
import os
import threading
import time
from contextlib import contextmanager
from typing import BinaryIO, Iterable, Sequence

from .cache import CachedValue, ValueCache
from .errors import FlashVerificationFailure
from .exchange import ExchangeEngine
from .flasher import FirmwareFlasher, ProgressCallback
from .format_manager import FormatManager
from .models.format import Direction, EntryLike, Format
from .models.register import MAX_DEVICE_ID, Register
from .models.status import AdcReadings, Status
from .protocol.framing import DEFAULT_TIMEOUT, POLL_INTERVAL, PacketCodec
from .protocol.parser import ReadResult
from .transport.base import Transport
from .transport.serial_connection import DEFAULT_BAUDRATE, SerialConnection

logger = logging.getLogger(__name__)

RECOVER_DELAY = 0.5  # seconds to let in-flight bytes arrive before draining


class Session:
    """Serialized access to a controller over a byte-stream transport.

    Every public method takes the session lock, so a session can be shared
    between threads. Use :meth:`transaction` to make a sequence of calls
    atomic.
    """

    def __init__(
        self,
        transport: Transport,
        timeout: float = DEFAULT_TIMEOUT,
        settle_delay: float = RECOVER_DELAY,
        poll_interval: float = POLL_INTERVAL,
    ) -> None:
        self._transport = transport
        self._lock = threading.RLock()
        self.settle_delay = settle_delay
        self._codec = PacketCodec(transport, timeout=timeout, poll_interval=poll_interval)
        self._formats = FormatManager(self._codec)
        self._cache = ValueCache()
        self._engine = ExchangeEngine(self._codec, self._formats, self._cache)
        self.recover()

    @classmethod
    def connect(cls, port: str, baudrate: int = DEFAULT_BAUDRATE, **kwargs) -> Session:
        """Open *port* with pyserial and start a session on it.

        Raises:
            ConnectionError: If the port cannot be opened.
        """
        conn = SerialConnection(port, baudrate).open()
        try:
            return cls(conn, **kwargs)
        except Exception:
            conn.close()
            raise

    def close(self) -> None:
        with self._lock:
            self._transport.close()

    def __enter__(self) -> Session:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ─── locking ──────────────────────────────────────────────────────

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @contextmanager
    def transaction(self):
        """Hold the session lock across several operations."""
        with self._lock:
            yield self

    # ─── stream state ─────────────────────────────────────────────────

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def synchronized(self) -> bool:
        return self._codec.synchronized

    @property
    def timeout(self) -> float:
        return self._codec.timeout

    @timeout.setter
    def timeout(self, value: float) -> None:
        if value < 0:
            raise ValueError(f"timeout must be non-negative, got {value}")
        with self._lock:
            self._codec.timeout = value

    @property
    def adc(self) -> AdcReadings:
        """ADC snapshot from the most recent status or data response."""
        return self._engine.adc

    def drain(self) -> int:
        """Discard buffered inbound bytes and resynchronize immediately."""
        with self._lock:
            return self._codec.drain()

    def recover(self) -> int:
        """Wait for in-flight bytes to land, then drain them."""
        with self._lock:
            time.sleep(self.settle_delay)
            discarded = self._codec.drain()
            if discarded:
                logger.info("Recovered stream, discarded %d bytes", discarded)
            return discarded

    # ─── requests ─────────────────────────────────────────────────────

    def ping(self, device_id: int) -> Status:
        with self._lock:
            return self._engine.ping(device_id)

    def ping_controller(self) -> Status:
        with self._lock:
            return self._engine.ping_controller()

    def scan(self, max_id: int = MAX_DEVICE_ID) -> list[bool]:
        with self._lock:
            return self._engine.scan(max_id)

    def set_read_format(self, entries: Iterable[EntryLike] | Format) -> Status:
        with self._lock:
            return self._formats.set_format(Direction.READ, entries)

    def set_write_format(self, entries: Iterable[EntryLike] | Format) -> Status:
        with self._lock:
            return self._formats.set_format(Direction.WRITE, entries)

    def get_read_format(self) -> Format | None:
        with self._lock:
            return self._formats.get_format(Direction.READ)

    def get_write_format(self) -> Format | None:
        with self._lock:
            return self._formats.get_format(Direction.WRITE)

    def read(self, natural: bool = False) -> ReadResult:
        with self._lock:
            return self._engine.read(natural)

    def write(self, values: Sequence[int | float], natural: bool = False) -> Status:
        with self._lock:
            return self._engine.write(values, natural)

    def get_cached_value(self, device_id: int, register: Register) -> CachedValue | None:
        with self._lock:
            return self._cache.get(device_id, register)

    # ─── firmware ─────────────────────────────────────────────────────

    def flash_firmware(
        self,
        image: bytes | BinaryIO | str | os.PathLike,
        progress: ProgressCallback | None = None,
        strict: bool = False,
        **kwargs,
    ) -> int:
        """Flash a raw firmware image through the bootloader.

        Args:
            image: Image bytes, a binary file object or a path.
            progress: Called as ``progress(stage, done, total)``.
            strict: Raise :class:`FlashVerificationFailure` instead of
                returning a negative count when read-back differs.
            **kwargs: Passed to :class:`FirmwareFlasher`.

        Returns:
            Number of bytes flashed, negated if verification failed.
        """
        if isinstance(image, (str, os.PathLike)):
            with open(image, "rb") as f:
                data = f.read()
        elif isinstance(image, (bytes, bytearray, memoryview)):
            data = bytes(image)
        else:
            data = image.read()

        with self._lock:
            flasher = FirmwareFlasher(self._codec, self._transport, progress=progress, **kwargs)
            result = flasher.flash(data)

        if result < 0 and strict:
            raise FlashVerificationFailure(
                len(data), flasher.mismatch_index, flasher.expected, flasher.actual
            )
        return result
