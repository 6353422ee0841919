"""Firmware upload through the controller's serial bootloader.

The bootloader is entered by power-cycling the controller while ``#`` is
sent repeatedly. It answers with a banner, accepts a raw image after an
``l`` command and echoes the flash contents back after ``up``.

Sequence::

    AWAIT_BOOTLOADER_RESET -> UPLOAD -> VERIFY -> AWAIT_USER_RESET -> DONE
                                                                   \\-> FAILED
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable

from .errors import CommunicationTimeout, FlashTimeout
from .protocol.framing import PacketCodec
from .transport.base import Transport

logger = logging.getLogger(__name__)

BOOTLOADER_BAUDRATE = 57600
BOOTLOADER_BANNER = b"SYSTEM O.K. (CM5 Boot loader"
BOOTLOADER_WAKE = b"#"
LOAD_COMMAND = b"\nl\n"
UPLOAD_COMMAND = "\nup 0, {:x}\n"
RESET_ACK = 0xFF

FLASH_TIMEOUT = 10.0  # seconds, per awaited byte / for the banner
FLASH_SETTLE_DELAY = 1.0  # seconds
WAKE_INTERVAL = 0.05  # seconds between '#' bytes

ProgressCallback = Callable[[str, int, int], None]


class FlashState(Enum):
    AWAIT_BOOTLOADER_RESET = "await_bootloader_reset"
    UPLOAD = "upload"
    VERIFY = "verify"
    AWAIT_USER_RESET = "await_user_reset"
    DONE = "done"
    FAILED = "failed"


class FirmwareFlasher:
    """Drives one firmware flash over an already-open transport.

    The caller must hold the session lock for the whole run; nothing else
    may touch the transport meanwhile.
    """

    def __init__(
        self,
        codec: PacketCodec,
        transport: Transport,
        settle_delay: float = FLASH_SETTLE_DELAY,
        timeout: float = FLASH_TIMEOUT,
        wake_interval: float = WAKE_INTERVAL,
        bootloader_baudrate: int = BOOTLOADER_BAUDRATE,
        progress: ProgressCallback | None = None,
    ) -> None:
        self._codec = codec
        self._transport = transport
        self.settle_delay = settle_delay
        self.timeout = timeout
        self.wake_interval = wake_interval
        self.bootloader_baudrate = bootloader_baudrate
        self.progress = progress

        self.state = FlashState.AWAIT_BOOTLOADER_RESET
        self.mismatch_index: int | None = None
        self.expected: int | None = None
        self.actual: int | None = None

    def _report(self, done: int, total: int) -> None:
        if self.progress is not None:
            self.progress(self.state.value, done, total)

    def _settle(self) -> None:
        time.sleep(self.settle_delay)
        self._codec.drain()

    def _command(self, text: bytes) -> None:
        self._settle()
        self._codec.write_raw(text)
        self._settle()

    def _read(self) -> int:
        try:
            return self._codec.read_byte(accumulate=False, timeout=self.timeout)
        except CommunicationTimeout as e:
            raise FlashTimeout(f"{self.state.value}: {e}") from e

    # ─── stages ───────────────────────────────────────────────────────

    def _check_deadline(self, deadline: float) -> None:
        if time.monotonic() > deadline:
            raise FlashTimeout(f"no bootloader banner within {self.timeout:g} s")

    def _await_bootloader(self) -> None:
        self.state = FlashState.AWAIT_BOOTLOADER_RESET
        logger.info("Waiting for bootloader; reset the controller now")
        deadline = time.monotonic() + self.timeout
        matched = 0
        while matched < len(BOOTLOADER_BANNER):
            self._check_deadline(deadline)
            # Wake bytes only between banners, never in the middle of one.
            if matched == 0:
                self._codec.write_raw(BOOTLOADER_WAKE)
            time.sleep(self.wake_interval)
            while matched < len(BOOTLOADER_BANNER) and self._transport.available():
                self._check_deadline(deadline)
                b = self._transport.read_byte() & 0xFF
                if b == BOOTLOADER_BANNER[matched]:
                    matched += 1
                else:
                    matched = 0
        logger.info("Bootloader detected")

    def _upload(self, image: bytes) -> bytearray:
        self.state = FlashState.UPLOAD
        self._command(LOAD_COMMAND)
        n = len(image)
        logger.info("Uploading %d bytes", n)
        sent = bytearray()
        for i, b in enumerate(image):
            self._codec.write_byte(b, accumulate=False)
            sent.append(b)
            self._report(i + 1, n)
        self._transport.flush()
        return sent

    def _verify(self, sent: bytearray) -> bool:
        self.state = FlashState.VERIFY
        n = len(sent)
        self._command(UPLOAD_COMMAND.format(n).encode("ascii"))
        logger.info("Verifying %d bytes", n)
        for i in range(n):
            b = self._read()
            if self.mismatch_index is None and b != sent[i]:
                self.mismatch_index = i
                self.expected = sent[i]
                self.actual = b
            self._report(i + 1, n)
        if self.mismatch_index is not None:
            logger.warning(
                "Verify failed at byte %d of %d: expected 0x%02X, got 0x%02X",
                self.mismatch_index,
                n,
                self.expected,
                self.actual,
            )
            return False
        logger.info("Verify OK")
        return True

    def _await_user_reset(self) -> None:
        self.state = FlashState.AWAIT_USER_RESET
        logger.info("Reset the controller to start the new firmware")
        b = self._read()
        if b != RESET_ACK:
            logger.warning("Unexpected reset byte 0x%02X (wanted 0x%02X)", b, RESET_ACK)

    # ─── entry point ──────────────────────────────────────────────────

    def flash(self, image: bytes) -> int:
        """Upload and verify *image*.

        Returns:
            ``len(image)`` on success, or its negation if the read-back
            differed (see :attr:`mismatch_index`).

        Raises:
            FlashTimeout: If the bootloader stops responding.
        """
        image = bytes(image)
        n = len(image)
        has_baud = hasattr(self._transport, "baudrate")
        original_baud = self._transport.baudrate if has_baud else None
        self.mismatch_index = self.expected = self.actual = None

        try:
            self._codec.drain()
            if has_baud:
                self._transport.baudrate = self.bootloader_baudrate
            self._await_bootloader()
            sent = self._upload(image)
            verified = self._verify(sent)
            self._settle()
            if has_baud:
                self._transport.baudrate = original_baud
                has_baud = False
            self._await_user_reset()
        except Exception:
            self.state = FlashState.FAILED
            raise
        finally:
            if has_baud:
                self._transport.baudrate = original_baud
            self._codec.drain()

        self.state = FlashState.DONE if verified else FlashState.FAILED
        return n if verified else -n
