"""Packet framing, checksum validation and the blocking byte codec.

Packet layout::

    +-------------+------------------+----------+
    | Instruction |     Payload      | Checksum |
    | 1 byte      |  variable length |  1 byte  |
    +-------------+------------------+----------+

- Checksum: bitwise complement of the low byte of the sum of the
  instruction and payload bytes. The checksum byte is not summed.
- There is no length field; both sides know the payload size from the
  instruction and the current formats.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from ..errors import (
    ChecksumMismatch,
    CommunicationTimeout,
    DesynchronizedError,
    UnexpectedInstruction,
)
from ..transport.base import Transport
from ..utils.checksum import checksum, complement

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 1.0  # seconds
POLL_INTERVAL = 0.001  # seconds


@dataclass
class Packet:
    """A single protocol packet."""

    instruction: int
    payload: bytes = b""

    @property
    def checksum(self) -> int:
        return checksum(bytes([self.instruction]) + self.payload)

    def to_bytes(self) -> bytes:
        return bytes([self.instruction]) + self.payload + bytes([self.checksum])

    def __repr__(self) -> str:
        return (
            f"Packet(instruction=0x{self.instruction:02X}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'})"
        )


def build_packet(instruction: int, payload: bytes = b"") -> bytes:
    """Build the wire bytes of a packet."""
    return Packet(instruction, bytes(payload)).to_bytes()


def verify_checksum(data: bytes) -> bool:
    """True if the last byte of *data* is the checksum of the rest."""
    if len(data) < 2:
        return False
    return checksum(data[:-1]) == data[-1]


def parse_packet(data: bytes) -> Packet | None:
    """Parse a complete packet, or return ``None`` if the checksum fails."""
    if not verify_checksum(data):
        return None
    return Packet(instruction=data[0], payload=bytes(data[1:-1]))


class PacketCodec:
    """Byte-level packet I/O over a transport with a running checksum.

    The codec owns the checksum accumulator and tracks whether the inbound
    stream is still aligned on packet boundaries. A timeout, a checksum
    mismatch or an unexpected instruction marks it desynchronized; only
    :meth:`drain` makes it usable again.

    Not thread-safe; the owning session serializes access.
    """

    def __init__(
        self,
        transport: Transport,
        timeout: float = DEFAULT_TIMEOUT,
        poll_interval: float = POLL_INTERVAL,
    ) -> None:
        self._transport = transport
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._accumulator = 0
        self._synchronized = True
        self._rx_trace = bytearray()

    @property
    def synchronized(self) -> bool:
        return self._synchronized

    @property
    def accumulator(self) -> int:
        return self._accumulator

    # ─── raw bytes ────────────────────────────────────────────────────

    def wait_for_data(self, timeout: float | None = None) -> None:
        """Block until at least one byte is available.

        Raises:
            CommunicationTimeout: If nothing arrives within *timeout*.
        """
        timeout = self.timeout if timeout is None else timeout
        deadline = time.monotonic() + timeout
        while self._transport.available() == 0:
            if time.monotonic() > deadline:
                raise CommunicationTimeout(
                    f"timeout waiting for response ({timeout * 1000:.0f} ms)"
                )
            time.sleep(self.poll_interval)

    def read_byte(self, accumulate: bool = True, timeout: float | None = None) -> int:
        """Read one byte, waiting up to the timeout for it to arrive."""
        self.wait_for_data(timeout)
        b = self._transport.read_byte() & 0xFF
        if accumulate:
            self._accumulator = (self._accumulator + b) & 0xFF
        self._rx_trace.append(b)
        return b

    def write_byte(self, b: int, accumulate: bool = True) -> None:
        b &= 0xFF
        self._transport.write(bytes([b]))
        if accumulate:
            self._accumulator = (self._accumulator + b) & 0xFF

    def write_raw(self, data: bytes) -> None:
        """Write bytes outside of any packet, without touching the checksum."""
        self._transport.write(bytes(data))
        self._transport.flush()

    def drain(self) -> int:
        """Discard all buffered inbound bytes and reset the checksum.

        Returns:
            Number of bytes discarded.
        """
        discarded = 0
        while self._transport.available() != 0:
            self._transport.read_byte()
            discarded += 1
        if discarded:
            logger.debug("Drained %d stray bytes", discarded)
        self._accumulator = 0
        self._synchronized = True
        self._rx_trace.clear()
        return discarded

    # ─── packets ──────────────────────────────────────────────────────

    def send(self, instruction: int, payload: bytes = b"") -> None:
        """Send one packet and flush."""
        if not self._synchronized:
            raise DesynchronizedError(
                "session is desynchronized; recover before sending"
            )
        self._accumulator = 0
        self.write_byte(instruction)
        for b in payload:
            self.write_byte(b)
        self.write_byte(complement(self._accumulator), accumulate=False)
        self._transport.flush()
        logger.debug(
            "TX 0x%02X %s", instruction, bytes(payload).hex(" ") if payload else "(empty)"
        )

    def receive(self, instruction: int, length: int) -> bytes:
        """Receive one packet with a known payload length.

        Raises:
            UnexpectedInstruction: If the first byte is not *instruction*.
            CommunicationTimeout: If a byte does not arrive in time.
            ChecksumMismatch: If the trailing checksum byte is wrong.
        """
        self._rx_trace.clear()
        self._accumulator = 0
        try:
            b = self.read_byte()
            if b != instruction:
                raise UnexpectedInstruction(instruction, b)
            payload = bytes(self.read_byte() for _ in range(length))
            expected = complement(self._accumulator)
            received = self.read_byte(accumulate=False)
            if received != expected:
                raise ChecksumMismatch(received, expected)
        except (CommunicationTimeout, ChecksumMismatch, UnexpectedInstruction):
            self._synchronized = False
            logger.debug(
                "RX failed after %d bytes: %s",
                len(self._rx_trace),
                self._rx_trace.hex(" ") or "(none)",
            )
            raise

        logger.debug("RX 0x%02X %s", instruction, payload.hex(" ") or "(empty)")
        return payload

    def exchange(self, instruction: int, payload: bytes, reply: int, length: int) -> bytes:
        """Send a request and receive its reply payload."""
        self.send(instruction, payload)
        return self.receive(reply, length)
