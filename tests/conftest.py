"""Shared fixtures: an in-memory transport standing in for the controller."""

from __future__ import annotations

import pytest

from axlink.protocol.framing import build_packet
from axlink.protocol.instructions import Instruction
from axlink.session import Session


class FakeTransport:
    """Duplex byte stream with scripted replies.

    ``reply_on(trigger, *chunks)`` queues *chunks* once the bytes written so
    far end with *trigger*. Each queued chunk becomes readable only on the
    second ``available()`` call after it reaches the head of the queue, so a
    drain that runs right after a request finds nothing yet while a later
    blocking read picks the chunk up.
    """

    def __init__(self) -> None:
        self.inbound = bytearray()
        self.written = bytearray()
        self._baudrate = 115200
        self.baud_history: list[int] = []
        self.closed = False
        self._rules: list[tuple[bytes, list[bytes]]] = []
        self._pending: list[bytes] = []
        self._armed = False

    @property
    def baudrate(self) -> int:
        return self._baudrate

    @baudrate.setter
    def baudrate(self, value: int) -> None:
        self._baudrate = value
        self.baud_history.append(value)

    def feed(self, data: bytes) -> None:
        """Make *data* readable immediately."""
        self.inbound += data

    def reply_on(self, trigger: bytes, *chunks: bytes) -> None:
        self._rules.append((bytes(trigger), list(chunks)))

    def available(self) -> int:
        if not self.inbound and self._pending:
            if self._armed:
                self.inbound += self._pending.pop(0)
                self._armed = False
            else:
                self._armed = True
        return len(self.inbound)

    def read_byte(self) -> int:
        b = self.inbound[0]
        del self.inbound[0]
        return b

    def write(self, data: bytes) -> int:
        self.written += data
        for i, (trigger, chunks) in enumerate(self._rules):
            if self.written.endswith(trigger):
                del self._rules[i]
                self._pending.extend(chunks)
                break
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True


def status_packet(word: int = 0, adc: tuple[int, int, int] = (0, 0, 0)) -> bytes:
    return build_packet(Instruction.STATUS, bytes([word & 0xFF, word >> 8, *adc]))


def data_packet(data: bytes, word: int = 0, adc: tuple[int, int, int] = (0, 0, 0)) -> bytes:
    return build_packet(Instruction.DATA, bytes(data) + bytes([word & 0xFF, word >> 8, *adc]))


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def session(transport) -> Session:
    """Session with short timeouts and no recovery delay."""
    return Session(transport, timeout=0.05, settle_delay=0, poll_interval=0)
