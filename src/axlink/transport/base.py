"""The duplex byte-stream contract the protocol engine runs over."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Transport(Protocol):
    """Minimal duplex byte stream.

    Implementations may also expose a writable ``baudrate`` attribute;
    firmware flashing uses it to switch to the bootloader rate.
    """

    def available(self) -> int:
        """Number of inbound bytes that can be read without blocking."""
        ...

    def read_byte(self) -> int:
        """Read one byte, blocking until it arrives."""
        ...

    def write(self, data: bytes) -> int:
        ...

    def flush(self) -> None:
        ...

    def close(self) -> None:
        ...
