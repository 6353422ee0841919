"""Exception hierarchy.

Validation errors are raised before anything reaches the wire.
Communication errors leave the session desynchronized until it is
drained. Device-reported failures are returned as a ``Status`` and only
become :class:`ProtocolStatusError` when the caller asks for it.
"""

from __future__ import annotations


class AxLinkError(Exception):
    """Base class for all errors raised by this package."""


class ValidationError(AxLinkError, ValueError):
    """Bad arguments detected locally; nothing was transmitted."""


class FormatUnavailable(AxLinkError):
    """The local format shadow is indeterminate after a failed negotiation."""


class CommunicationError(AxLinkError, IOError):
    """Framing-level failure; the session must be recovered before reuse."""


class CommunicationTimeout(CommunicationError):
    """No byte arrived before the receive deadline."""


class ChecksumMismatch(CommunicationError):
    """The received checksum byte did not match the packet contents."""

    def __init__(self, received: int, expected: int) -> None:
        super().__init__(
            f"invalid checksum 0x{received:02X}, should be 0x{expected:02X}"
        )
        self.received = received
        self.expected = expected


class UnexpectedInstruction(CommunicationError):
    """The first byte of a response was not the expected instruction."""

    def __init__(self, expected: int, received: int) -> None:
        super().__init__(
            f"expected instruction 0x{expected:02X}, got 0x{received:02X}"
        )
        self.expected = expected
        self.received = received


class DesynchronizedError(CommunicationError):
    """A request was attempted before recovering from an earlier failure."""


class FlashTimeout(CommunicationTimeout):
    """The bootloader did not respond in time during flashing."""


class ProtocolStatusError(AxLinkError):
    """The controller answered but reported a non-zero error bitfield."""

    def __init__(self, message: str, status) -> None:
        super().__init__(message)
        self.status = status


class FlashVerificationFailure(AxLinkError):
    """Read-back of a flashed image differed from what was uploaded."""

    def __init__(self, count: int, index: int, expected: int, actual: int) -> None:
        super().__init__(
            f"verify failed at byte {index} of {count}: "
            f"expected 0x{expected:02X}, got 0x{actual:02X}"
        )
        self.count = count
        self.index = index
        self.expected = expected
        self.actual = actual
