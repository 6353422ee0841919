"""Negotiates read/write formats with the controller and shadows them locally."""

from __future__ import annotations

import logging
from typing import Iterable

from .errors import CommunicationError, DesynchronizedError, FormatUnavailable
from .models.format import Direction, EntryLike, Format, validate_format
from .models.status import Status
from .protocol.framing import PacketCodec
from .protocol.instructions import (
    FORMAT_INSTRUCTION,
    STATUS_PAYLOAD_SIZE,
    Instruction,
    build_format_payload,
)
from .protocol.parser import parse_status

logger = logging.getLogger(__name__)


class FormatManager:
    """Holds the local shadow of both formats.

    Both shadows start empty, matching the controller at power-on. A
    shadow is ``None`` while indeterminate, i.e. after a negotiation that
    failed on the wire or was rejected by the controller.
    """

    def __init__(self, codec: PacketCodec) -> None:
        self._codec = codec
        self._formats: dict[Direction, Format | None] = {
            Direction.READ: Format(),
            Direction.WRITE: Format(),
        }
        self.last_status: Status | None = None

    def get_format(self, direction: Direction) -> Format | None:
        """Current shadow for *direction*; never touches the wire."""
        return self._formats[direction]

    def require_format(self, direction: Direction) -> Format:
        fmt = self._formats[direction]
        if fmt is None:
            raise FormatUnavailable(
                f"{direction.value} format is indeterminate; set it again"
            )
        return fmt

    def set_format(self, direction: Direction, entries: Iterable[EntryLike] | Format) -> Status:
        """Validate, transmit and (on success) adopt a new format.

        Raises:
            ValidationError: Before anything is sent, if the format is
                invalid. The previous shadow is left untouched.
            CommunicationError: On timeout/checksum/framing failures. The
                shadow becomes indeterminate.

        Returns:
            The controller status. If it reports errors the shadow becomes
            indeterminate.
        """
        fmt = entries if isinstance(entries, Format) else Format.of(entries)
        validate_format(fmt, direction)

        payload = build_format_payload(fmt)
        try:
            reply = self._codec.exchange(
                FORMAT_INSTRUCTION[direction],
                payload,
                Instruction.STATUS,
                STATUS_PAYLOAD_SIZE,
            )
        except DesynchronizedError:
            raise
        except CommunicationError:
            self._formats[direction] = None
            raise

        status = parse_status(reply)
        self.last_status = status
        if status.ok:
            self._formats[direction] = fmt
            logger.debug(
                "%s format set: %d devices, %d registers",
                direction.value,
                len(fmt),
                fmt.total_registers,
            )
        else:
            self._formats[direction] = None
            logger.debug("%s format rejected: %s", direction.value, status)
        return status
