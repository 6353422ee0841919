"""Request/response operations: ping, scan, read and write.

Every operation here is a single send followed by its expected receive.
Device-reported failures come back as a :class:`Status`; only framing
problems raise.
"""

from __future__ import annotations

import logging
import time
from typing import Sequence

from .cache import ValueCache
from .errors import ValidationError
from .format_manager import FormatManager
from .models.format import Direction
from .models.register import MAX_DEVICE_ID
from .models.status import AdcReadings, Status
from .protocol.framing import PacketCodec
from .protocol.instructions import (
    CONTROLLER_ID,
    STATUS_PAYLOAD_SIZE,
    Instruction,
    build_ping_payload,
    build_write_payload,
)
from .protocol.parser import ReadResult, data_payload_size, parse_data, parse_status

logger = logging.getLogger(__name__)


class ExchangeEngine:
    """Composes the codec, format manager and value cache."""

    def __init__(
        self,
        codec: PacketCodec,
        formats: FormatManager,
        cache: ValueCache,
    ) -> None:
        self._codec = codec
        self._formats = formats
        self._cache = cache
        self.adc = AdcReadings()

    def _status_reply(self, instruction: Instruction, payload: bytes = b"") -> Status:
        reply = self._codec.exchange(
            instruction, payload, Instruction.STATUS, STATUS_PAYLOAD_SIZE
        )
        status = parse_status(reply)
        self.adc = status.adc
        return status

    def ping(self, device_id: int) -> Status:
        """Ping a bus device (0-253) or the controller itself (255)."""
        return self._status_reply(Instruction.PING, build_ping_payload(device_id))

    def ping_controller(self) -> Status:
        return self.ping(CONTROLLER_ID)

    def scan(self, max_id: int = MAX_DEVICE_ID) -> list[bool]:
        """Ping IDs ``0..max_id`` one by one.

        Returns:
            Presence list indexed by device ID; an entry is True when its
            ping came back with an all-zero status word.
        """
        if not 0 <= max_id <= MAX_DEVICE_ID:
            raise ValidationError(f"max_id must be in [0, {MAX_DEVICE_ID}], got {max_id}")
        present = [self.ping(i).word == 0 for i in range(max_id + 1)]
        logger.debug(
            "Scan 0-%d found %s", max_id, [i for i, p in enumerate(present) if p]
        )
        return present

    def read(self, natural: bool = False) -> ReadResult:
        """Read every register in the current read format.

        Args:
            natural: Convert all values to natural units instead of
                returning raw integer counts.
        """
        fmt = self._formats.require_format(Direction.READ)
        payload = self._codec.exchange(
            Instruction.READ_DATA, b"", Instruction.DATA, data_payload_size(fmt)
        )
        decoded, status = parse_data(fmt, payload)
        self.adc = status.adc

        now = time.monotonic_ns()
        values = []
        registers = []
        for device_id, reg, value in decoded:
            self._cache.update(device_id, reg, value, now)
            values.append(reg.to_natural(value) if natural else value)
            registers.append((device_id, reg))
        return ReadResult(values=values, status=status, registers=registers)

    def write(self, values: Sequence[int | float], natural: bool = False) -> Status:
        """Write one value per register in the current write format.

        Values are not range-checked or clamped; use
        :meth:`Register.check` / :meth:`Register.clamp` beforehand if
        needed.

        Args:
            values: Raw integer counts, or natural-unit floats when
                *natural* is set. Non-integral raw values are rejected
                rather than truncated.
        """
        fmt = self._formats.require_format(Direction.WRITE)
        if len(values) != fmt.total_registers:
            raise ValidationError(
                f"write format covers {fmt.total_registers} registers, "
                f"got {len(values)} values"
            )
        raw = []
        for (_, reg), value in zip(fmt.registers(), values):
            if natural:
                count = reg.from_natural(value)
            elif isinstance(value, int):
                count = value
            elif float(value).is_integer():
                count = int(value)
            else:
                raise ValidationError(
                    f"raw value for '{reg.name}' must be an integer, got {value!r}"
                )
            raw.append(reg.encode(count))
        return self._status_reply(Instruction.WRITE_DATA, build_write_payload(fmt, raw))
