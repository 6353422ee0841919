"""Instruction codes and request payload builders.

Each packet starts with a single instruction byte. Requests travel from
the host to the controller; the controller answers with either a STATUS
or a DATA packet.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Sequence

from ..errors import ValidationError
from ..models.format import Direction, Format
from ..models.register import MAX_DEVICE_ID

CONTROLLER_ID = 0xFF

STATUS_PAYLOAD_SIZE = 5  # status lo, status hi, adc pos, adc neg, adc therm


class Instruction(IntEnum):
    """Packet instruction codes."""

    # Host -> controller
    PING = 0xF0
    SET_READ_FORMAT = 0xF1
    SET_WRITE_FORMAT = 0xF2
    READ_DATA = 0xF3
    WRITE_DATA = 0xF4

    # Controller -> host
    STATUS = 0xFA
    DATA = 0xFB


FORMAT_INSTRUCTION = {
    Direction.READ: Instruction.SET_READ_FORMAT,
    Direction.WRITE: Instruction.SET_WRITE_FORMAT,
}


def build_ping_payload(device_id: int) -> bytes:
    """Build the PING payload.

    Args:
        device_id: Bus device 0-253, or 255 for the controller itself.
    """
    if not (0 <= device_id <= MAX_DEVICE_ID or device_id == CONTROLLER_ID):
        raise ValidationError(f"invalid ping id {device_id}")
    return bytes([device_id])


def build_format_payload(fmt: Format) -> bytes:
    """Serialize a format as ``count, {id, start_addr, num_bytes}*``."""
    buf = bytearray([len(fmt)])
    for entry in fmt:
        buf += bytes([entry.device_id, entry.start_addr, entry.num_bytes])
    return bytes(buf)


def build_write_payload(fmt: Format, raw_values: Sequence[int]) -> bytes:
    """Lay out encoded register values for a WRITE_DATA packet.

    Values are already encoded register bits, one per register in format
    order. Each is emitted as ``width`` little-endian bytes.
    """
    if len(raw_values) != fmt.total_registers:
        raise ValidationError(
            f"write format covers {fmt.total_registers} registers, "
            f"got {len(raw_values)} values"
        )
    buf = bytearray()
    for (_, reg), value in zip(fmt.registers(), raw_values):
        for b in range(reg.width):
            buf.append((value >> (8 * b)) & 0xFF)
    return bytes(buf)
