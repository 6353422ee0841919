"""Response payload parsing for STATUS and DATA packets."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..errors import ValidationError
from ..models.format import Format
from ..models.register import Register
from ..models.status import AdcReadings, Status
from .instructions import STATUS_PAYLOAD_SIZE


@dataclass
class ReadResult:
    """Register values from a READ_DATA exchange, in format order."""

    values: list
    status: Status
    registers: list[tuple[int, Register]] = field(default_factory=list, repr=False)

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self):
        return iter(self.values)

    def __getitem__(self, index):
        return self.values[index]

    def items(self):
        """Yield ``((device_id, register), value)`` pairs."""
        return zip(self.registers, self.values)


def parse_status(payload: bytes) -> Status:
    """Parse the 5-byte status trailer: status lo, status hi, 3 ADC bytes."""
    if len(payload) != STATUS_PAYLOAD_SIZE:
        raise ValidationError(
            f"status payload must be {STATUS_PAYLOAD_SIZE} bytes, got {len(payload)}"
        )
    word = payload[0] | (payload[1] << 8)
    adc = AdcReadings(positive=payload[2], negative=payload[3], thermistor=payload[4])
    return Status(word=word, adc=adc)


def data_payload_size(fmt: Format) -> int:
    """Expected DATA payload length for a read format."""
    return fmt.payload_size + STATUS_PAYLOAD_SIZE


def decode_registers(fmt: Format, block: bytes) -> list[tuple[int, Register, int]]:
    """Decode the register portion of a DATA payload.

    Each device contributes a block of ``num_bytes`` bytes starting at its
    start address. Registers are taken from their offset within that block,
    little-endian, then run through :meth:`Register.decode`. Bytes the
    controller failed to acquire arrive as 0xFF and decode like any other.

    Returns:
        ``(device_id, register, value)`` triples in format order.
    """
    if len(block) != fmt.payload_size:
        raise ValidationError(
            f"read format expects {fmt.payload_size} data bytes, got {len(block)}"
        )
    decoded = []
    offset = 0
    for entry in fmt:
        base = entry.start_addr
        for reg in entry.registers:
            pos = offset + reg.start_addr - base
            raw = 0
            for b in range(reg.width):
                raw |= block[pos + b] << (8 * b)
            decoded.append((entry.device_id, reg, reg.decode(raw)))
        offset += entry.num_bytes
    return decoded


def parse_data(fmt: Format, payload: bytes) -> tuple[list[tuple[int, Register, int]], Status]:
    """Split a DATA payload into decoded registers and the status trailer."""
    split = fmt.payload_size
    return decode_registers(fmt, payload[:split]), parse_status(payload[split:])
