"""Register model: immutable descriptions of device registers.

A device type exposes a fixed bank of byte-addressable registers. Each
register is described once, in declaration order, inside a
:class:`RegisterTable`::

    TABLE = RegisterTable("AX12", [
        ro("model number", 0, width=2),
        rw("id", 3, 0, MAX_DEVICE_ID),
        ...
    ])

The table assigns ordinals in declared order and binds every register to
itself, so span arithmetic and next/previous navigation need nothing but
the register. All operations here are pure; no register performs I/O.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Callable, Iterable, Iterator

from ..errors import ValidationError

RAM_START_ADDRESS = 24
MAX_DEVICE_ID = 253

SIGN_BIT = 1 << 10
MAGNITUDE_MASK = 0x3FF


def round_half_away(value: float) -> int:
    """Round to the nearest integer, ties away from zero."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


class Check(IntEnum):
    """Result of comparing a write value against a register's range."""

    TOO_LOW = -1
    OK = 0
    TOO_HIGH = 1


@dataclass(frozen=True)
class Conversion:
    """Non-linear natural-unit mapping used instead of the linear scale."""

    to_natural: Callable[[int], float]
    from_natural: Callable[[float], int]


# Baud rate register holds a divisor; natural units are kbps.
BAUD_RATE = Conversion(
    to_natural=lambda raw: 2000.0 / (raw + 1),
    from_natural=lambda kbps: round_half_away(2000.0 / kbps - 1.0),
)

# Compliance slope 1..254 maps onto 0.0..1.0.
COMPLIANCE_SLOPE = Conversion(
    to_natural=lambda raw: (raw - 1) / 253.0,
    from_natural=lambda x: round_half_away(x * 253.0 + 1.0),
)


@dataclass(frozen=True, eq=False)
class Register:
    """One addressable register of a device type.

    Registers compare and hash by identity, so registers of different
    tables never collide as cache keys.
    """

    name: str
    start_addr: int
    width: int = 1
    writable: bool = False
    min: int | None = None
    max: int | None = None
    scale: float = 1.0
    units: str = ""
    sign_magnitude: bool = False
    prefer_natural: bool = False
    conversion: Conversion | None = None
    ordinal: int = -1
    table: RegisterTable | None = field(default=None, repr=False)

    def __repr__(self) -> str:
        device = self.table.device_type if self.table is not None else "?"
        return (
            f"Register({device} #{self.ordinal} {self.name!r} "
            f"@{self.start_addr}x{self.width})"
        )

    def __str__(self) -> str:
        return self.name

    @property
    def end_addr(self) -> int:
        """First address past this register."""
        return self.start_addr + self.width

    @property
    def is_ram(self) -> bool:
        """True for volatile registers, False for persisted (EEPROM) ones."""
        return self.start_addr >= RAM_START_ADDRESS

    @property
    def identifier(self) -> str:
        device = self.table.device_type if self.table is not None else ""
        ident = self.name.upper().replace(" ", "_")
        return f"{device.upper()}_{ident}" if device else ident

    # ─── range handling ───────────────────────────────────────────────

    def _require_range(self) -> tuple[int, int]:
        if not self.writable or self.min is None or self.max is None:
            raise ValueError(f"register '{self.name}' is read-only")
        return self.min, self.max

    def check(self, value: int) -> Check:
        """Compare an integer write value against ``[min, max]``."""
        lo, hi = self._require_range()
        if value < lo:
            return Check.TOO_LOW
        if value > hi:
            return Check.TOO_HIGH
        return Check.OK

    def check_natural(self, value: float) -> Check:
        return self.check(self.from_natural(value))

    def clamp(self, value: int) -> int:
        """Saturate an integer write value to ``[min, max]``."""
        lo, hi = self._require_range()
        return max(lo, min(hi, value))

    def clamp_natural(self, value: float) -> float:
        return self.to_natural(self.clamp(self.from_natural(value)))

    def is_boolean(self) -> bool:
        return self.writable and self.min == 0 and self.max == 1

    # ─── bit encoding ─────────────────────────────────────────────────

    def encode(self, value: int) -> int:
        """Encode a signed value into register bits.

        Sign-magnitude registers store negative values as bit 10 plus a
        10-bit magnitude. Other registers pass the value through untouched,
        negative two's-complement values included.
        """
        if self.sign_magnitude and value < 0:
            return SIGN_BIT | -value
        return value

    def decode(self, raw: int) -> int:
        """Decode register bits into a signed value (inverse of encode)."""
        if self.sign_magnitude and raw & SIGN_BIT:
            return -(raw & MAGNITUDE_MASK)
        return raw

    # ─── natural units ────────────────────────────────────────────────

    def to_natural(self, raw: int) -> float:
        if self.conversion is not None:
            return self.conversion.to_natural(raw)
        return raw * self.scale

    def from_natural(self, value: float) -> int:
        if self.conversion is not None:
            return self.conversion.from_natural(value)
        return round_half_away(value / self.scale)

    # ─── navigation ───────────────────────────────────────────────────

    def _bound_table(self) -> RegisterTable:
        if self.table is None:
            raise ValueError(f"register '{self.name}' is not part of a table")
        return self.table

    def relative(self, offset: int) -> Register:
        return self._bound_table().relative(self, offset)

    def next(self) -> Register | None:
        return self._bound_table().next(self)

    def prev(self) -> Register | None:
        return self._bound_table().prev(self)


def rw(
    name: str,
    addr: int,
    lo: int,
    hi: int,
    *,
    width: int = 1,
    scale: float = 1.0,
    units: str = "",
    sign_magnitude: bool = False,
    prefer_natural: bool = False,
    conversion: Conversion | None = None,
) -> Register:
    """Declare a writable register with valid range ``[lo, hi]``."""
    return Register(
        name=name,
        start_addr=addr,
        width=width,
        writable=True,
        min=lo,
        max=hi,
        scale=scale,
        units=units,
        sign_magnitude=sign_magnitude,
        prefer_natural=prefer_natural,
        conversion=conversion,
    )


def ro(
    name: str,
    addr: int,
    *,
    width: int = 1,
    scale: float = 1.0,
    units: str = "",
    sign_magnitude: bool = False,
    prefer_natural: bool = False,
    conversion: Conversion | None = None,
) -> Register:
    """Declare a read-only register."""
    return Register(
        name=name,
        start_addr=addr,
        width=width,
        writable=False,
        scale=scale,
        units=units,
        sign_magnitude=sign_magnitude,
        prefer_natural=prefer_natural,
        conversion=conversion,
    )


class RegisterTable:
    """Ordered, immutable register bank of one device type."""

    def __init__(self, device_type: str, registers: Iterable[Register]) -> None:
        self.device_type = device_type

        bound: list[Register] = []
        names: set[str] = set()
        prev_end = 0
        for ordinal, reg in enumerate(registers):
            if reg.width not in (1, 2):
                raise ValueError(f"{reg.name}: width must be 1 or 2, got {reg.width}")
            if reg.start_addr < prev_end:
                raise ValueError(
                    f"{reg.name}: address {reg.start_addr} overlaps previous register"
                )
            if reg.writable and (reg.min is None or reg.max is None or reg.min > reg.max):
                raise ValueError(f"{reg.name}: invalid range [{reg.min}, {reg.max}]")
            if reg.name in names:
                raise ValueError(f"duplicate register name '{reg.name}'")
            names.add(reg.name)
            prev_end = reg.end_addr
            bound.append(replace(reg, ordinal=ordinal, table=self))

        if not bound:
            raise ValueError(f"{device_type}: register table is empty")

        self._registers: tuple[Register, ...] = tuple(bound)
        self._by_name = {reg.name: reg for reg in bound}

    def __repr__(self) -> str:
        return f"RegisterTable({self.device_type!r}, {len(self)} registers)"

    def __len__(self) -> int:
        return len(self._registers)

    def __iter__(self) -> Iterator[Register]:
        return iter(self._registers)

    def __getitem__(self, key: int | str) -> Register:
        if isinstance(key, str):
            return self.register(key)
        if not 0 <= key < len(self._registers):
            raise IndexError(f"{self.device_type}: no register with ordinal {key}")
        return self._registers[key]

    def __contains__(self, reg: object) -> bool:
        return isinstance(reg, Register) and reg.table is self

    def register(self, name: str) -> Register:
        try:
            return self._by_name[name]
        except KeyError:
            raise KeyError(f"{self.device_type}: unknown register '{name}'") from None

    @property
    def first_register(self) -> Register:
        return self._registers[0]

    @property
    def first_ram_register(self) -> Register | None:
        for reg in self._registers:
            if reg.is_ram:
                return reg
        return None

    def _own(self, reg: Register) -> None:
        if reg.table is not self:
            raise ValidationError(
                f"register '{reg.name}' does not belong to {self.device_type}"
            )

    def relative(self, reg: Register, offset: int) -> Register:
        """Return the register *offset* places from *reg*."""
        self._own(reg)
        return self[reg.ordinal + offset]

    def next(self, reg: Register) -> Register | None:
        self._own(reg)
        ordinal = reg.ordinal + 1
        return self._registers[ordinal] if ordinal < len(self._registers) else None

    def prev(self, reg: Register) -> Register | None:
        self._own(reg)
        return self._registers[reg.ordinal - 1] if reg.ordinal > 0 else None

    def check_span(self, start: Register, count: int) -> None:
        self._own(start)
        if count < 0:
            raise ValidationError(f"negative register count {count}")
        if start.ordinal + count > len(self._registers):
            raise ValidationError(
                f"span of {count} from '{start.name}' extends beyond the last "
                f"{self.device_type} register"
            )

    def span(self, start: Register, count: int | None = None) -> tuple[Register, ...]:
        """Return *count* contiguous registers from *start* (``None``: to the end)."""
        if count is None:
            count = len(self._registers) - start.ordinal
        self.check_span(start, count)
        return self._registers[start.ordinal : start.ordinal + count]

    def contains_read_only(self, start: Register, count: int) -> bool:
        return any(not reg.writable for reg in self.span(start, count))

    def has_gaps(self, start: Register, count: int) -> bool:
        """True if the span skips over addresses not mapped to any register."""
        regs = self.span(start, count)
        return any(a.end_addr != b.start_addr for a, b in zip(regs, regs[1:]))

    def byte_span(self, start: Register, count: int) -> int:
        """Number of register-space bytes covered by the span."""
        regs = self.span(start, count)
        if not regs:
            return 0
        return regs[-1].end_addr - regs[0].start_addr
