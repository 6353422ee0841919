"""Read/write formats: which register spans on which devices a transfer covers.

A format is an ordered list of ``(device_id, start, count)`` entries. The
order fixes the payload layout of every subsequent read or write.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Sequence, Union

from ..errors import ValidationError
from .register import MAX_DEVICE_ID, Register

MAX_DEVICES = 32


class Direction(Enum):
    READ = "read"
    WRITE = "write"


@dataclass(frozen=True)
class FormatEntry:
    """One device and the contiguous register span transferred for it."""

    device_id: int
    start: Register | None
    count: int

    @property
    def registers(self) -> tuple[Register, ...]:
        if self.start is None or self.count == 0:
            return ()
        return self.start.table.span(self.start, self.count)

    @property
    def num_bytes(self) -> int:
        """Register-space bytes covered, as sent in the format packet."""
        if self.start is None or self.count == 0:
            return 0
        return self.start.table.byte_span(self.start, self.count)

    @property
    def start_addr(self) -> int:
        return self.start.start_addr if self.start is not None and self.count else 0


EntryLike = Union[FormatEntry, Sequence]


@dataclass(frozen=True)
class Format:
    """Immutable snapshot of a negotiated format."""

    entries: tuple[FormatEntry, ...] = ()

    @classmethod
    def of(cls, entries: Iterable[EntryLike]) -> Format:
        """Build a format from entries or ``(id, start, count)`` tuples."""
        built = []
        for entry in entries:
            if not isinstance(entry, FormatEntry):
                device_id, start, count = entry
                entry = FormatEntry(device_id, start, count)
            built.append(entry)
        return cls(tuple(built))

    @classmethod
    def uniform(cls, device_ids: Iterable[int], start: Register, count: int) -> Format:
        """Same register span on every listed device."""
        return cls(tuple(FormatEntry(i, start, count) for i in device_ids))

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[FormatEntry]:
        return iter(self.entries)

    @property
    def device_ids(self) -> tuple[int, ...]:
        return tuple(e.device_id for e in self.entries)

    @property
    def total_registers(self) -> int:
        return sum(e.count for e in self.entries)

    @property
    def payload_size(self) -> int:
        return sum(e.num_bytes for e in self.entries)

    def registers(self) -> Iterator[tuple[int, Register]]:
        """Yield ``(device_id, register)`` pairs in payload order."""
        for entry in self.entries:
            for reg in entry.registers:
                yield entry.device_id, reg


def validate_format(fmt: Format, direction: Direction) -> None:
    """Raise :class:`ValidationError` if *fmt* cannot be negotiated.

    Nothing here touches the wire.
    """
    if len(fmt) > MAX_DEVICES:
        raise ValidationError(
            f"format has {len(fmt)} devices, at most {MAX_DEVICES} allowed"
        )

    seen: set[int] = set()
    for i, entry in enumerate(fmt):
        if not 0 <= entry.device_id <= MAX_DEVICE_ID:
            raise ValidationError(
                f"device ID {entry.device_id} at index {i} outside [0, {MAX_DEVICE_ID}]"
            )
        if entry.device_id in seen:
            raise ValidationError(f"device ID {entry.device_id} used more than once")
        seen.add(entry.device_id)

        if entry.count < 0:
            raise ValidationError(f"negative register count at index {i}")
        if entry.start is None:
            if entry.count > 0:
                raise ValidationError(f"missing start register at index {i}")
            continue
        if entry.start.table is None:
            raise ValidationError(
                f"start register '{entry.start.name}' at index {i} is not part of a table"
            )

        table = entry.start.table
        table.check_span(entry.start, entry.count)

        if direction is Direction.WRITE:
            if table.contains_read_only(entry.start, entry.count):
                raise ValidationError(
                    f"write span at index {i} includes read-only registers"
                )
            if table.has_gaps(entry.start, entry.count):
                raise ValidationError(
                    f"write span at index {i} crosses unmapped addresses"
                )
