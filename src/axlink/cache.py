"""Cache of the most recently read register values."""

from __future__ import annotations

import time
from dataclasses import dataclass

from .models.register import Register


@dataclass(frozen=True)
class CachedValue:
    """Last decoded raw value of a register and when it was read."""

    value: int
    timestamp_ns: int

    @property
    def age(self) -> float:
        """Seconds since the value was read."""
        return (time.monotonic_ns() - self.timestamp_ns) / 1e9


class ValueCache:
    """Last-known value per ``(device_id, register)``.

    Populated only by successful reads; entries are never removed.
    """

    def __init__(self) -> None:
        self._values: dict[tuple[int, Register], CachedValue] = {}

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, key: tuple[int, Register]) -> bool:
        return key in self._values

    def update(
        self,
        device_id: int,
        register: Register,
        value: int,
        timestamp_ns: int | None = None,
    ) -> CachedValue:
        if timestamp_ns is None:
            timestamp_ns = time.monotonic_ns()
        cached = CachedValue(value=value, timestamp_ns=timestamp_ns)
        self._values[(device_id, register)] = cached
        return cached

    def get(self, device_id: int, register: Register) -> CachedValue | None:
        return self._values.get((device_id, register))
