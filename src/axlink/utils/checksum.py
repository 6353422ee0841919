"""Packet checksum arithmetic.

The checksum is the bitwise complement of the low byte of the unsigned sum
of the instruction byte and every payload byte.
"""

from __future__ import annotations


def byte_sum(data: bytes) -> int:
    """Return the unsigned byte sum of *data*, modulo 256."""
    return sum(data) & 0xFF


def complement(accumulator: int) -> int:
    """Return the checksum byte for a running byte-sum accumulator."""
    return (~accumulator) & 0xFF


def checksum(data: bytes) -> int:
    """Compute the checksum byte over instruction + payload bytes."""
    return complement(byte_sum(data))
