"""Tests for packet checksum arithmetic."""

from axlink.utils.checksum import byte_sum, checksum, complement


def test_checksum_empty():
    """Checksum of nothing is the complement of zero."""
    assert checksum(b"") == 0xFF


def test_checksum_known_value():
    """PING for device 1: ~(0xF0 + 0x01) & 0xFF."""
    assert checksum(bytes([0xF0, 0x01])) == 0x0E


def test_checksum_wraps_modulo_256():
    """The sum is truncated to its low byte before complementing."""
    data = bytes([0xFF, 0xFF, 0x03])
    assert byte_sum(data) == 0x01
    assert checksum(data) == 0xFE


def test_checksum_is_complement_of_sum():
    """checksum(data) == complement(byte_sum(data)) for arbitrary data."""
    for data in (b"\x00", b"\xf3", bytes(range(40)), b"\x80" * 3):
        assert checksum(data) == complement(byte_sum(data))
        assert (byte_sum(data) + checksum(data)) & 0xFF == 0xFF


def test_checksum_changes_with_any_byte():
    """Changing any single byte changes the checksum."""
    data = bytearray([0xF2, 0x01, 0x03, 0x1E, 0x02])
    original = checksum(data)
    for i in range(len(data)):
        corrupted = bytearray(data)
        corrupted[i] ^= 0x01
        assert checksum(corrupted) != original
