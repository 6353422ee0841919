"""Tests for session-level requests: ping, scan, read, write and recovery."""

from __future__ import annotations

import logging
import threading
from unittest.mock import MagicMock, patch

import pytest
import serial

from axlink.errors import (
    CommunicationTimeout,
    DesynchronizedError,
    ProtocolStatusError,
    ValidationError,
)
from axlink.models.ax12 import AX12, GOAL_POSITION, MOVING_SPEED, PRESENT_POSITION
from axlink.models.register import RegisterTable, ro
from axlink.models.status import (
    AdcReadings,
    ControllerStatus,
    Status,
    describe_device_errors,
    verify_status,
)
from axlink.protocol.framing import build_packet
from axlink.protocol.instructions import Instruction
from axlink.session import Session
from axlink.transport.base import Transport
from axlink.transport.serial_connection import SerialConnection

from conftest import FakeTransport, data_packet, status_packet

# Two-byte register at ordinal 5 followed by a one-byte register.
SENSOR = RegisterTable("SENSOR", [
    ro("r0", 0),
    ro("r1", 1),
    ro("r2", 2),
    ro("r3", 3),
    ro("r4", 4),
    ro("wide", 5, width=2),
    ro("narrow", 7),
])
WIDE = SENSOR[5]
NARROW = SENSOR[6]


def _read_format(session, transport, entries):
    transport.feed(status_packet())
    assert session.set_read_format(entries).ok


def _write_format(session, transport, entries):
    transport.feed(status_packet())
    assert session.set_write_format(entries).ok


# ─── ping / scan ──────────────────────────────────────────────────────


def test_ping_device(session, transport):
    transport.feed(status_packet(0, (1, 2, 3)))
    status = session.ping(1)
    assert status.word == 0
    assert bytes(transport.written) == build_packet(Instruction.PING, b"\x01")
    assert session.adc == AdcReadings(1, 2, 3)


def test_ping_controller(session, transport):
    transport.feed(status_packet())
    session.ping_controller()
    assert bytes(transport.written) == bytes([0xF0, 0xFF, 0x10])


def test_ping_invalid_id_sends_nothing(session, transport):
    for device_id in (254, 256, -1):
        with pytest.raises(ValidationError):
            session.ping(device_id)
    assert transport.written == b""


def test_scan(session, transport):
    """Only an all-zero status word counts as present."""
    for word in (0x0000, 0x0002, 0x0000, 0x0100):
        transport.feed(status_packet(word))
    assert session.scan(3) == [True, False, True, False]
    expected = b"".join(build_packet(Instruction.PING, bytes([i])) for i in range(4))
    assert bytes(transport.written) == expected


def test_scan_invalid_max_id(session, transport):
    for max_id in (-1, 254):
        with pytest.raises(ValidationError):
            session.scan(max_id)
    assert transport.written == b""


# ─── read ─────────────────────────────────────────────────────────────


def test_read_scenario(session, transport):
    """2-byte then 1-byte register: 64 00 1E + status 0 + ADC 5/5/5."""
    _read_format(session, transport, [(1, WIDE, 2)])
    assert session.get_read_format().payload_size == 3

    transport.feed(build_packet(
        Instruction.DATA, bytes([0x64, 0x00, 0x1E, 0x00, 0x00, 0x05, 0x05, 0x05])
    ))
    result = session.read()
    assert result.values == [100, 30]
    assert result.status.word == 0
    assert session.adc == AdcReadings(5, 5, 5)
    assert transport.written.endswith(build_packet(Instruction.READ_DATA))


def test_read_updates_cache(session, transport):
    """Every value read is cached under one shared timestamp."""
    _read_format(session, transport, [(1, WIDE, 2)])
    assert session.get_cached_value(1, WIDE) is None

    transport.feed(data_packet(bytes([0x64, 0x00, 0x1E])))
    session.read()
    wide = session.get_cached_value(1, WIDE)
    narrow = session.get_cached_value(1, NARROW)
    assert wide.value == 100
    assert narrow.value == 30
    assert wide.timestamp_ns == narrow.timestamp_ns
    assert wide.age >= 0
    assert session.get_cached_value(2, WIDE) is None


def test_read_multiple_devices(session, transport):
    _read_format(session, transport, [(1, PRESENT_POSITION, 1), (2, WIDE, 1)])
    transport.feed(data_packet(bytes([0x00, 0x02, 0x34, 0x12])))
    result = session.read()
    assert result.values == [512, 0x1234]
    assert [(i, r.name) for (i, r), _ in result.items()] == [
        (1, "present position"),
        (2, "wide"),
    ]


def test_read_across_unmapped_addresses(session, transport):
    """Registers are taken from their address offset inside the device block."""
    punch = AX12.register("punch")
    _read_format(session, transport, [(1, punch, 2)])
    # punch at 48-49, unmapped 50-53, error at 54.
    assert session.get_read_format().payload_size == 7

    transport.feed(data_packet(bytes([0x34, 0x02, 0xFF, 0xFF, 0xFF, 0xFF, 0x24])))
    result = session.read()
    assert result.values == [0x234, 0x24]
    assert session.get_cached_value(1, AX12.register("error")).value == 0x24


def test_read_natural(session, transport):
    _read_format(session, transport, [(1, PRESENT_POSITION, 1)])
    transport.feed(data_packet(bytes([0xFF, 0x01])))
    result = session.read(natural=True)
    assert result[0] == pytest.approx(149.85, abs=0.01)
    assert session.get_cached_value(1, PRESENT_POSITION).value == 511


def test_read_failed_acquisition_bytes(session, transport):
    """0xFF filler for an unreachable device decodes like any other byte."""
    _read_format(session, transport, [(9, WIDE, 1)])
    transport.feed(data_packet(b"\xff\xff", word=ControllerStatus.DEVICE_TIMEOUT))
    result = session.read()
    assert result.values == [0xFFFF]
    assert not result.status.ok
    assert session.get_cached_value(9, WIDE).value == 0xFFFF


def test_read_sign_magnitude(session, transport):
    _read_format(session, transport, [(1, MOVING_SPEED, 1)])
    transport.feed(data_packet(bytes([0x05, 0x04])))
    assert session.read().values == [-5]


def test_read_with_empty_format(session, transport):
    """The power-on format reads nothing but the status trailer."""
    transport.feed(data_packet(b"", adc=(7, 8, 9)))
    result = session.read()
    assert len(result) == 0
    assert session.adc.thermistor == 9


# ─── write ────────────────────────────────────────────────────────────


def test_write_bytes(session, transport):
    """Values go out little-endian, sign-magnitude encoded where needed."""
    _write_format(session, transport, [(1, GOAL_POSITION, 2)])
    transport.feed(status_packet())
    status = session.write([512, -5])
    assert status.ok
    assert transport.written.endswith(
        build_packet(Instruction.WRITE_DATA, bytes([0x00, 0x02, 0x05, 0x04]))
    )


def test_write_natural(session, transport):
    _write_format(session, transport, [(1, GOAL_POSITION, 1)])
    transport.feed(status_packet())
    session.write([150.0], natural=True)
    # 150 / (300 / 1023) lands just below 511.5 in binary floating point.
    assert transport.written.endswith(
        build_packet(Instruction.WRITE_DATA, bytes([0xFF, 0x01]))
    )


def test_write_raw_float_values(session, transport):
    """Whole floats pass as raw counts; fractional ones are refused."""
    _write_format(session, transport, [(1, GOAL_POSITION, 1)])
    transport.feed(status_packet())
    session.write([512.0])
    assert transport.written.endswith(
        build_packet(Instruction.WRITE_DATA, bytes([0x00, 0x02]))
    )

    sent = len(transport.written)
    with pytest.raises(ValidationError):
        session.write([511.7])
    assert len(transport.written) == sent


def test_write_is_not_clamped(session, transport):
    _write_format(session, transport, [(1, GOAL_POSITION, 1)])
    transport.feed(status_packet())
    session.write([0x1234])
    assert transport.written.endswith(
        build_packet(Instruction.WRITE_DATA, bytes([0x34, 0x12]))
    )


def test_write_wrong_count(session, transport):
    _write_format(session, transport, [(1, GOAL_POSITION, 2)])
    sent = len(transport.written)
    with pytest.raises(ValidationError):
        session.write([512])
    assert len(transport.written) == sent


# ─── recovery ─────────────────────────────────────────────────────────


def test_stall_then_recover(session, transport):
    """A stalled receive poisons the session until it is recovered."""
    with pytest.raises(CommunicationTimeout):
        session.ping(1)
    assert not session.synchronized

    transport.feed(status_packet())
    with pytest.raises(DesynchronizedError):
        session.ping(1)

    # The late reply is discarded by recover().
    assert session.recover() == len(status_packet())
    transport.feed(status_packet(0, (1, 1, 1)))
    assert session.ping(1).ok


def test_timeout_property(session):
    session.timeout = 0.25
    assert session.timeout == 0.25
    with pytest.raises(ValueError):
        session.timeout = -1


# ─── status ───────────────────────────────────────────────────────────


def test_status_fields():
    status = Status(0x0302, AdcReadings(200, 10, 50))
    assert status.errors == 0x02
    assert status.retries == 3
    assert not status.ok
    assert status.flags() == ControllerStatus.DEVICE_TIMEOUT
    assert "DEVICE_TIMEOUT" in status.describe()
    assert "3 device retries" in str(status)


def test_status_degraded():
    assert Status(0x0100).degraded
    assert not Status(0).degraded
    assert str(Status(0)) == "OK"


def test_describe_device_errors():
    assert describe_device_errors(0x24) == "OVERHEATING, OVERLOAD"
    assert describe_device_errors(0) == ""


def test_verify_status_raises():
    with pytest.raises(ProtocolStatusError) as exc:
        verify_status(Status(0x04), "write")
    assert exc.value.status.word == 0x04


def test_verify_status_warn_only(caplog):
    with caplog.at_level(logging.WARNING):
        assert not verify_status(Status(0x0104), "read", warn_only=True)
        assert verify_status(Status(0x0200), "read")
    assert "device retries" in caplog.text
    assert "INVALID_PC_COMMAND" in caplog.text


def test_adc_battery_volts():
    adc = AdcReadings(positive=255, negative=0)
    assert adc.battery_volts == pytest.approx(5.0 * 13.3 / 3.3)
    assert adc.to_dict() == {"positive": 255, "negative": 0, "thermistor": 0}


# ─── concurrency / lifecycle ──────────────────────────────────────────


def test_transaction_is_reentrant(session, transport):
    transport.feed(status_packet() + status_packet())
    with session.transaction() as s:
        s.ping(1)
        with session.lock:
            s.ping(2)


def test_lock_blocks_other_threads(session):
    """Operations from another thread wait for the lock holder."""
    done = threading.Event()

    def worker():
        session.drain()
        done.set()

    with session.transaction():
        t = threading.Thread(target=worker)
        t.start()
        assert not done.wait(0.05)
    t.join(1.0)
    assert done.is_set()


def test_context_manager_closes(transport):
    with Session(transport, settle_delay=0) as s:
        assert s.transport is transport
    assert transport.closed


def test_recover_on_open_discards_garbage():
    transport = FakeTransport()
    transport.feed(b"\x00\x13\x37")
    session = Session(transport, settle_delay=0)
    assert transport.available() == 0
    assert session.synchronized


def test_transports_satisfy_contract(transport):
    """Both the serial adapter and the test double provide the byte-stream contract."""
    assert isinstance(transport, Transport)
    assert isinstance(SerialConnection("/dev/ttyFAKE"), Transport)


def test_connect_open_failure():
    """A port that cannot be opened surfaces as ConnectionError."""
    with patch("axlink.transport.serial_connection.serial.Serial") as mock_serial:
        mock_serial.side_effect = serial.SerialException("no such port")
        with pytest.raises(ConnectionError):
            Session.connect("/dev/ttyFAKE")


def test_connect_and_close():
    port = MagicMock()
    port.in_waiting = 0
    port.is_open = True
    with patch("axlink.transport.serial_connection.serial.Serial", return_value=port) as mock_serial:
        session = Session.connect("/dev/ttyFAKE", 57600, settle_delay=0)
        assert mock_serial.call_args.args == ("/dev/ttyFAKE", 57600)
        assert session.transport.connected
        session.close()
    port.close.assert_called_once()
    assert not session.transport.connected
