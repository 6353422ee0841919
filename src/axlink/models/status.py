"""Controller status word and ADC snapshot."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntFlag

from ..errors import ProtocolStatusError

logger = logging.getLogger(__name__)


class ControllerStatus(IntFlag):
    """Error bits in the low byte of the status word."""

    PC_TIMEOUT = 1 << 0
    DEVICE_TIMEOUT = 1 << 1
    INVALID_PC_COMMAND = 1 << 2
    INVALID_DEVICE_RESPONSE = 1 << 3
    PC_RX_OVERFLOW = 1 << 4
    DEVICE_RX_OVERFLOW = 1 << 5
    PC_CHECKSUM_ERROR = 1 << 6
    DEVICE_CHECKSUM_ERROR = 1 << 7


class DeviceError(IntFlag):
    """Error bits reported by a bus device (its virtual error register)."""

    INPUT_VOLTAGE = 1 << 0
    ANGLE_LIMIT = 1 << 1
    OVERHEATING = 1 << 2
    RANGE = 1 << 3
    CHECKSUM = 1 << 4
    OVERLOAD = 1 << 5
    INSTRUCTION = 1 << 6


def _flag_names(flag_type, bits: int) -> str:
    return ", ".join(f.name for f in flag_type if bits & f)


def describe_device_errors(bits: int) -> str:
    """Render a device error bitfield, e.g. ``"OVERHEATING, OVERLOAD"``."""
    return _flag_names(DeviceError, bits)


# 3.3k/10k divider in front of an 8-bit, 5 V referenced ADC.
ADC_FULL_SCALE_VOLTS = 5.0
ADC_DIVIDER_RATIO = (10.0 + 3.3) / 3.3


def adc_to_volts(raw: int) -> float:
    """Convert a raw ADC reading to volts at the input of the divider."""
    return raw / 255.0 * ADC_FULL_SCALE_VOLTS * ADC_DIVIDER_RATIO


@dataclass(frozen=True)
class AdcReadings:
    """Raw 8-bit ADC channels as last sampled by the controller."""

    positive: int = 0
    negative: int = 0
    thermistor: int = 0

    @property
    def battery_volts(self) -> float:
        return adc_to_volts(self.positive) - adc_to_volts(self.negative)

    def to_dict(self) -> dict:
        return {
            "positive": self.positive,
            "negative": self.negative,
            "thermistor": self.thermistor,
        }


@dataclass(frozen=True)
class Status:
    """A status word: error bitfield (low byte) and bus retries (high byte)."""

    word: int
    adc: AdcReadings = field(default_factory=AdcReadings)

    @property
    def errors(self) -> int:
        return self.word & 0xFF

    @property
    def retries(self) -> int:
        return (self.word >> 8) & 0xFF

    @property
    def ok(self) -> bool:
        return self.errors == 0

    @property
    def degraded(self) -> bool:
        """Succeeded, but only after the controller retried on the bus."""
        return self.ok and self.retries > 0

    def flags(self) -> ControllerStatus:
        return ControllerStatus(self.errors)

    def describe(self) -> str:
        text = _flag_names(ControllerStatus, self.errors) or "OK"
        if self.retries:
            text += f" ({self.retries} device retries)"
        return text

    def __str__(self) -> str:
        return self.describe()


def verify_status(status: Status, operation: str, warn_only: bool = False) -> bool:
    """Apply the usual policy to a returned status.

    Retries are logged as a warning. A non-zero error bitfield raises
    :class:`ProtocolStatusError`, or is only logged when *warn_only* is set.

    Returns:
        True if the status reported no errors.
    """
    if status.retries:
        logger.warning("%s required %d device retries", operation, status.retries)

    if status.ok:
        return True

    msg = f"{operation} failed with status {status.describe()}"
    if not warn_only:
        raise ProtocolStatusError(msg, status)
    logger.warning(msg)
    return False
