"""Register table for the AX-12 actuator.

Natural units: angles in degrees, speeds in rpm, voltages in volts,
temperatures in degrees C, torque/load/compliance as fractions of full
scale.
"""

from __future__ import annotations

from .register import (
    BAUD_RATE,
    COMPLIANCE_SLOPE,
    MAX_DEVICE_ID,
    RegisterTable,
    ro,
    rw,
)

DEVICE_TYPE = "AX12"

NOMINAL_BATTERY_VOLTAGE = 9.6

DEG_PER_COUNT = 300.0 / 1023.0
RPM_PER_COUNT = 114.0 / 1023.0
FRACTION_PER_COUNT = 1.0 / 1023.0

AX12 = RegisterTable(DEVICE_TYPE, [
    ro("model number", 0, width=2),
    ro("firmware version", 2),
    rw("id", 3, 0, MAX_DEVICE_ID),
    rw("baud rate", 4, 0, 254, units="kbps", prefer_natural=True,
       conversion=BAUD_RATE),
    rw("return delay time", 5, 0, 254, scale=2.0, units="us",
       prefer_natural=True),
    rw("cw angle limit", 6, 0, 1023, width=2, scale=DEG_PER_COUNT, units="deg"),
    rw("ccw angle limit", 8, 0, 1023, width=2, scale=DEG_PER_COUNT, units="deg"),
    rw("highest limit temperature", 11, 0, 150, units="C", prefer_natural=True),
    rw("lowest limit voltage", 12, 50, 250, scale=0.1, units="V",
       prefer_natural=True),
    rw("highest limit voltage", 13, 50, 250, scale=0.1, units="V",
       prefer_natural=True),
    rw("max torque", 14, 0, 1023, width=2, scale=FRACTION_PER_COUNT),
    rw("status return level", 16, 0, 2),
    rw("alarm led", 17, 0, 127),
    rw("alarm shutdown", 18, 0, 127),
    ro("down calibration", 20, width=2),
    ro("up calibration", 22, width=2),
    rw("torque enable", 24, 0, 1),
    rw("led", 25, 0, 1),
    rw("cw compliance margin", 26, 0, 254, scale=1.0 / 254.0),
    rw("ccw compliance margin", 27, 0, 254, scale=1.0 / 254.0),
    rw("cw compliance slope", 28, 1, 254, conversion=COMPLIANCE_SLOPE),
    rw("ccw compliance slope", 29, 1, 254, conversion=COMPLIANCE_SLOPE),
    rw("goal position", 30, 0, 1023, width=2, scale=DEG_PER_COUNT, units="deg"),
    # Bit 10 selects direction in wheel mode.
    rw("moving speed", 32, -1023, 1023, width=2, sign_magnitude=True,
       scale=RPM_PER_COUNT, units="rpm"),
    rw("torque limit", 34, 0, 1023, width=2, scale=FRACTION_PER_COUNT),
    ro("present position", 36, width=2, scale=DEG_PER_COUNT, units="deg"),
    ro("present speed", 38, width=2, sign_magnitude=True,
       scale=RPM_PER_COUNT, units="rpm"),
    ro("present load", 40, width=2, sign_magnitude=True,
       scale=FRACTION_PER_COUNT),
    ro("present voltage", 42, scale=0.1, units="V", prefer_natural=True),
    ro("present temperature", 43, units="C", prefer_natural=True),
    rw("registered instruction", 44, 0, 1),
    ro("moving", 46),
    rw("lock", 47, 0, 1),
    rw("punch", 48, 0, 1023, width=2, scale=FRACTION_PER_COUNT),
    # Virtual register: the controller reports the last device error here.
    ro("error", 54),
])

MODEL_NUMBER = AX12.register("model number")
ID = AX12.register("id")
BAUD_RATE_REG = AX12.register("baud rate")
CW_COMPLIANCE_SLOPE = AX12.register("cw compliance slope")
CCW_COMPLIANCE_SLOPE = AX12.register("ccw compliance slope")
TORQUE_ENABLE = AX12.register("torque enable")
GOAL_POSITION = AX12.register("goal position")
MOVING_SPEED = AX12.register("moving speed")
PRESENT_POSITION = AX12.register("present position")
PRESENT_SPEED = AX12.register("present speed")
PRESENT_LOAD = AX12.register("present load")
PRESENT_VOLTAGE = AX12.register("present voltage")
PRESENT_TEMPERATURE = AX12.register("present temperature")
ERROR = AX12.register("error")


def interp(x: float, y_low: float, x_low: float, y_high: float, x_high: float) -> float:
    """Linearly interpolate between ``(x_low, y_low)`` and ``(x_high, y_high)``."""
    return y_low + (x - x_low) * (y_high - y_low) / (x_high - x_low)


def calibrated_stiffness(compliance_slope: int, voltage: float | None = None) -> float:
    """Approximate servo stiffness (N·m/rad) for a compliance slope setting.

    Stiffness at slope 1 scales with supply voltage between 4.3 at 10 V and
    8.2 at 12.2 V; stiffness at slope 254 is roughly constant at 0.3.
    """
    if voltage is None:
        voltage = NOMINAL_BATTERY_VOLTAGE
    stiffness_at_1 = interp(voltage, 4.3, 10.0, 8.2, 12.2)
    return interp(compliance_slope, stiffness_at_1, 1.0, 0.3, 254.0)
