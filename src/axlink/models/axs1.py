"""Register table for the AX-S1 sensor module."""

from __future__ import annotations

from .register import BAUD_RATE, MAX_DEVICE_ID, RegisterTable, ro, rw

DEVICE_TYPE = "AXS1"

AXS1 = RegisterTable(DEVICE_TYPE, [
    ro("model number", 0, width=2),
    ro("firmware version", 2),
    rw("id", 3, 0, MAX_DEVICE_ID),
    rw("baud rate", 4, 0, 254, units="kbps", prefer_natural=True,
       conversion=BAUD_RATE),
    rw("return delay time", 5, 0, 254, scale=2.0, units="us",
       prefer_natural=True),
    rw("highest limit temperature", 11, 0, 150, units="C", prefer_natural=True),
    rw("lowest limit voltage", 12, 50, 250, scale=0.1, units="V",
       prefer_natural=True),
    rw("highest limit voltage", 13, 50, 250, scale=0.1, units="V",
       prefer_natural=True),
    rw("status return level", 16, 0, 2),
    rw("obstacle detected compare value", 20, 0, 255),
    rw("light detected compare value", 21, 0, 255),
    ro("left ir sensor data", 26),
    ro("center ir sensor data", 27),
    ro("right ir sensor data", 28),
    ro("left luminosity", 29),
    ro("center luminosity", 30),
    ro("right luminosity", 31),
    ro("obstacle detection flag", 32),
    ro("luminosity detection flag", 33),
    rw("sound data", 35, 0, 255),
    rw("sound data max hold", 36, 0, 255),
    rw("sound detected count", 37, 0, 255),
    rw("sound detected time", 38, 0, 65535, width=2,
       scale=4.096 / 65536.0, units="ms", prefer_natural=True),
    rw("buzzer index", 40, 0, 51),
    rw("buzzer time", 41, 0, 255, scale=0.1, units="s", prefer_natural=True),
    ro("present voltage", 42, scale=0.1, units="V", prefer_natural=True),
    ro("present temperature", 43, units="C", prefer_natural=True),
    rw("registered instruction", 44, 0, 1),
    ro("ir remocon arrived", 46),
    rw("lock", 47, 0, 1),
    ro("ir remocon rx data", 48, width=2),
    rw("ir remocon tx data", 50, 0, 65535, width=2),
    rw("obstacle detected compare", 52, 0, 255),
    rw("light detected compare", 53, 0, 255),
    ro("error", 54),
])

LEFT_IR_SENSOR_DATA = AXS1.register("left ir sensor data")
CENTER_LUMINOSITY = AXS1.register("center luminosity")
SOUND_DATA = AXS1.register("sound data")
BUZZER_INDEX = AXS1.register("buzzer index")
BUZZER_TIME = AXS1.register("buzzer time")
