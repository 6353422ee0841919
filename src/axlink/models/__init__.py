"""Data models for registers, formats and controller status."""

from .register import (
    Check,
    Conversion,
    Register,
    RegisterTable,
    ro,
    rw,
)
from .format import Direction, Format, FormatEntry
from .status import AdcReadings, ControllerStatus, DeviceError, Status, verify_status
from .ax12 import AX12
from .axs1 import AXS1
