"""Host-side driver for a serial bus controller fronting Dynamixel AX devices."""

from .errors import (
    AxLinkError,
    ChecksumMismatch,
    CommunicationError,
    CommunicationTimeout,
    DesynchronizedError,
    FlashTimeout,
    FlashVerificationFailure,
    FormatUnavailable,
    ProtocolStatusError,
    UnexpectedInstruction,
    ValidationError,
)
from .models import (
    AX12,
    AXS1,
    AdcReadings,
    Check,
    ControllerStatus,
    DeviceError,
    Direction,
    Format,
    FormatEntry,
    Register,
    RegisterTable,
    Status,
    verify_status,
)
from .session import Session

__version__ = "0.1.0"
