"""Transport layer: the byte-stream contract and its serial implementation."""

from .base import Transport
from .serial_connection import SerialConnection
