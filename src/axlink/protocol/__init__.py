"""Protocol layer: packet framing, checksum, instruction codes and payload parsing."""

from .framing import Packet, PacketCodec, build_packet, parse_packet
from .instructions import Instruction
