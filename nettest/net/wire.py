"""
nettest.net.wire

Request encoding and filler packets.

The whole protocol is one datagram from client to server carrying the
number of packets wanted, followed by that many zeroed filler datagrams
from server to client.

Request layout:
  packet_count[u32, little-endian]
  (anything after the first 4 bytes is ignored)
"""

from __future__ import annotations

import struct
from typing import NamedTuple, Tuple

from ..config import PACKET_BYTES
from ..errors import TruncatedRequestError

REQUEST_STRUCT = struct.Struct("<I")
REQUEST_BYTES = REQUEST_STRUCT.size
MAX_PACKET_COUNT = 0xFFFFFFFF

__all__ = [
    "REQUEST_BYTES",
    "MAX_PACKET_COUNT",
    "PendingRequest",
    "encode_request",
    "decode_request",
    "filler_packet",
]


class PendingRequest(NamedTuple):
    """A decoded request waiting in the server's handoff queue."""

    packet_count: int
    source: Tuple


def encode_request(packet_count: int) -> bytes:
    """
    Encode a request for packet_count filler packets.
    """
    count = int(packet_count)
    if not 0 <= count <= MAX_PACKET_COUNT:
        raise ValueError(f"packet_count must fit in a u32, got {count}")
    return REQUEST_STRUCT.pack(count)


def decode_request(data) -> int:
    """
    Read the packet count from the first 4 bytes of a datagram.

    Accepts bytes, bytearray or memoryview. Raises TruncatedRequestError
    if fewer than 4 bytes are available.
    """
    view = memoryview(data)
    if view.nbytes < REQUEST_BYTES:
        raise TruncatedRequestError(view.nbytes, REQUEST_BYTES)
    (count,) = REQUEST_STRUCT.unpack_from(view, 0)
    return int(count)


def filler_packet(packet_bytes: int = PACKET_BYTES) -> bytes:
    """
    Return one zeroed filler datagram of packet_bytes bytes.
    """
    if packet_bytes <= 0:
        raise ValueError("packet_bytes must be positive")
    return bytes(int(packet_bytes))
