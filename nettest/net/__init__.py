"""
nettest.net

Wire codec, socket policies and the two probe roles.

The codec and the policies know nothing about client or server; the roles
compose them.
"""

from __future__ import annotations

from .wire import PendingRequest, decode_request, encode_request, filler_packet
from .policy import BlockingSocketIO, PollingSocketIO, SocketIO, make_socket_io
from .endpoint import resolve_udp
from .server import ProbeServer
from .client import ProbeClient

__all__ = [
    "PendingRequest",
    "encode_request",
    "decode_request",
    "filler_packet",
    "SocketIO",
    "BlockingSocketIO",
    "PollingSocketIO",
    "make_socket_io",
    "resolve_udp",
    "ProbeServer",
    "ProbeClient",
]
