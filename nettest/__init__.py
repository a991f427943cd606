"""
nettest

UDP throughput probe. A client asks for N packets with one datagram and a
server answers with N fixed-size filler datagrams as fast as it can.

Layers:
- request codec (nettest.net.wire)
- socket backpressure policies (nettest.net.policy)
- server and client roles (nettest.net.server, nettest.net.client)
- run statistics (nettest.report)
"""

from __future__ import annotations

__all__ = [
    "__version__",
    "DEFAULT_PORT",
    "PACKET_BYTES",
    "ProbeConfig",
    "ProbeServer",
    "ProbeClient",
    "ProbeReport",
    "encode_request",
    "decode_request",
    "NettestError",
    "DecodeError",
    "TruncatedRequestError",
    "SetupError",
    "ProbeTimeout",
]

__version__ = "0.1.0"


from .config import DEFAULT_PORT, PACKET_BYTES, ProbeConfig  # noqa: E402
from .errors import (  # noqa: E402
    DecodeError,
    NettestError,
    ProbeTimeout,
    SetupError,
    TruncatedRequestError,
)
from .net import ProbeClient, ProbeServer, decode_request, encode_request  # noqa: E402
from .report import ProbeReport  # noqa: E402
