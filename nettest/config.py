"""
nettest.config

Protocol tunables and socket policy selection shared by client and server.

A ProbeConfig is handed to each role at construction time, so several
independent servers and clients can run side by side in one process
(the test-suite relies on this).
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Optional

__all__ = [
    "DEFAULT_PORT",
    "PACKET_BYTES",
    "POLICY_BLOCKING",
    "POLICY_POLL",
    "POLICIES",
    "ProbeConfig",
]

DEFAULT_PORT = 7878
PACKET_BYTES = 1100

POLICY_BLOCKING = "blocking"
POLICY_POLL = "poll"
POLICIES = (POLICY_BLOCKING, POLICY_POLL)


@dataclass(frozen=True)
class ProbeConfig:
    """
    Parameters
    ----------
    port : int
        Service port. The server binds it and the client targets it.
        0 asks the OS for an ephemeral port (server side only).
    packet_bytes : int
        Size of every filler packet and of the receive scratch buffers.
    policy : str
        "blocking" or "poll" (non-blocking with readiness wait and retry).
    poll_interval : float
        Longest single readiness wait in poll mode, in seconds.
    recv_timeout : float, optional
        Client gives up once the last received packet is older than this.
        None waits forever.
    send_timeout : float, optional
        Give up on one send stuck behind a full buffer after this long.
        None retries forever.
    max_packet_count : int
        Requests above this are clamped by the server.
    idle_interval : float
        How often an idle server dispatcher wakes up to check for stop().
    """

    port: int = DEFAULT_PORT
    packet_bytes: int = PACKET_BYTES
    policy: str = POLICY_BLOCKING
    poll_interval: float = 0.001
    recv_timeout: Optional[float] = 5.0
    send_timeout: Optional[float] = None
    max_packet_count: int = 1_000_000
    idle_interval: float = 0.2

    def __post_init__(self) -> None:
        if not 0 <= int(self.port) <= 0xFFFF:
            raise ValueError(f"port out of range: {self.port}")
        if int(self.packet_bytes) < 4:
            raise ValueError("packet_bytes must hold at least a 4-byte request")
        if self.policy not in POLICIES:
            raise ValueError(f"unknown policy {self.policy!r}; expected one of {', '.join(POLICIES)}")
        if self.poll_interval <= 0 or self.idle_interval <= 0:
            raise ValueError("poll_interval and idle_interval must be positive")
        if self.recv_timeout is not None and self.recv_timeout <= 0:
            raise ValueError("recv_timeout must be positive or None")
        if self.send_timeout is not None and self.send_timeout <= 0:
            raise ValueError("send_timeout must be positive or None")
        if int(self.max_packet_count) < 0:
            raise ValueError("max_packet_count must be >= 0")

    def replace(self, **changes) -> "ProbeConfig":
        return dataclasses.replace(self, **changes)
