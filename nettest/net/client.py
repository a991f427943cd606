"""
nettest.net.client

Probe client: send one request, then count the filler packets that come back.

States: Binding -> Requesting -> Receiving(remaining) -> Done.
The receive phase ends early with a "timeout" outcome once the last packet
is older than config.recv_timeout, or with "error" on a socket failure.
"""

from __future__ import annotations

import logging
import socket
import time
from typing import Callable, Optional, Tuple

from ..config import ProbeConfig
from ..errors import ProbeTimeout
from ..report import OUTCOME_ERROR, OUTCOME_TIMEOUT, ProbeReport
from .endpoint import bind_ephemeral_for, format_addr, resolve_udp
from .policy import SocketIO, make_socket_io
from .wire import encode_request

__all__ = ["ProbeClient", "PacketCallback"]

logger = logging.getLogger(__name__)

# (index, nbytes, first payload byte or None for an empty datagram)
PacketCallback = Callable[[int, int, Optional[int]], None]

SocketIOFactory = Callable[[socket.socket, ProbeConfig], SocketIO]


class ProbeClient:
    """
    One probe client bound to an ephemeral local port.

    Usage
    -----
    with ProbeClient(ProbeConfig(), "example.org") as client:
        report = client.run(100)
        print(report.format_summary())
    """

    def __init__(
        self,
        config: Optional[ProbeConfig] = None,
        host: str = "localhost",
        *,
        port: Optional[int] = None,
        socket_io_factory: Optional[SocketIOFactory] = None,
    ) -> None:
        self.config = config or ProbeConfig()
        target_port = self.config.port if port is None else int(port)
        family, sockaddr = resolve_udp(host, target_port)[0]
        self.server_addr: Tuple = sockaddr
        self.sock = bind_ephemeral_for(family)
        factory = socket_io_factory or make_socket_io
        self.io = factory(self.sock, self.config)
        self._buf = bytearray(self.config.packet_bytes)
        logger.info("client bound on %s, server %s", format_addr(self.sock.getsockname()), format_addr(sockaddr))

    @property
    def local_addr(self) -> Tuple:
        return self.sock.getsockname()

    def request(self, packet_count: int) -> None:
        """
        Send the request datagram once. No acknowledgement is expected.
        """
        self.io.send(encode_request(packet_count), self.server_addr)
        logger.debug("requested %d packets from %s", packet_count, format_addr(self.server_addr))

    def receive_replies(self, packet_count: int, on_packet: Optional[PacketCallback] = None) -> ProbeReport:
        """
        Receive exactly packet_count datagrams, or stop early on timeout/error.
        """
        report = ProbeReport(requested=int(packet_count))
        return self._drain(report, on_packet)

    def run(self, packet_count: int, on_packet: Optional[PacketCallback] = None) -> ProbeReport:
        report = ProbeReport(requested=int(packet_count))
        try:
            self.request(packet_count)
        except OSError as exc:
            report.outcome = OUTCOME_TIMEOUT if isinstance(exc, ProbeTimeout) else OUTCOME_ERROR
            report.error = f"request not sent: {exc}"
            logger.error("send_to %s failed: %s", format_addr(self.server_addr), exc)
            return report
        return self._drain(report, on_packet)

    def _drain(self, report: ProbeReport, on_packet: Optional[PacketCallback]) -> ProbeReport:
        timeout = self.config.recv_timeout
        for index in range(report.requested):
            try:
                nbytes, _src = self.io.receive(self._buf, timeout=timeout)
            except ProbeTimeout:
                report.outcome = OUTCOME_TIMEOUT
                report.error = f"no packet for {timeout:.3f}s after {report.received}/{report.requested}"
                logger.warning("receive timed out after %d/%d packets", report.received, report.requested)
                break
            except OSError as exc:
                report.outcome = OUTCOME_ERROR
                report.error = str(exc)
                logger.error("recv_from: encountered IO error: %s", exc)
                break
            report.record(nbytes, time.monotonic())
            if on_packet is not None:
                on_packet(index, nbytes, self._buf[0] if nbytes else None)
        return report

    def close(self) -> None:
        self.sock.close()

    def __enter__(self) -> "ProbeClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
