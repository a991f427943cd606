"""
nettest.net.server

Probe server: answer each request with a flood of filler packets.

Two threads share one bound UDP socket through duplicated handles:

- the receive dispatcher decodes requests and pushes them onto a FIFO
- the send loop pops them one at a time and floods the requester

Flooding a large request therefore never stops new requests from being
accepted; they wait in the queue and are served in decode order.
"""

from __future__ import annotations

import collections
import logging
import queue
import socket
import threading
from typing import Callable, Deque, Dict, Optional, Tuple

from ..config import ProbeConfig
from ..errors import DecodeError, ProbeTimeout
from .endpoint import bind_udp, format_addr
from .policy import SocketIO, make_socket_io
from .wire import PendingRequest, decode_request, filler_packet

__all__ = ["ProbeServer"]

logger = logging.getLogger(__name__)

SocketIOFactory = Callable[[socket.socket, ProbeConfig], SocketIO]

_SERVED_HISTORY = 256


class ProbeServer:
    """
    Parameters
    ----------
    config : ProbeConfig
        Port, packet size, I/O policy and request cap.
    host : str
        Address to bind. "" binds every interface.
    socket_io_factory : callable, optional
        Builds the SocketIO for each socket handle. Defaults to the policy
        named in config.

    Binding happens in the constructor and raises SetupError on failure.
    """

    def __init__(
        self,
        config: Optional[ProbeConfig] = None,
        host: str = "localhost",
        *,
        socket_io_factory: Optional[SocketIOFactory] = None,
    ) -> None:
        self.config = config or ProbeConfig()
        self.sock = bind_udp(host, self.config.port)
        self._send_sock = self.sock.dup()
        factory = socket_io_factory or make_socket_io
        self.rx = factory(self.sock, self.config)
        self.tx = factory(self._send_sock, self.config)

        self._queue: "queue.Queue[PendingRequest]" = queue.Queue()
        self._stopping = threading.Event()
        self._threads: list[threading.Thread] = []
        self._filler = filler_packet(self.config.packet_bytes)
        self.served: Deque[PendingRequest] = collections.deque(maxlen=_SERVED_HISTORY)
        self.counters: Dict[str, int] = {
            "requests_received": 0,
            "requests_malformed": 0,
            "requests_clamped": 0,
            "requests_served": 0,
            "requests_aborted": 0,
            "packets_sent": 0,
            "recv_errors": 0,
            "send_errors": 0,
        }

    @property
    def address(self) -> Tuple:
        return self.sock.getsockname()

    def pending(self) -> int:
        return self._queue.qsize()

    # ---------------- lifecycle ----------------

    def start(self) -> "ProbeServer":
        """
        Run the dispatcher and the send loop on background threads.
        """
        self._spawn(self._dispatch_loop, "nettest-dispatch")
        self._spawn(self._send_loop, "nettest-send")
        logger.info("server ready on %s (%s policy)", format_addr(self.address), self.tx.name)
        return self

    def serve_forever(self) -> None:
        """
        Run the dispatcher in the background and the send loop here.
        Returns after stop() is called from another thread.
        """
        self._spawn(self._dispatch_loop, "nettest-dispatch")
        logger.info("server ready on %s (%s policy)", format_addr(self.address), self.tx.name)
        self._send_loop()

    def stop(self, timeout: float = 2.0) -> None:
        self._stopping.set()
        for t in self._threads:
            if t is not threading.current_thread():
                t.join(timeout)
        self._threads = [t for t in self._threads if t.is_alive()]
        self.sock.close()
        self._send_sock.close()

    def _spawn(self, target, name: str) -> None:
        t = threading.Thread(target=target, name=name, daemon=True)
        t.start()
        self._threads.append(t)

    def __enter__(self) -> "ProbeServer":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.stop()

    # ---------------- receive dispatcher ----------------

    def _dispatch_loop(self) -> None:
        buf = bytearray(self.config.packet_bytes)
        while not self._stopping.is_set():
            try:
                nbytes, src = self.rx.receive(buf, timeout=self.config.idle_interval)
            except ProbeTimeout:
                continue
            except OSError as exc:
                if self._stopping.is_set():
                    break
                self.counters["recv_errors"] += 1
                logger.warning("recv_from: encountered IO error: %s", exc)
                continue
            self._handle_datagram(memoryview(buf)[:nbytes], src)

    def _handle_datagram(self, data: memoryview, src: Tuple) -> None:
        try:
            count = decode_request(data)
        except DecodeError as exc:
            self.counters["requests_malformed"] += 1
            logger.info("dropping datagram from %s: %s", format_addr(src), exc)
            return
        cap = int(self.config.max_packet_count)
        if count > cap:
            self.counters["requests_clamped"] += 1
            logger.warning("request for %d packets from %s clamped to %d", count, format_addr(src), cap)
            count = cap
        self._queue.put(PendingRequest(count, src))
        self.counters["requests_received"] += 1

    # ---------------- send loop ----------------

    def _send_loop(self) -> None:
        while not self._stopping.is_set():
            try:
                req = self._queue.get(timeout=self.config.idle_interval)
            except queue.Empty:
                continue
            self._serve(req)

    def _serve(self, req: PendingRequest) -> None:
        logger.info("Received request for %d packets from %s", req.packet_count, format_addr(req.source))
        sent = 0
        try:
            for _ in range(req.packet_count):
                if self._stopping.is_set():
                    break
                self.tx.send(self._filler, req.source)
                sent += 1
        except OSError as exc:  # ProbeTimeout included
            self.counters["send_errors"] += 1
            self.counters["requests_aborted"] += 1
            logger.warning(
                "send_to %s failed after %d/%d packets: %s",
                format_addr(req.source),
                sent,
                req.packet_count,
                exc,
            )
            return
        finally:
            self.counters["packets_sent"] += sent
        if sent < req.packet_count:
            self.counters["requests_aborted"] += 1
            return
        self.counters["requests_served"] += 1
        self.served.append(req)
