"""
nettest.net.policy

How socket calls behave when they cannot complete right away.

Two disciplines sit behind one interface:

- BlockingSocketIO leaves the socket in blocking mode and lets the kernel
  park the calling thread.
- PollingSocketIO puts the socket in non-blocking mode; a call that would
  block waits for readiness (bounded by poll_interval) and is retried.

Would-block is absorbed inside the policy. Any other OSError reaches the
caller unchanged. Deadlines surface as ProbeTimeout.
"""

from __future__ import annotations

import errno
import selectors
import socket
import time
from typing import Dict, Optional, Tuple

from ..config import POLICY_BLOCKING, POLICY_POLL, ProbeConfig
from ..errors import ProbeTimeout

__all__ = [
    "SocketIO",
    "BlockingSocketIO",
    "PollingSocketIO",
    "make_socket_io",
]

_TRANSIENT = (BlockingIOError, InterruptedError)


def _wait_ready(sock: socket.socket, *, writable: bool, timeout: Optional[float]) -> bool:
    """
    Wait until sock is readable (or writable). Returns False on timeout.
    """
    if sock.fileno() < 0:
        raise OSError(errno.EBADF, "socket is closed")
    events = selectors.EVENT_WRITE if writable else selectors.EVENT_READ
    # descriptors at or above FD_SETSIZE must work here
    with selectors.DefaultSelector() as sel:
        sel.register(sock, events)
        return bool(sel.select(timeout))


class SocketIO:
    """
    Send/receive on one UDP socket under a backpressure discipline.

    Subclasses implement send() and receive(). The receive buffer is owned
    by the caller and reused; only buf[:nbytes] is meaningful afterwards.
    """

    name = "base"

    def __init__(self, sock: socket.socket) -> None:
        self.sock = sock
        self.counters: Dict[str, int] = {
            "sent": 0,
            "received": 0,
            "would_block": 0,
            "errors": 0,
        }
        self.prepare()

    def prepare(self) -> None:
        raise NotImplementedError

    def send(self, data: bytes, addr: Tuple) -> None:
        raise NotImplementedError

    def receive(self, buf: bytearray, timeout: Optional[float] = None) -> Tuple[int, Tuple]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} policy={self.name} fd={self.sock.fileno()}>"


class BlockingSocketIO(SocketIO):
    """
    Kernel-blocking discipline.

    settimeout() is never called: a timeout would flip the descriptor to
    non-blocking, and the server shares that descriptor between two handles.
    Receive deadlines use a readiness wait instead.
    """

    name = POLICY_BLOCKING

    def prepare(self) -> None:
        self.sock.setblocking(True)

    def send(self, data: bytes, addr: Tuple) -> None:
        try:
            self.sock.sendto(data, addr)
        except OSError:
            self.counters["errors"] += 1
            raise
        self.counters["sent"] += 1

    def receive(self, buf: bytearray, timeout: Optional[float] = None) -> Tuple[int, Tuple]:
        if timeout is not None and not _wait_ready(self.sock, writable=False, timeout=timeout):
            raise ProbeTimeout(f"no datagram within {timeout:.3f}s")
        try:
            nbytes, addr = self.sock.recvfrom_into(buf)
        except OSError:
            self.counters["errors"] += 1
            raise
        self.counters["received"] += 1
        return nbytes, addr


class PollingSocketIO(SocketIO):
    """
    Non-blocking discipline with readiness wait and retry.

    Parameters
    ----------
    poll_interval : float
        Longest single wait between two attempts.
    send_timeout : float, optional
        Give up on a send after this many seconds of would-block.
        None retries without limit.
    """

    name = POLICY_POLL

    def __init__(
        self,
        sock: socket.socket,
        *,
        poll_interval: float = 0.001,
        send_timeout: Optional[float] = None,
    ) -> None:
        self.poll_interval = float(poll_interval)
        self.send_timeout = float(send_timeout) if send_timeout is not None else None
        super().__init__(sock)

    def prepare(self) -> None:
        self.sock.setblocking(False)

    def _backoff(self, deadline: Optional[float], *, writable: bool, what: str) -> None:
        self.counters["would_block"] += 1
        wait = self.poll_interval
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ProbeTimeout(f"{what} still blocked at deadline")
            wait = min(wait, remaining)
        _wait_ready(self.sock, writable=writable, timeout=wait)

    def send(self, data: bytes, addr: Tuple) -> None:
        deadline = None if self.send_timeout is None else time.monotonic() + self.send_timeout
        while True:
            try:
                self.sock.sendto(data, addr)
            except _TRANSIENT:
                self._backoff(deadline, writable=True, what="send")
                continue
            except OSError:
                self.counters["errors"] += 1
                raise
            self.counters["sent"] += 1
            return

    def receive(self, buf: bytearray, timeout: Optional[float] = None) -> Tuple[int, Tuple]:
        deadline = None if timeout is None else time.monotonic() + float(timeout)
        while True:
            try:
                nbytes, addr = self.sock.recvfrom_into(buf)
            except _TRANSIENT:
                self._backoff(deadline, writable=False, what="receive")
                continue
            except OSError:
                self.counters["errors"] += 1
                raise
            self.counters["received"] += 1
            return nbytes, addr


def make_socket_io(sock: socket.socket, config: ProbeConfig) -> SocketIO:
    """
    Wrap sock in the SocketIO selected by config.policy.
    """
    if config.policy == POLICY_POLL:
        return PollingSocketIO(sock, poll_interval=config.poll_interval, send_timeout=config.send_timeout)
    return BlockingSocketIO(sock)
