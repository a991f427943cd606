from __future__ import annotations

import errno
import os
import socket
import threading
import time

import pytest

from nettest.config import ProbeConfig
from nettest.errors import ProbeTimeout
from nettest.net.policy import BlockingSocketIO, PollingSocketIO, make_socket_io

from _util import FlakySocket, udp_sock


def _pair():
    a = udp_sock()
    b = udp_sock()
    return a, b


def test_make_socket_io_follows_config() -> None:
    a = udp_sock()
    try:
        assert isinstance(make_socket_io(a, ProbeConfig()), BlockingSocketIO)
        polled = make_socket_io(a, ProbeConfig(policy="poll", poll_interval=0.01, send_timeout=1.0))
        assert isinstance(polled, PollingSocketIO)
        assert polled.poll_interval == 0.01
        assert polled.send_timeout == 1.0
        assert a.gettimeout() == 0.0
    finally:
        a.close()


def test_polling_send_retries_until_would_block_clears() -> None:
    a, b = _pair()
    try:
        flaky = FlakySocket(a, send_errors=[BlockingIOError(errno.EAGAIN, "full")] * 25)
        io = PollingSocketIO(flaky, poll_interval=0.001)
        io.send(b"x" * 16, b.getsockname())

        assert flaky.send_calls == 26
        assert io.counters["would_block"] == 25
        assert io.counters["sent"] == 1
        assert io.counters["errors"] == 0
        data, _ = b.recvfrom(64)
        assert data == b"x" * 16
    finally:
        a.close()
        b.close()


def test_polling_send_gives_up_at_send_timeout() -> None:
    a, b = _pair()
    try:
        flaky = FlakySocket(a, send_errors=[BlockingIOError(errno.EAGAIN, "full")] * 100000)
        io = PollingSocketIO(flaky, poll_interval=0.001, send_timeout=0.05)
        t0 = time.monotonic()
        with pytest.raises(ProbeTimeout):
            io.send(b"x", b.getsockname())
        assert time.monotonic() - t0 < 2.0
        assert io.counters["sent"] == 0
    finally:
        a.close()
        b.close()


@pytest.mark.parametrize("io_cls", [BlockingSocketIO, PollingSocketIO])
def test_genuine_send_error_is_surfaced(io_cls) -> None:
    a, b = _pair()
    try:
        flaky = FlakySocket(a, send_errors=[PermissionError(errno.EPERM, "denied")])
        io = io_cls(flaky)
        with pytest.raises(PermissionError):
            io.send(b"x", b.getsockname())
        assert flaky.send_calls == 1
        assert io.counters["errors"] == 1
    finally:
        a.close()
        b.close()


@pytest.mark.parametrize("io_cls", [BlockingSocketIO, PollingSocketIO])
def test_receive_timeout(io_cls) -> None:
    a = udp_sock()
    try:
        io = io_cls(a)
        buf = bytearray(64)
        t0 = time.monotonic()
        with pytest.raises(ProbeTimeout):
            io.receive(buf, timeout=0.05)
        assert time.monotonic() - t0 >= 0.04
    finally:
        a.close()


@pytest.mark.parametrize("io_cls", [BlockingSocketIO, PollingSocketIO])
def test_receive_waits_for_late_datagram(io_cls) -> None:
    a, b = _pair()
    try:
        io = io_cls(a)
        timer = threading.Timer(0.05, lambda: b.sendto(b"late", a.getsockname()))
        timer.start()
        buf = bytearray(64)
        nbytes, src = io.receive(buf, timeout=2.0)
        timer.join()
        assert bytes(buf[:nbytes]) == b"late"
        assert src == b.getsockname()
        assert io.counters["received"] == 1
    finally:
        a.close()
        b.close()


def test_polling_receive_retries_transient_then_reports_error() -> None:
    a, b = _pair()
    try:
        flaky = FlakySocket(
            a,
            recv_errors=[InterruptedError(), BlockingIOError(), ConnectionResetError(errno.ECONNRESET, "reset")],
        )
        io = PollingSocketIO(flaky, poll_interval=0.001)
        with pytest.raises(ConnectionResetError):
            io.receive(bytearray(16), timeout=1.0)
        assert flaky.recv_calls == 3
        assert io.counters["would_block"] == 2
    finally:
        a.close()
        b.close()


def test_repr_and_name_follow_policy() -> None:
    a = udp_sock()
    try:
        io = make_socket_io(a, ProbeConfig(policy="poll"))
        assert io.name == "poll"
        assert "policy=poll" in repr(io)
        assert make_socket_io(a, ProbeConfig()).name == "blocking"
    finally:
        a.close()


@pytest.mark.skipif(os.name != "posix", reason="needs dup2 onto an arbitrary descriptor")
@pytest.mark.parametrize("io_cls", [BlockingSocketIO, PollingSocketIO])
def test_readiness_wait_handles_descriptors_above_fd_setsize(io_cls) -> None:
    resource = pytest.importorskip("resource")
    high = 1500
    soft, hard = resource.getrlimit(resource.RLIMIT_NOFILE)
    if soft <= high:
        if hard != resource.RLIM_INFINITY and hard <= high:
            pytest.skip("RLIMIT_NOFILE too low for a descriptor above FD_SETSIZE")
        resource.setrlimit(resource.RLIMIT_NOFILE, (high + 1, hard))
    a = udp_sock()
    try:
        os.dup2(a.fileno(), high)
        hs = socket.socket(fileno=high)
        try:
            io = io_cls(hs)
            with pytest.raises(ProbeTimeout):
                io.receive(bytearray(16), timeout=0.05)
            a.sendto(b"hi", hs.getsockname())
            nbytes, _ = io.receive(bytearray(16), timeout=2.0)
            assert nbytes == 2
        finally:
            hs.close()
    finally:
        a.close()
        if soft <= high:
            resource.setrlimit(resource.RLIMIT_NOFILE, (soft, hard))
