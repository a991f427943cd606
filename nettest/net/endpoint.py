"""
nettest.net.endpoint

Address resolution and UDP socket binding for both roles.
"""

from __future__ import annotations

import socket
from typing import List, Optional, Tuple

from ..errors import SetupError

__all__ = [
    "resolve_udp",
    "bind_udp",
    "bind_ephemeral_for",
    "format_addr",
]

_WILDCARD = {
    socket.AF_INET: "0.0.0.0",
    socket.AF_INET6: "::",
}


def resolve_udp(host: str, port: int, *, passive: bool = False) -> List[Tuple[int, Tuple]]:
    """
    Resolve host:port to a list of (family, sockaddr) UDP candidates.

    An empty host with passive=True means every interface. Raises
    SetupError when resolution fails or yields nothing.
    """
    flags = socket.AI_PASSIVE if passive else 0
    try:
        infos = socket.getaddrinfo(host or None, int(port), 0, socket.SOCK_DGRAM, 0, flags)
    except (socket.gaierror, UnicodeError) as exc:
        raise SetupError(f"cannot resolve {host!r}: {exc}") from exc
    out: List[Tuple[int, Tuple]] = []
    for family, _type, _proto, _canon, sockaddr in infos:
        if family not in _WILDCARD:
            continue
        cand = (int(family), tuple(sockaddr))
        if cand not in out:
            out.append(cand)
    if not out:
        raise SetupError(f"no IPv4/IPv6 address for {host!r}")
    return out


def bind_udp(host: str, port: int) -> socket.socket:
    """
    Bind a UDP socket on the first candidate address of host:port that works.
    """
    last_exc: Optional[OSError] = None
    for family, sockaddr in resolve_udp(host, port, passive=True):
        try:
            sock = socket.socket(family, socket.SOCK_DGRAM)
        except OSError as exc:
            last_exc = exc
            continue
        try:
            sock.bind(sockaddr)
        except OSError as exc:
            sock.close()
            last_exc = exc
            continue
        return sock
    raise SetupError(f"cannot bind {format_addr((host, port))}: {last_exc}") from last_exc


def bind_ephemeral_for(family: int) -> socket.socket:
    """
    Bind an any-port socket on the wildcard address of the given family.
    """
    try:
        sock = socket.socket(family, socket.SOCK_DGRAM)
    except OSError as exc:
        raise SetupError(f"cannot open UDP socket: {exc}") from exc
    try:
        sock.bind((_WILDCARD[family], 0))
    except OSError as exc:
        sock.close()
        raise SetupError(f"cannot bind ephemeral socket: {exc}") from exc
    return sock


def format_addr(addr: Tuple) -> str:
    host, port = addr[0], addr[1]
    if ":" in str(host):
        return f"[{host}]:{port}"
    return f"{host}:{port}"
