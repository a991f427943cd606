"""
nettest.errors

Exception taxonomy.

Would-block conditions never show up here: the socket policies absorb them.
Genuine socket failures stay plain OSError.
"""

from __future__ import annotations

__all__ = [
    "NettestError",
    "DecodeError",
    "TruncatedRequestError",
    "SetupError",
    "ProbeTimeout",
]


class NettestError(Exception):
    """Base class for all nettest errors."""


class DecodeError(NettestError, ValueError):
    """Raised when a datagram cannot be decoded as a request."""


class TruncatedRequestError(DecodeError):
    """Raised when a request datagram is shorter than the 4-byte count."""

    def __init__(self, length: int, needed: int) -> None:
        super().__init__(f"request too short: {length} bytes (need >= {needed})")
        self.length = int(length)
        self.needed = int(needed)


class SetupError(NettestError, OSError):
    """Bind or address resolution failed; the role cannot start."""


class ProbeTimeout(NettestError, TimeoutError):
    """A configured deadline expired while waiting on the socket."""
