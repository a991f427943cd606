"""
nettest.report

Per-run counters and arrival statistics collected by the client.

Nothing here is part of the wire protocol; it only exists so a probe run
can say how fast packets arrived and how evenly.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

__all__ = [
    "OUTCOME_COMPLETE",
    "OUTCOME_TIMEOUT",
    "OUTCOME_ERROR",
    "ProbeReport",
]

OUTCOME_COMPLETE = "complete"
OUTCOME_TIMEOUT = "timeout"
OUTCOME_ERROR = "error"


@dataclass
class ProbeReport:
    requested: int
    received: int = 0
    bytes_received: int = 0
    outcome: str = OUTCOME_COMPLETE
    error: Optional[str] = None
    started_at: float = field(default_factory=time.monotonic)
    arrivals: List[float] = field(default_factory=list)

    def record(self, nbytes: int, when: Optional[float] = None) -> None:
        self.received += 1
        self.bytes_received += int(nbytes)
        self.arrivals.append(time.monotonic() if when is None else float(when))

    @property
    def ok(self) -> bool:
        return self.outcome == OUTCOME_COMPLETE

    @property
    def lost(self) -> int:
        return max(0, self.requested - self.received)

    def elapsed(self) -> float:
        """Seconds from the request to the last arrival."""
        if not self.arrivals:
            return 0.0
        return max(0.0, self.arrivals[-1] - self.started_at)

    def packets_per_second(self) -> float:
        dt = self.elapsed()
        return self.received / dt if dt > 0 else 0.0

    def megabits_per_second(self) -> float:
        dt = self.elapsed()
        return (self.bytes_received * 8.0 / 1e6) / dt if dt > 0 else 0.0

    def gap_stats(self) -> Dict[str, float]:
        """
        Inter-arrival gaps in milliseconds. The first gap is measured from
        the request, so it includes the round trip.
        """
        if not self.arrivals:
            return {"mean_ms": 0.0, "p50_ms": 0.0, "p99_ms": 0.0, "max_ms": 0.0}
        t = np.asarray([self.started_at] + self.arrivals, dtype=np.float64)
        gaps = np.diff(t) * 1000.0
        return {
            "mean_ms": float(np.mean(gaps)),
            "p50_ms": float(np.percentile(gaps, 50)),
            "p99_ms": float(np.percentile(gaps, 99)),
            "max_ms": float(np.max(gaps)),
        }

    def summary(self) -> Dict[str, object]:
        out: Dict[str, object] = {
            "outcome": self.outcome,
            "requested": self.requested,
            "received": self.received,
            "lost": self.lost,
            "bytes": self.bytes_received,
            "elapsed_s": self.elapsed(),
            "pps": self.packets_per_second(),
            "mbps": self.megabits_per_second(),
        }
        out.update(self.gap_stats())
        if self.error:
            out["error"] = self.error
        return out

    def format_summary(self) -> str:
        s = self.summary()
        line = (
            f"{s['outcome']}: {s['received']}/{s['requested']} packets, {s['bytes']} bytes "
            f"in {s['elapsed_s']:.3f}s ({s['pps']:.0f} pkt/s, {s['mbps']:.2f} Mbit/s); "
            f"gap mean={s['mean_ms']:.3f}ms p99={s['p99_ms']:.3f}ms max={s['max_ms']:.3f}ms"
        )
        if self.error:
            line += f"; error: {self.error}"
        return line
