#!/usr/bin/env python3
"""
Loopback demo: start a probe server on an ephemeral port, run one client
under each socket policy against it, and print what arrived.
"""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from nettest import ProbeClient, ProbeConfig, ProbeServer  # noqa: E402
from nettest.net.endpoint import format_addr  # noqa: E402


def main(packet_count: int = 50) -> None:
    for policy in ("blocking", "poll"):
        cfg = ProbeConfig(port=0, policy=policy, recv_timeout=2.0)
        with ProbeServer(cfg, "127.0.0.1") as server:
            addr = server.address
            with ProbeClient(cfg, "127.0.0.1", port=server.address[1]) as client:
                report = client.run(packet_count)

        print(f"=== {policy} ===")
        print(f"server        : {format_addr(addr)}")
        print(f"server counts : {server.counters}")
        print(f"client        : {report.format_summary()}")


if __name__ == "__main__":
    main(int(sys.argv[1]) if len(sys.argv) > 1 else 50)
