"""
nettest.__main__

CLI entry point.

This file is intentionally small:
- parse args
- configure logging
- hand a ProbeConfig to ProbeServer or ProbeClient
It must not contain socket or protocol logic.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

import nettest
from nettest.config import DEFAULT_PORT, POLICIES, POLICY_BLOCKING, ProbeConfig
from nettest.errors import SetupError
from nettest.net.endpoint import format_addr

EXIT_OK = 0
EXIT_INCOMPLETE = 1
EXIT_SETUP = 2

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _add_common(p: argparse.ArgumentParser, *, suppress: bool) -> None:
    # The serve subparser must not overwrite values given before "serve".
    def default(value):
        return argparse.SUPPRESS if suppress else value

    p.add_argument("--port", type=int, default=default(DEFAULT_PORT), help=f"Service port (default {DEFAULT_PORT}).")
    p.add_argument(
        "--policy",
        choices=POLICIES,
        default=default(POLICY_BLOCKING),
        help="Socket discipline under backpressure: kernel blocking, or non-blocking poll + retry.",
    )
    p.add_argument(
        "--poll-interval",
        type=float,
        default=default(0.001),
        help="Longest single readiness wait in poll mode, seconds.",
    )
    p.add_argument("-v", "--verbose", action="count", default=default(0), help="More logging (-vv for debug).")


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="python -m nettest",
        description="UDP throughput probe: request N filler packets from a server and count what arrives.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {nettest.__version__}")
    p.add_argument("--addr", default="localhost", help="Server host to probe (client mode).")
    p.add_argument("--packet-count", type=int, default=1, help="Number of filler packets to request.")
    p.add_argument(
        "--timeout",
        type=float,
        default=5.0,
        help="Give up when no packet arrived for this many seconds (0 waits forever).",
    )
    p.add_argument("-q", "--quiet", action="store_true", help="Only print the summary line.")
    _add_common(p, suppress=False)

    sub = p.add_subparsers(dest="command")
    serve = sub.add_parser("serve", help="Run a probe server.")
    serve.add_argument("--bind", default="localhost", help="Address to listen on.")
    serve.add_argument(
        "--max-packet-count",
        type=int,
        default=1_000_000,
        help="Clamp larger requests to this many packets.",
    )
    _add_common(serve, suppress=True)

    args = p.parse_args(argv)
    if not 0 <= args.packet_count <= 0xFFFFFFFF:
        p.error("--packet-count must be between 0 and 4294967295")
    if args.command != "serve" and args.timeout < 0:
        p.error("--timeout must be >= 0 (0 waits forever)")
    return args


def _configure_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format=_LOG_FORMAT)


def _run_server(args: argparse.Namespace) -> int:
    try:
        cfg = ProbeConfig(
            port=args.port,
            policy=args.policy,
            poll_interval=args.poll_interval,
            max_packet_count=args.max_packet_count,
        )
        server = nettest.ProbeServer(cfg, args.bind)
    except (SetupError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_SETUP

    print(f"Server ready on {format_addr(server.address)}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.stop()
    return EXIT_OK


def _run_client(args: argparse.Namespace) -> int:
    try:
        cfg = ProbeConfig(
            port=args.port,
            policy=args.policy,
            poll_interval=args.poll_interval,
            recv_timeout=args.timeout if args.timeout > 0 else None,
        )
        client = nettest.ProbeClient(cfg, args.addr)
    except (SetupError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_SETUP

    def _print_packet(index: int, nbytes: int, first: Optional[int]) -> None:
        print(f"{index}: Received {nbytes} bytes back from the server; [0]: {first}")

    with client:
        print(f"Connecting to {format_addr(client.server_addr)}")
        report = client.run(args.packet_count, on_packet=None if args.quiet else _print_packet)

    print(report.format_summary())
    return EXIT_OK if report.ok else EXIT_INCOMPLETE


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(argv)
    _configure_logging(args.verbose)
    if args.command == "serve":
        return _run_server(args)
    return _run_client(args)


if __name__ == "__main__":
    raise SystemExit(main())
