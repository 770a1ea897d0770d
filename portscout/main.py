"""Command-line entry point for portscout."""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Sequence

from rich.console import Console
from rich.logging import RichHandler

from portscout import __version__
from portscout.config import (
    DEFAULT_CONCURRENCY_LIMIT,
    DEFAULT_END_PORT,
    DEFAULT_START_PORT,
    DEFAULT_TIMEOUT_MS,
    MAX_PORT,
)
from portscout.errors import ResolutionError
from portscout.export import ConsoleReport
from portscout.scanner import Scanner, resolve_target, to_ip_address


def _port(value: str) -> int:
    port = int(value)
    if not 0 <= port <= MAX_PORT:
        raise argparse.ArgumentTypeError(f"port must be between 0 and {MAX_PORT}, got {port}")
    return port


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {number}")
    return number


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="portscout",
        description="Concurrent TCP port scanner with HTTP and Ethereum JSON-RPC service detection",
    )
    parser.add_argument("-t", "--target", required=True, help="Target IP address or hostname")
    parser.add_argument("-s", "--start-port", type=_port, default=DEFAULT_START_PORT, help="Start port number")
    parser.add_argument("-e", "--end-port", type=_port, default=DEFAULT_END_PORT, help="End port number")
    parser.add_argument("-T", "--timeout", type=_non_negative_int, default=DEFAULT_TIMEOUT_MS, help="Timeout in milliseconds")
    parser.add_argument(
        "-c",
        "--concurrent-limit",
        type=_positive_int,
        default=DEFAULT_CONCURRENCY_LIMIT,
        help="Number of concurrent scans",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


async def run(args: argparse.Namespace, report: ConsoleReport) -> int:
    """Resolve the target, scan it and return the process exit code."""
    report.resolving(args.target)
    try:
        address = await resolve_target(args.target)
    except ResolutionError as exc:
        report.resolution_failed(exc)
        return 1

    if to_ip_address(args.target) is None:
        report.resolved(args.target, address)

    scanner = Scanner(address, args.start_port, args.end_port, args.timeout, args.concurrent_limit)
    with report.scanning(scanner):
        await scanner.scan(report.on_result, on_complete=report.on_complete, on_progress=report.on_progress)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Application entrypoint."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    report = ConsoleReport()
    try:
        return asyncio.run(run(args, report))
    except KeyboardInterrupt:
        report.error_console.print("\nScan aborted.", markup=False)
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
