"""Bounded-concurrency TCP connect scan engine."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import ipaddress
import logging
from typing import Callable

from ..config import DEFAULT_CONCURRENCY_LIMIT, DEFAULT_TIMEOUT_MS, ScanConfig
from .fingerprinting import Connector, ServiceDetector, ServiceInfo, close_writer, set_nodelay

logger = logging.getLogger(__name__)

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


@dataclass(frozen=True, slots=True)
class OpenPort:
    """A port that accepted a connection, with its classification."""

    port: int
    service: ServiceInfo


class Scanner:
    """Probe every port of ``[start_port, end_port]`` on one resolved address.

    At most ``concurrency_limit`` connect attempts are in flight; a new port is
    admitted each time one finishes. Events reach the callbacks in completion
    order, from the coordinating coroutine only.
    """

    def __init__(
        self,
        target: IPAddress,
        start_port: int,
        end_port: int,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
        *,
        detector: ServiceDetector | None = None,
        connect: Connector | None = None,
    ) -> None:
        self.target = target
        self.start_port = start_port
        self.end_port = end_port
        self.config = ScanConfig(timeout_ms=timeout_ms, concurrency_limit=concurrency_limit)
        self._connect: Connector = connect or asyncio.open_connection
        self.detector = detector or ServiceDetector(
            connect=self._connect,
            connect_timeout=self.config.timeout,
            probe_timeout=self.config.probe_timeout,
        )

    @property
    def port_count(self) -> int:
        return max(self.end_port - self.start_port + 1, 0)

    async def scan(
        self,
        on_result: Callable[[OpenPort], None],
        *,
        on_complete: Callable[[int], None] | None = None,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> int:
        """Run the scan to completion and return the number of open ports."""
        limit = self.config.concurrency_limit
        if limit < 1:
            raise ValueError(f"concurrency limit must be >= 1, got {limit}")

        logger.info("Scanning %s ports %d-%d (limit=%d)", self.target, self.start_port, self.end_port, limit)

        pending: set[asyncio.Task[OpenPort | None]] = set()
        port = self.start_port
        scanned = 0
        open_count = 0

        try:
            while port <= self.end_port or pending:
                while len(pending) < limit and port <= self.end_port:
                    pending.add(asyncio.ensure_future(self.scan_port(port)))
                    port += 1

                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    result = task.result()
                    scanned += 1
                    if result is not None:
                        open_count += 1
                        on_result(result)
                    if on_progress:
                        on_progress(scanned, open_count)
        except BaseException:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            raise

        logger.info("Scan of %s finished: %d open of %d scanned", self.target, open_count, scanned)
        if on_complete:
            on_complete(open_count)
        return open_count

    async def scan_port(self, port: int) -> OpenPort | None:
        """Connect to one port; ``None`` means closed, filtered or unreachable."""
        host = str(self.target)
        try:
            _, writer = await asyncio.wait_for(self._connect(host, port), self.config.timeout)
        except (OSError, asyncio.TimeoutError) as exc:
            logger.debug("%s:%d not open: %r", host, port, exc)
            return None

        try:
            try:
                set_nodelay(writer)
            except OSError as exc:
                logger.debug("%s:%d dropped, TCP_NODELAY failed: %s", host, port, exc)
                return None
            service = await self.detector.detect(host, port)
            return OpenPort(port=port, service=service)
        finally:
            await close_writer(writer)
