"""Service fingerprinting helpers for open TCP ports."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
import json
import logging
import socket
from typing import Awaitable, Callable

from ..config import DEFAULT_TIMEOUT_MS, PROBE_READ_LIMIT, PROBE_TIMEOUT_MS
from ..errors import ServiceDetectionError

logger = logging.getLogger(__name__)

Connector = Callable[[str, int], Awaitable[tuple[asyncio.StreamReader, asyncio.StreamWriter]]]


@dataclass(frozen=True, slots=True)
class ServiceInfo:
    """Best-effort label for the service behind an open port."""

    protocol: str
    service_name: str
    details: str


@dataclass(frozen=True, slots=True)
class HttpFingerprint:
    server_type: str
    details: str


class PortCategory(Enum):
    JSON_RPC = "json-rpc"
    DEBUG = "debug"
    API = "api"
    WEB = "web"
    GENERIC = "generic"


ETHEREUM_NODE = ServiceInfo(protocol="JSON-RPC", service_name="Ethereum Node", details="JSON-RPC 2.0")
ETH_RPC_FALLBACK = ServiceInfo(protocol="JSON-RPC", service_name="ETH-RPC", details="Ethereum JSON-RPC Service")
DEBUG_SERVICE = ServiceInfo(protocol="TCP", service_name="Debug", details="Debug/Remote Debug Port")
API_SERVICE = ServiceInfo(protocol="HTTP", service_name="API", details="REST/GraphQL API Service")
WEB_FALLBACK = ServiceInfo(protocol="HTTP", service_name="HTTP", details="Web Server")
GENERIC_TCP = ServiceInfo(protocol="TCP", service_name="Unknown", details="Generic TCP Service")

HTTP_PROBE_REQUEST = b"GET / HTTP/1.1\r\nHost: localhost\r\nConnection: close\r\n\r\n"
JSON_RPC_BODY = json.dumps(
    {"jsonrpc": "2.0", "method": "web3_clientVersion", "params": [], "id": 1},
    separators=(",", ":"),
)
JSON_RPC_MARKERS = ("jsonrpc", "eth_", "web3_")


def _ports(*spans: int | tuple[int, int]) -> Callable[[int], bool]:
    """Build a predicate matching single ports and inclusive ``(low, high)`` spans."""
    bounds = [span if isinstance(span, tuple) else (span, span) for span in spans]

    def predicate(port: int) -> bool:
        return any(low <= port <= high for low, high in bounds)

    return predicate


# Evaluated top-down, first match wins. Debug ports sit inside the web range
# (4444) and must be checked before it.
PORT_RULES: tuple[tuple[Callable[[int], bool], PortCategory], ...] = (
    (_ports((8545, 8549)), PortCategory.JSON_RPC),
    (_ports(1234, 4444, 5555, 6666, 7777), PortCategory.DEBUG),
    (_ports((5000, 5050), (7000, 7070)), PortCategory.API),
    (_ports(80, 443, (3000, 4999), (8000, 9000)), PortCategory.WEB),
)


def port_category(port: int) -> PortCategory:
    """Map a destination port to its classification category."""
    for predicate, category in PORT_RULES:
        if predicate(port):
            return category
    return PortCategory.GENERIC


def json_rpc_request(body: str = JSON_RPC_BODY) -> bytes:
    request = (
        "POST / HTTP/1.1\r\n"
        "Host: localhost\r\n"
        "Content-Type: application/json\r\n"
        f"Content-Length: {len(body.encode())}\r\n"
        "Connection: close\r\n\r\n"
        f"{body}"
    )
    return request.encode()


def parse_http_response(response: str) -> HttpFingerprint:
    """Classify a raw HTTP response and summarise its status line and server header.

    Raises :class:`ServiceDetectionError` when ``response`` carries no ``HTTP/`` marker.
    """
    if "HTTP/" not in response:
        raise ServiceDetectionError("Not HTTP")

    if "nginx" in response:
        server_type = "Nginx"
    elif "Apache" in response:
        server_type = "Apache"
    elif "graphql" in response.lower():
        server_type = "GraphQL API"
    elif "/api" in response or "swagger" in response:
        server_type = "REST API"
    else:
        server_type = "HTTP Service"

    # Only LF and CRLF end a line.
    lines = [line.rstrip("\r") for line in response.split("\n")]
    status_line = lines[0] if lines else ""
    server_header = next((line for line in lines if line.lower().startswith("server:")), "")
    # The prefix is matched and stripped without regard to case.
    server_header = server_header[len("server:"):].strip()

    details = f"{status_line} ({server_header})" if server_header else status_line
    return HttpFingerprint(server_type=server_type, details=details)


def set_nodelay(writer: asyncio.StreamWriter) -> None:
    """Disable send coalescing on the socket behind ``writer``."""
    sock = writer.get_extra_info("socket")
    if sock is None:
        raise OSError("transport exposes no socket")
    sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)


async def close_writer(writer: asyncio.StreamWriter) -> None:
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass


class ServiceDetector:
    """Port-based service classification with short HTTP and JSON-RPC probes.

    Active probes always dial a fresh connection to the same address and port;
    the connection that proved the port open is never reused.
    """

    def __init__(
        self,
        *,
        connect: Connector | None = None,
        connect_timeout: float = DEFAULT_TIMEOUT_MS / 1000,
        probe_timeout: float = PROBE_TIMEOUT_MS / 1000,
    ) -> None:
        self._connect: Connector = connect or asyncio.open_connection
        self.connect_timeout = connect_timeout
        self.probe_timeout = probe_timeout
        self._handlers: dict[PortCategory, Callable[[str, int], Awaitable[ServiceInfo]]] = {
            PortCategory.JSON_RPC: self._classify_json_rpc,
            PortCategory.DEBUG: self._static(DEBUG_SERVICE),
            PortCategory.API: self._static(API_SERVICE),
            PortCategory.WEB: self._classify_http,
            PortCategory.GENERIC: self._static(GENERIC_TCP),
        }

    async def detect(self, host: str, port: int) -> ServiceInfo:
        """Return a :class:`ServiceInfo` for ``host:port``; never raises detection errors."""
        handler = self._handlers[port_category(port)]
        return await handler(host, port)

    @staticmethod
    def _static(info: ServiceInfo) -> Callable[[str, int], Awaitable[ServiceInfo]]:
        async def handler(host: str, port: int) -> ServiceInfo:
            return info

        return handler

    async def _classify_json_rpc(self, host: str, port: int) -> ServiceInfo:
        try:
            return await self.detect_json_rpc(host, port)
        except ServiceDetectionError as exc:
            logger.debug("JSON-RPC probe on %s:%d failed: %s", host, port, exc)
            return ETH_RPC_FALLBACK

    async def _classify_http(self, host: str, port: int) -> ServiceInfo:
        try:
            fingerprint = await self.detect_http(host, port)
        except ServiceDetectionError as exc:
            logger.debug("HTTP probe on %s:%d failed: %s", host, port, exc)
            return WEB_FALLBACK
        return ServiceInfo(protocol="HTTP", service_name=fingerprint.server_type, details=fingerprint.details)

    async def detect_http(self, host: str, port: int) -> HttpFingerprint:
        response = await self._exchange(host, port, HTTP_PROBE_REQUEST, label="HTTP")
        return parse_http_response(response)

    async def detect_json_rpc(self, host: str, port: int) -> ServiceInfo:
        response = await self._exchange(host, port, json_rpc_request(), label="RPC")
        if any(marker in response for marker in JSON_RPC_MARKERS):
            return ETHEREUM_NODE
        raise ServiceDetectionError("Not JSON-RPC")

    async def _exchange(self, host: str, port: int, payload: bytes, *, label: str) -> str:
        """Send ``payload`` on a new connection and return the first chunk of the reply."""
        try:
            reader, writer = await asyncio.wait_for(self._connect(host, port), self.connect_timeout)
        except (OSError, asyncio.TimeoutError) as exc:
            raise ServiceDetectionError(f"{label} connect failed: {exc!r}") from exc

        try:
            try:
                set_nodelay(writer)
            except OSError as exc:
                raise ServiceDetectionError(f"{label} socket option failed: {exc}") from exc

            try:
                writer.write(payload)
                await asyncio.wait_for(writer.drain(), self.probe_timeout)
            except asyncio.TimeoutError as exc:
                raise ServiceDetectionError(f"{label} write timeout") from exc
            except OSError as exc:
                raise ServiceDetectionError(f"{label} write failed: {exc}") from exc

            try:
                data = await asyncio.wait_for(reader.read(PROBE_READ_LIMIT), self.probe_timeout)
            except asyncio.TimeoutError as exc:
                raise ServiceDetectionError(f"{label} read timeout") from exc
            except OSError as exc:
                raise ServiceDetectionError(f"{label} read failed: {exc}") from exc

            if not data:
                raise ServiceDetectionError(f"{label} connection closed without data")
            return data.decode("utf-8", errors="replace")
        finally:
            await close_writer(writer)
