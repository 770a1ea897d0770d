import asyncio
import ipaddress
import socket

import pytest

from portscout.errors import ResolutionError, ScanError
from portscout.scanner.ip_utils import resolve_target, to_ip_address


@pytest.mark.parametrize(
    "value, expected",
    [
        ("192.168.1.10", "192.168.1.10"),
        (" 10.0.0.1 ", "10.0.0.1"),
        ("::1", "::1"),
        ("[2001:db8::1]", "2001:db8::1"),
        ("localhost", "127.0.0.1"),
        ("LocalHost", "127.0.0.1"),
    ],
)
def test_to_ip_address_literals(value, expected):
    assert to_ip_address(value) == ipaddress.ip_address(expected)


@pytest.mark.parametrize("value", ["", "example.org", "300.1.1.1", "host:80"])
def test_to_ip_address_rejects_names(value):
    assert to_ip_address(value) is None


def test_resolve_target_returns_literal_without_lookup(monkeypatch):
    async def fail(*args, **kwargs):
        raise AssertionError("literal addresses must not be looked up")

    async def scenario():
        loop = asyncio.get_running_loop()
        monkeypatch.setattr(loop, "getaddrinfo", fail)
        return await resolve_target("10.1.2.3")

    assert asyncio.run(scenario()) == ipaddress.ip_address("10.1.2.3")


def test_resolve_target_uses_first_address(monkeypatch):
    infos = [
        (socket.AF_INET6, socket.SOCK_STREAM, 6, "", ("2001:db8::5", 0, 0, 0)),
        (socket.AF_INET, socket.SOCK_STREAM, 6, "", ("203.0.113.9", 0)),
    ]

    async def getaddrinfo(host, port, **kwargs):
        assert host == "node.example"
        return infos

    async def scenario():
        monkeypatch.setattr(asyncio.get_running_loop(), "getaddrinfo", getaddrinfo)
        return await resolve_target("node.example")

    assert asyncio.run(scenario()) == ipaddress.ip_address("2001:db8::5")


def test_resolve_target_failure_raises_resolution_error(monkeypatch):
    async def getaddrinfo(host, port, **kwargs):
        raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")

    async def scenario():
        monkeypatch.setattr(asyncio.get_running_loop(), "getaddrinfo", getaddrinfo)
        return await resolve_target("missing.invalid")

    with pytest.raises(ResolutionError, match="Failed to resolve hostname"):
        asyncio.run(scenario())


def test_resolve_target_empty_answer_raises_resolution_error(monkeypatch):
    async def getaddrinfo(host, port, **kwargs):
        return []

    async def scenario():
        monkeypatch.setattr(asyncio.get_running_loop(), "getaddrinfo", getaddrinfo)
        return await resolve_target("empty.example")

    with pytest.raises(ResolutionError, match="any IP address"):
        asyncio.run(scenario())


def test_resolution_error_is_a_scan_error():
    assert issubclass(ResolutionError, ScanError)
