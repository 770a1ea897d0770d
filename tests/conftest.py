import asyncio
from contextlib import asynccontextmanager

import pytest


@asynccontextmanager
async def _listener(reply=None, *, captured=None, read_request=True):
    """Loopback server on an ephemeral port; yields the bound port.

    ``reply`` is written after the first request chunk arrives; ``None`` keeps
    the connection silent until the client goes away.
    """

    async def handle(reader, writer):
        try:
            if read_request:
                data = await reader.read(4096)
                if captured is not None:
                    captured.append(data)
            if reply is None:
                await reader.read()
            else:
                writer.write(reply)
                await writer.drain()
        except ConnectionError:
            pass
        finally:
            writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    try:
        yield server.sockets[0].getsockname()[1]
    finally:
        server.close()
        await server.wait_closed()


def _redirect(listen_port, dialed=None):
    """Connector that records the dialed port and connects to ``listen_port`` instead."""

    async def connect(host, port):
        if dialed is not None:
            dialed.append((host, port))
        return await asyncio.open_connection("127.0.0.1", listen_port)

    return connect


class FakeSocket:
    def __init__(self):
        self.options = []

    def setsockopt(self, *args):
        self.options.append(args)


class FakeWriter:
    def __init__(self, sock=None, *, stall_drain=False):
        self.sock = sock
        self.closed = False
        self.stall_drain = stall_drain
        self.written = []

    def write(self, data):
        self.written.append(data)

    async def drain(self):
        if self.stall_drain:
            await asyncio.Event().wait()

    def get_extra_info(self, name, default=None):
        if name == "socket":
            return self.sock
        return default

    def close(self):
        self.closed = True

    async def wait_closed(self):
        return None


@pytest.fixture
def listener():
    return _listener


@pytest.fixture
def redirect():
    return _redirect


@pytest.fixture
def fake_writer():
    return FakeWriter


@pytest.fixture
def fake_socket():
    return FakeSocket
