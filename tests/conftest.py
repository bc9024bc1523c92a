"""Shared fixtures: in-memory streams and in-process TCP backends."""

import asyncio
import socket

import pytest

from wsveil.config import TunnelConfig
from wsveil.server import TunnelServer
from wsveil.tunnel.session import close_writer


class FakeReader:
    """StreamReader stand-in that returns one queued chunk per read."""

    def __init__(self, chunks=(), block_at_end: bool = False):
        self.chunks = list(chunks)
        self.block_at_end = block_at_end
        self.reads = 0

    async def read(self, n: int = -1) -> bytes:
        self.reads += 1
        if self.chunks:
            item = self.chunks.pop(0)
            if isinstance(item, BaseException):
                raise item
            return item
        if self.block_at_end:
            await asyncio.Event().wait()
        return b""


class FakeWriter:
    """StreamWriter stand-in that records everything written to it."""

    def __init__(self, peername=("198.51.100.7", 40000), drain_error=None):
        self.data = bytearray()
        self.writes = []
        self.closed = False
        self.peername = peername
        self.drain_error = drain_error

    def write(self, data: bytes):
        self.writes.append(bytes(data))
        self.data.extend(data)

    async def drain(self):
        if self.drain_error is not None:
            raise self.drain_error

    def close(self):
        self.closed = True

    def is_closing(self) -> bool:
        return self.closed

    async def wait_closed(self):
        return None

    def get_extra_info(self, name, default=None):
        if name == "peername":
            return self.peername
        return default


class RecordingBackend:
    """TCP server that records every chunk it receives, per connection."""

    def __init__(
        self, echo: bool = False, greeting: bytes = b"", close_immediately=False
    ):
        self.echo = echo
        self.greeting = greeting
        self.close_immediately = close_immediately
        self.connections = 0
        self.chunks: list[bytes] = []
        self.finished = asyncio.Event()
        self.server: asyncio.Server | None = None

    @property
    def received(self) -> bytes:
        return b"".join(self.chunks)

    @property
    def port(self) -> int:
        return self.server.sockets[0].getsockname()[1]

    async def _handle(self, reader, writer):
        self.connections += 1
        try:
            if self.greeting:
                writer.write(self.greeting)
                await writer.drain()
            if self.close_immediately:
                return
            while True:
                data = await reader.read(4096)
                if not data:
                    break
                self.chunks.append(data)
                if self.echo:
                    writer.write(data)
                    await writer.drain()
        except OSError:
            pass
        finally:
            await close_writer(writer)
            self.finished.set()

    async def start(self):
        self.server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        return self

    async def stop(self):
        self.server.close()


def unused_port() -> int:
    """Return a local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def make_config(dest_port: int, skip: int = 0, **kwargs) -> TunnelConfig:
    return TunnelConfig(
        LISTEN_HOST="127.0.0.1",
        LISTEN_PORT=0,
        DEST_HOST="127.0.0.1",
        DEST_PORT=dest_port,
        PACKETS_TO_SKIP=skip,
        **kwargs,
    )


@pytest.fixture
async def start_backend():
    backends = []

    async def _start(**kwargs) -> RecordingBackend:
        backend = await RecordingBackend(**kwargs).start()
        backends.append(backend)
        return backend

    yield _start
    for backend in backends:
        await backend.stop()


@pytest.fixture
async def start_tunnel():
    servers = []

    async def _start(config: TunnelConfig) -> TunnelServer:
        server = TunnelServer(config)
        await server.start()
        servers.append(server)
        return server

    yield _start
    for server in servers:
        await server.close()


async def open_client(server: TunnelServer):
    return await asyncio.open_connection("127.0.0.1", server.port)


async def read_handshake(reader: asyncio.StreamReader) -> bytes:
    return await asyncio.wait_for(reader.readuntil(b"\r\n\r\n"), timeout=5)
