from __future__ import annotations

import asyncio
import json
import socket

import pytest
import pytest_asyncio

from outray.client.config import ClientConfig
from outray.client.handlers import TunnelHandler
from outray.tunnel.protocol import Frame


def unused_port(kind: int = socket.SOCK_STREAM) -> int:
    with socket.socket(socket.AF_INET, kind) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def make_config(**overrides) -> ClientConfig:
    values = {
        "api_key": "test-key",
        "port": 8080,
        "server_url": "ws://127.0.0.1:1",
        "local_host": "127.0.0.1",
    }
    values.update(overrides)
    return ClientConfig(**values)


class FrameRecorder:
    """Stand-in for Session.send that records outbound frames."""

    def __init__(self) -> None:
        self.frames: list[Frame] = []
        self.event = asyncio.Event()

    async def __call__(self, frame: Frame) -> None:
        self.frames.append(frame)
        self.event.set()

    async def wait_for(self, count: int, timeout: float = 2.0) -> list[Frame]:
        async def _wait() -> None:
            while len(self.frames) < count:
                self.event.clear()
                await self.event.wait()

        await asyncio.wait_for(_wait(), timeout=timeout)
        return self.frames


class ErrorRecorder:
    def __init__(self) -> None:
        self.errors: list[Exception] = []

    def __call__(self, error: Exception) -> None:
        self.errors.append(error)


class RecordingHandler(TunnelHandler):
    def __init__(self) -> None:
        self.urls: list[str] = []
        self.errors: list[Exception] = []

    def on_open(self, url: str) -> None:
        self.urls.append(url)

    def on_error(self, error: Exception) -> None:
        self.errors.append(error)


class FakeWebSocket:
    """Minimal channel object accepted by Session.send."""

    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.closed = False

    async def send(self, message: str) -> None:
        self.sent.append(json.loads(message))

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def frames() -> FrameRecorder:
    return FrameRecorder()


@pytest.fixture
def errors() -> ErrorRecorder:
    return ErrorRecorder()


@pytest_asyncio.fixture
async def tcp_echo_server():
    """TCP echo server on 127.0.0.1; yields its port."""

    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            while True:
                data = await reader.read(4096)
                if not data:
                    break
                writer.write(data)
                await writer.drain()
        except OSError:
            pass
        finally:
            writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    yield server.sockets[0].getsockname()[1]
    server.close()
    await server.wait_closed()


class _UDPEcho(asyncio.DatagramProtocol):
    def connection_made(self, transport) -> None:
        self.transport = transport

    def datagram_received(self, data: bytes, addr) -> None:
        self.transport.sendto(b"echo:" + data, addr)


@pytest_asyncio.fixture
async def udp_echo_server():
    """UDP server replying b"echo:" + payload; yields its port."""
    loop = asyncio.get_running_loop()
    transport, _ = await loop.create_datagram_endpoint(
        _UDPEcho, local_addr=("127.0.0.1", 0)
    )
    yield transport.get_extra_info("sockname")[1]
    transport.close()
