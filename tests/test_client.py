from __future__ import annotations

import asyncio

import pytest
from conftest import RecordingHandler, make_config

from outray.client import client as client_module
from outray.client.client import Client
from outray.exceptions import TunnelConnectionError
from outray.models.enums import ConnectionState


class ScriptedSession:
    """Session stand-in whose run() outcome follows a script."""

    script: list[str] = []
    instances: list["ScriptedSession"] = []

    def __init__(self, config, handler, on_connected=None):
        self.on_connected = on_connected
        self.url = None
        self.closed = asyncio.Event()
        ScriptedSession.instances.append(self)

    async def run(self) -> None:
        outcome = ScriptedSession.script.pop(0) if ScriptedSession.script else "hang"
        if outcome == "error":
            raise TunnelConnectionError("connection refused")
        self.on_connected()
        self.url = "https://t.outray.app"
        if outcome == "clean":
            return
        await self.closed.wait()

    def close(self) -> None:
        self.closed.set()


@pytest.fixture
def scripted(monkeypatch: pytest.MonkeyPatch):
    ScriptedSession.script = []
    ScriptedSession.instances = []
    monkeypatch.setattr(client_module, "Session", ScriptedSession)
    return ScriptedSession


async def _wait_state(client: Client, state: ConnectionState, timeout: float = 2.0) -> None:
    async def _wait() -> None:
        while client.state != state:
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_wait(), timeout=timeout)


async def test_backoff_grows_and_resets_after_open(scripted) -> None:
    scripted.script = ["error", "error", "error", "clean", "error", "hang"]
    handler = RecordingHandler()
    client = Client(make_config(backoff_initial=1.0, backoff_max=3.0), handler)

    delays: list[float] = []

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    client._sleep = fake_sleep
    task = asyncio.create_task(client.connect())
    await _wait_state(client, ConnectionState.OPEN)
    while len(scripted.instances) < 6:
        await asyncio.sleep(0.005)
    await _wait_state(client, ConnectionState.OPEN)

    assert delays == [1.0, 2.0, 3.0, 1.0]
    assert len(handler.errors) == 4
    assert all(isinstance(e, TunnelConnectionError) for e in handler.errors)

    await client.close()
    await asyncio.wait_for(task, timeout=1.0)
    assert client.state == ConnectionState.CLOSED
    assert len(scripted.instances) == 6
    assert client.url == "https://t.outray.app"


async def test_clean_close_reconnects_immediately(scripted) -> None:
    scripted.script = ["clean", "clean", "hang"]
    client = Client(make_config())
    task = asyncio.create_task(client.connect())

    while len(scripted.instances) < 3:
        await asyncio.sleep(0.005)
    await _wait_state(client, ConnectionState.OPEN)
    assert client.backoff.current == client.backoff.initial

    await client.close()
    await asyncio.wait_for(task, timeout=1.0)


async def test_close_interrupts_backoff(scripted) -> None:
    scripted.script = ["error"]
    client = Client(make_config(backoff_initial=30.0, backoff_max=30.0), RecordingHandler())
    task = asyncio.create_task(client.connect())
    await _wait_state(client, ConnectionState.BACKOFF)

    await client.close()
    await asyncio.wait_for(task, timeout=1.0)
    assert client.state == ConnectionState.CLOSED
    assert len(scripted.instances) == 1


async def test_connect_after_close_returns(scripted) -> None:
    client = Client(make_config())
    await client.close()
    await asyncio.wait_for(client.connect(), timeout=1.0)
    assert scripted.instances == []
    assert client.is_closed


async def test_create_builds_callback_handler(scripted) -> None:
    urls: list[str] = []
    client = Client.create("key", 3000, on_open=urls.append, protocol="tcp")
    assert client.config.api_key == "key"
    assert client.config.port == 3000
    assert client.config.protocol.value == "tcp"
    client.handler.on_open("https://u")
    assert urls == ["https://u"]
    assert not client.handler.handles_requests


async def test_async_context_manager_closes(scripted) -> None:
    async with Client(make_config()) as client:
        assert client.state == ConnectionState.IDLE
    assert client.is_closed
