from __future__ import annotations

import asyncio
from typing import Any, Callable

import pytest

from hjbridge.config import GatewayConfig
from hjbridge.gateway.protocol import FrameDecoder, Message


class FakeReader:
    """Stands in for asyncio.StreamReader; chunks are pushed by the test."""

    def __init__(self) -> None:
        self._chunks: asyncio.Queue[bytes] = asyncio.Queue()

    def feed(self, data: bytes) -> None:
        self._chunks.put_nowait(data)

    def feed_eof(self) -> None:
        self._chunks.put_nowait(b"")

    async def read(self, n: int = -1) -> bytes:
        return await self._chunks.get()


class FakeWriter:
    """Stands in for asyncio.StreamWriter and records every frame written."""

    def __init__(self) -> None:
        self.buffer = bytearray()
        self.closed = False
        self.fail_writes = False

    def write(self, data: bytes) -> None:
        if self.fail_writes:
            raise ConnectionResetError("broken pipe")
        self.buffer.extend(data)

    async def drain(self) -> None:
        return None

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        return None

    def messages(self) -> list[Message]:
        return FrameDecoder().feed(bytes(self.buffer))

    def opcodes(self) -> list[str]:
        return [m.opcode for m in self.messages()]


class ScriptedConnector:
    """Returns the queued links in order, then refuses every further connect."""

    def __init__(self, *links: tuple[FakeReader, FakeWriter]) -> None:
        self._links = list(links)
        self.calls: list[tuple[str, int]] = []

    async def __call__(self, host: str, port: int) -> tuple[FakeReader, FakeWriter]:
        self.calls.append((host, port))
        if not self._links:
            raise ConnectionRefusedError(f"connect to {host}:{port} refused")
        return self._links.pop(0)


class RecordingSink:
    def __init__(self, ok: bool = True) -> None:
        self.ok = ok
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    async def push_state(self, entity_id: str, state: str) -> bool:
        self.calls.append((entity_id, state))
        return self.ok

    async def aclose(self) -> None:
        self.closed = True


def new_link() -> tuple[FakeReader, FakeWriter]:
    return FakeReader(), FakeWriter()


@pytest.fixture
def gateway_config() -> GatewayConfig:
    return GatewayConfig(
        host="gateway.local",
        port=8000,
        username="admin",
        password="secret",
        zkid="0001",
        device_count=2,
        heartbeat_interval=3600.0,
        reconnect_delay=10.0,
        connect_timeout=1.0,
    )


@pytest.fixture
def wait_until() -> Callable[..., Any]:
    async def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.005)

    return _wait
