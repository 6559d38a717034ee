"""
Gateway session state machine.

Disconnected -> Connecting -> Authenticating -> Active -> Failed -> Backoff -> Connecting ...

One supervisor task owns the loop. Each successful connect starts a new
generation with its own read task and heartbeat task; both are cancelled
and awaited before the supervisor backs off, so two generations never
overlap.
"""

from __future__ import annotations

import asyncio
import contextlib
from enum import Enum
from typing import Any, Awaitable, Callable

from hjbridge.bridge_logging import get_logger
from hjbridge.config import GatewayConfig
from hjbridge.gateway.errors import GatewayError, GatewayNotConnectedError, GatewayTransportError
from hjbridge.gateway.heartbeat import run_heartbeat
from hjbridge.gateway.protocol import (
    FrameDecoder,
    Message,
    encode_frame,
    heartbeat_message,
    login_message,
    query_message,
)
from hjbridge.gateway.state import BridgeState

log = get_logger("HJB.Gateway")

READ_CHUNK = 4096

Connector = Callable[[str, int], Awaitable[tuple[Any, Any]]]
MessageHandler = Callable[[Message], Awaitable[None]]


class SessionPhase(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    ACTIVE = "active"
    FAILED = "failed"
    BACKOFF = "backoff"


async def _noop_handler(message: Message) -> None:
    return None


class GatewaySession:
    def __init__(
        self,
        config: GatewayConfig,
        state: BridgeState,
        *,
        on_message: MessageHandler | None = None,
        connector: Connector | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self.state = state
        self._on_message = on_message or _noop_handler
        self._connector = connector or asyncio.open_connection
        self._sleep = sleep

        self._phase = SessionPhase.DISCONNECTED
        self._connected = False
        self._generation = 0
        self._reader: Any = None
        self._writer: Any = None
        self._tasks: list[asyncio.Task] = []
        self._lost = asyncio.Event()
        self._supervisor: asyncio.Task | None = None
        self.connect_attempts = 0
        self.connect_failures = 0

    def set_message_handler(self, handler: MessageHandler) -> None:
        self._on_message = handler

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def generation(self) -> int:
        return self._generation

    def snapshot(self) -> dict[str, Any]:
        return {
            "phase": self._phase.value,
            "connected": self._connected,
            "generation": self._generation,
            "connect_attempts": self.connect_attempts,
            "connect_failures": self.connect_failures,
            "gateway": f"{self.config.host}:{self.config.port}",
        }

    # Lifecycle

    def start(self) -> None:
        if self._supervisor is not None and not self._supervisor.done():
            return
        self._supervisor = asyncio.create_task(self._run(), name="hjb-gateway-supervisor")

    async def stop(self) -> None:
        supervisor, self._supervisor = self._supervisor, None
        if supervisor is not None:
            supervisor.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await supervisor
        await self._fail(self._generation, None)
        await self._stop_generation()
        self._phase = SessionPhase.DISCONNECTED

    async def _run(self) -> None:
        while True:
            if await self._connect():
                await self._lost.wait()
                await self._stop_generation()
            self._phase = SessionPhase.BACKOFF
            log.info("HJB.Gateway.Backoff", extra={"fields": {"delay_s": self.config.reconnect_delay}})
            await self._sleep(self.config.reconnect_delay)

    async def _connect(self) -> bool:
        self._phase = SessionPhase.CONNECTING
        self.connect_attempts += 1
        host, port = self.config.host, self.config.port
        log.info("HJB.Gateway.Connecting", extra={"fields": {"host": host, "port": port, "attempt": self.connect_attempts}})
        try:
            reader, writer = await asyncio.wait_for(self._connector(host, port), timeout=self.config.connect_timeout)
        except (OSError, asyncio.TimeoutError) as exc:
            self.connect_failures += 1
            log.warning("HJB.Gateway.ConnectFailed", extra={"fields": {"host": host, "port": port, "error": repr(exc)}})
            return False

        async with self.state.lock:
            self._generation += 1
            self._reader = reader
            self._writer = writer
            self._connected = True
            self._lost = asyncio.Event()
        generation = self._generation
        log.info("HJB.Gateway.Connected", extra={"fields": {"host": host, "port": port, "generation": generation}})

        self._phase = SessionPhase.AUTHENTICATING
        try:
            await self.send(login_message(self.config.username, self.config.password, self.config.zkid))
        except GatewayError:
            return True

        # The login reply is not awaited; LOGIN frames are only logged by the router.
        self._phase = SessionPhase.ACTIVE
        self._tasks = [
            asyncio.create_task(self._read_loop(generation, reader), name=f"hjb-gateway-read-{generation}"),
            asyncio.create_task(
                run_heartbeat(
                    self.config.heartbeat_interval,
                    lambda: self.send(heartbeat_message()),
                    lambda: self._is_current(generation),
                ),
                name=f"hjb-gateway-heartbeat-{generation}",
            ),
        ]
        await self._query_devices()
        return True

    async def _query_devices(self) -> None:
        for index in range(1, self.config.device_count + 1):
            try:
                await self.send(query_message(str(index)))
            except GatewayError:
                return

    def _is_current(self, generation: int) -> bool:
        return self._connected and self._generation == generation

    async def _stop_generation(self) -> None:
        tasks, self._tasks = self._tasks, []
        current = asyncio.current_task()
        for task in tasks:
            if task is not current:
                task.cancel()
        await asyncio.gather(*(t for t in tasks if t is not current), return_exceptions=True)

    # Transmit path

    async def send(self, message: Message) -> None:
        """Write one frame; writes from all callers are serialized by the state lock."""

        frame = encode_frame(message)
        async with self.state.lock:
            writer = self._writer
            generation = self._generation
            if not self._connected or writer is None:
                raise GatewayNotConnectedError(f"gateway not connected, dropping {message.opcode}")
            try:
                writer.write(frame)
                await writer.drain()
                error = None
            except OSError as exc:
                error = exc

        if error is not None:
            log.warning(
                "HJB.Gateway.WriteFailed",
                extra={"fields": {"opcode": message.opcode, "nodeid": message.nodeid, "error": repr(error)}},
            )
            await self._fail(generation, error)
            raise GatewayTransportError(f"write failed: {error!r}") from error

        log.debug("HJB.Gateway.Sent", extra={"fields": {"opcode": message.opcode, "nodeid": message.nodeid}})

    # Receive path

    async def _read_loop(self, generation: int, reader: Any) -> None:
        decoder = FrameDecoder()
        while self._is_current(generation):
            try:
                chunk = await reader.read(READ_CHUNK)
            except (OSError, asyncio.IncompleteReadError) as exc:
                await self._fail(generation, exc)
                return
            if not chunk:
                await self._fail(generation, ConnectionResetError("gateway closed the connection"))
                return

            for message in decoder.feed(chunk):
                await self._dispatch(message)

    async def _dispatch(self, message: Message) -> None:
        try:
            await self._on_message(message)
        except Exception:
            log.exception(
                "HJB.Gateway.HandlerError",
                extra={"fields": {"opcode": message.opcode, "nodeid": message.nodeid}},
            )

    async def _fail(self, generation: int, error: BaseException | None) -> None:
        async with self.state.lock:
            if generation != self._generation or not self._connected:
                return
            self._connected = False
            self._phase = SessionPhase.FAILED
            writer, self._writer = self._writer, None
            self._reader = None

        if error is not None:
            log.warning(
                "HJB.Gateway.Disconnected",
                extra={"fields": {"generation": generation, "error": repr(error)}},
            )
        if writer is not None:
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()
        self._lost.set()
