from __future__ import annotations

import contextlib
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI

from hjbridge.bridge_logging import configure_logging, get_logger
from hjbridge.commands import CommandGateway
from hjbridge.config import BridgeConfig, load_config
from hjbridge.gateway.router import MessageRouter
from hjbridge.gateway.session import Connector, GatewaySession
from hjbridge.gateway.state import BridgeState, DeviceRegistry
from hjbridge.http_api.server import build_device_router
from hjbridge.reconciler import StateReconciler
from hjbridge.sink.base import StateSink
from hjbridge.sink.home_assistant import HomeAssistantSink

log = get_logger("HJB")


@dataclass(slots=True)
class Bridge:
    config: BridgeConfig
    state: BridgeState
    registry: DeviceRegistry
    sink: StateSink
    reconciler: StateReconciler
    router: MessageRouter
    session: GatewaySession
    commands: CommandGateway


def build_bridge(
    config: BridgeConfig,
    *,
    sink: StateSink | None = None,
    connector: Connector | None = None,
) -> Bridge:
    state = BridgeState()
    registry = DeviceRegistry.from_config(config.devices)
    sink = sink or HomeAssistantSink(config.home_assistant)
    reconciler = StateReconciler(state, sink)
    router = MessageRouter(state, registry, reconciler)
    session = GatewaySession(config.gateway, state, on_message=router.dispatch, connector=connector)
    return Bridge(
        config=config,
        state=state,
        registry=registry,
        sink=sink,
        reconciler=reconciler,
        router=router,
        session=session,
        commands=CommandGateway(session),
    )


def create_app(config: BridgeConfig | None = None, *, bridge: Bridge | None = None) -> FastAPI:
    if bridge is None:
        config = config or load_config()
        configure_logging(config.logging.level, config.logging.file)
        bridge = build_bridge(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info(
            "HJB.Bridge.Starting",
            extra={
                "fields": {
                    "gateway": f"{bridge.config.gateway.host}:{bridge.config.gateway.port}",
                    "devices": len(bridge.registry),
                    "home_assistant": bridge.config.home_assistant.base_url,
                }
            },
        )
        bridge.session.start()

        yield

        log.info("HJB.Bridge.Stopping")
        try:
            await bridge.session.stop()
        except Exception as e:
            log.error("HJB.Bridge.StopError", extra={"fields": {"error": repr(e)}})
        with contextlib.suppress(Exception):
            await bridge.sink.aclose()
        log.info("HJB.Bridge.Stopped")

    app = FastAPI(title="HJ Bridge", lifespan=lifespan)
    app.state.bridge = bridge
    app.include_router(build_device_router(commands=bridge.commands))

    @app.get("/healthz")
    async def healthz() -> dict[str, Any]:
        return {
            "ok": True,
            "gateway": bridge.session.snapshot(),
            "devices": len(bridge.state.devices),
            "entities": len(bridge.state.entities),
            "registry": len(bridge.registry),
            "dropped": bridge.router.dropped,
        }

    return app
