from __future__ import annotations

from hjbridge.bridge_logging import get_logger
from hjbridge.gateway.protocol import Message, Opcode
from hjbridge.gateway.state import BridgeState, DeviceRegistry
from hjbridge.reconciler import StateReconciler

log = get_logger("HJB.Router")

_NORMALIZED = {
    "ON": "on",
    "OPEN": "on",
    "OFF": "off",
    "CLOSE": "off",
}


def normalize_state(raw: str) -> str | None:
    """Map a raw gateway token to ``on``/``off``; ``None`` for anything else."""
    return _NORMALIZED.get(raw)


class MessageRouter:
    """Dispatches decoded gateway messages by opcode."""

    def __init__(self, state: BridgeState, registry: DeviceRegistry, reconciler: StateReconciler) -> None:
        self._state = state
        self._registry = registry
        self._reconciler = reconciler
        self.dropped = 0

    async def dispatch(self, message: Message) -> None:
        opcode = message.known_opcode
        if opcode is Opcode.SWITCH:
            await self._handle_switch(message)
        elif opcode is Opcode.CCU_HB:
            log.debug("HJB.Router.HeartbeatAck", extra={"fields": {"nodeid": message.nodeid}})
        elif opcode is Opcode.SYNC_INFO:
            log.info("HJB.Router.SyncInfo", extra={"fields": {"nodeid": message.nodeid, "payload": message.to_payload()}})
        elif opcode is Opcode.LOGIN:
            self._handle_login(message)
        else:
            self._drop(message, "unhandled_opcode")

    async def _handle_switch(self, message: Message) -> None:
        raw = message.text
        if raw is None:
            self._drop(message, "non_string_arg")
            return

        state = normalize_state(raw)
        if state is None:
            self._drop(message, "unknown_token")
            return

        async with self._state.lock:
            self._state.devices[message.nodeid] = raw

        entity_id = self._registry.resolve(message.nodeid)
        if entity_id is None:
            self._drop(message, "unmapped_node")
            return

        await self._reconciler.reconcile(entity_id, state)

    def _handle_login(self, message: Message) -> None:
        if message.status == "success":
            log.info("HJB.Router.LoginSucceeded")
        else:
            # Not fatal: the session keeps running either way.
            log.warning("HJB.Router.LoginFailed", extra={"fields": {"status": message.status}})

    def _drop(self, message: Message, reason: str) -> None:
        self.dropped += 1
        log.debug(
            "HJB.Router.Dropped",
            extra={"fields": {"reason": reason, "nodeid": message.nodeid, "opcode": message.opcode}},
        )
