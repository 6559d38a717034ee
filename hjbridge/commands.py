from __future__ import annotations

from hjbridge.bridge_logging import get_logger
from hjbridge.gateway.errors import GatewayError
from hjbridge.gateway.protocol import switch_message
from hjbridge.gateway.session import GatewaySession

log = get_logger("HJB.Commands")


class CommandGateway:
    """Entry point for the REST layer: send SWITCH commands, read cached device state."""

    def __init__(self, session: GatewaySession) -> None:
        self._session = session
        self._state = session.state

    async def send_command(self, node_id: str, raw_arg: str) -> None:
        """Send ``raw_arg`` to ``node_id`` and record it as the node's state right away.

        Never raises for gateway trouble: an unreachable gateway only shows up
        as the state never being confirmed by a later SWITCH report.
        """
        async with self._state.lock:
            self._state.devices[node_id] = raw_arg

        try:
            await self._session.send(switch_message(node_id, raw_arg))
        except GatewayError as exc:
            log.warning(
                "HJB.Commands.SendFailed",
                extra={"fields": {"nodeid": node_id, "arg": raw_arg, "error": repr(exc)}},
            )
            return
        log.info("HJB.Commands.Sent", extra={"fields": {"nodeid": node_id, "arg": raw_arg}})

    async def read_state(self, node_id: str) -> str | None:
        async with self._state.lock:
            return self._state.devices.get(node_id)
