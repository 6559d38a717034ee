from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from hjbridge.bridge_logging import get_logger
from hjbridge.gateway.errors import GatewayError

log = get_logger("HJB.Heartbeat")


async def run_heartbeat(
    interval: float,
    send: Callable[[], Awaitable[None]],
    alive: Callable[[], bool],
) -> None:
    """Send a heartbeat, then one every ``interval`` seconds, while ``alive()``.

    A failed send ends the loop; the session has already been failed by the
    transmit path at that point. The owning session also cancels this task
    when its generation ends, so it never outlives the connection.
    """

    while alive():
        try:
            await send()
        except GatewayError as exc:
            log.warning("HJB.Heartbeat.SendFailed", extra={"fields": {"error": repr(exc)}})
            return
        await asyncio.sleep(interval)
