from __future__ import annotations

from hjbridge.bridge_logging import get_logger
from hjbridge.gateway.state import BridgeState
from hjbridge.sink.base import StateSink

log = get_logger("HJB.Reconciler")


class StateReconciler:
    """Pushes normalized entity states downstream, skipping repeats.

    The in-memory record is updated before the HTTP call and is not rolled
    back if the call fails, so a lost write is only corrected by the next
    state change for that entity.
    """

    def __init__(self, state: BridgeState, sink: StateSink) -> None:
        self._state = state
        self._sink = sink

    async def reconcile(self, entity_id: str, state: str) -> bool:
        async with self._state.lock:
            if self._state.entities.get(entity_id) == state:
                log.debug("HJB.Reconciler.Unchanged", extra={"fields": {"entity_id": entity_id, "state": state}})
                return False
            self._state.entities[entity_id] = state

        await self._sink.push_state(entity_id, state)
        return True

    def last_state(self, entity_id: str) -> str | None:
        return self._state.entities.get(entity_id)
