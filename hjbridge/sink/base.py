from __future__ import annotations

from typing import Protocol


class StateSink(Protocol):
    async def push_state(self, entity_id: str, state: str) -> bool:
        ...

    async def aclose(self) -> None:
        ...
