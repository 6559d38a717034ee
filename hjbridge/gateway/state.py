from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Mapping

from hjbridge.config import DevicesConfig


@dataclass(slots=True)
class BridgeState:
    """Shared mutable state of one gateway session.

    ``devices`` holds the last raw token per node id, ``entities`` the last
    normalized state pushed downstream per entity id. Both maps, the
    session's connected flag and every socket write are guarded by ``lock``.
    """

    devices: dict[str, str] = field(default_factory=dict)
    entities: dict[str, str] = field(default_factory=dict)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


@dataclass(frozen=True, slots=True)
class DeviceRegistry:
    curtains: Mapping[str, str] = field(default_factory=dict)
    lights: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_config(cls, devices: DevicesConfig) -> "DeviceRegistry":
        return cls(curtains=dict(devices.curtains), lights=dict(devices.lights))

    def resolve(self, node_id: str) -> str | None:
        """Map a gateway node id to its entity id, curtains first."""
        entity_id = self.curtains.get(node_id)
        if entity_id:
            return entity_id
        return self.lights.get(node_id) or None

    def __len__(self) -> int:
        return len(set(self.curtains) | set(self.lights))
