from __future__ import annotations

import httpx

from hjbridge.bridge_logging import get_logger
from hjbridge.config import HomeAssistantConfig
from hjbridge.sink.base import StateSink

log = get_logger("HJB.HomeAssistant")

_OK_STATUSES = {200, 201}


def qualify_entity_id(entity_id: str, domain: str) -> str:
    """Prefix bare entity ids with the configured domain (``switch.<id>``)."""
    if "." in entity_id or not domain:
        return entity_id
    return f"{domain}.{entity_id}"


class HomeAssistantSink(StateSink):
    """Writes entity states through the Home Assistant REST API."""

    def __init__(self, config: HomeAssistantConfig, *, client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout_s),
        )

    async def push_state(self, entity_id: str, state: str) -> bool:
        target = qualify_entity_id(entity_id, self.config.entity_domain)
        headers = {
            "Authorization": f"Bearer {self.config.token}",
            "Content-Type": "application/json",
        }
        try:
            resp = await self._client.post(
                f"/api/states/{target}",
                json={"state": state},
                headers=headers,
            )
        except httpx.HTTPError as exc:
            log.warning(
                "HJB.HomeAssistant.UpdateError",
                extra={"fields": {"entity_id": target, "state": state, "error": repr(exc)}},
            )
            return False

        if resp.status_code in _OK_STATUSES:
            log.info("HJB.HomeAssistant.Updated", extra={"fields": {"entity_id": target, "state": state}})
            return True

        log.warning(
            "HJB.HomeAssistant.UpdateRejected",
            extra={"fields": {"entity_id": target, "state": state, "status": resp.status_code}},
        )
        return False

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
