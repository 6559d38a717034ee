from __future__ import annotations

import json

import httpx
import pytest

from hjbridge.config import HomeAssistantConfig
from hjbridge.sink.home_assistant import HomeAssistantSink, qualify_entity_id


def _sink(handler, **overrides) -> HomeAssistantSink:
    config = HomeAssistantConfig(host="ha.local", port=8123, token="abc123", **overrides)
    client = httpx.AsyncClient(base_url=config.base_url, transport=httpx.MockTransport(handler))
    return HomeAssistantSink(config, client=client)


def test_qualify_entity_id() -> None:
    assert qualify_entity_id("kitchen_light", "switch") == "switch.kitchen_light"
    assert qualify_entity_id("cover.curtain", "switch") == "cover.curtain"
    assert qualify_entity_id("kitchen_light", "") == "kitchen_light"


@pytest.mark.asyncio
async def test_push_state_posts_bearer_json() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"entity_id": "switch.kitchen_light", "state": "on"})

    sink = _sink(handler)
    assert await sink.push_state("kitchen_light", "on") is True

    [request] = seen
    assert request.method == "POST"
    assert str(request.url) == "http://ha.local:8123/api/states/switch.kitchen_light"
    assert request.headers["Authorization"] == "Bearer abc123"
    assert request.headers["Content-Type"] == "application/json"
    assert json.loads(request.content) == {"state": "on"}


@pytest.mark.asyncio
async def test_push_state_uses_configured_domain() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200)

    sink = _sink(handler, entity_domain="light")
    assert await sink.push_state("hall", "off") is True
    assert paths == ["/api/states/light.hall"]


@pytest.mark.asyncio
async def test_push_state_reports_rejection() -> None:
    sink = _sink(lambda request: httpx.Response(401, json={"message": "unauthorized"}))

    assert await sink.push_state("kitchen_light", "on") is False


@pytest.mark.asyncio
async def test_push_state_swallows_network_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    sink = _sink(handler)

    assert await sink.push_state("kitchen_light", "on") is False
