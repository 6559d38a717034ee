from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from hjbridge.commands import CommandGateway


async def _arg_from(request: Request) -> str:
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid request")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Invalid request")
    arg = body.get("arg")
    if not isinstance(arg, str):
        raise HTTPException(status_code=400, detail="Invalid request")
    return arg


def build_device_router(*, commands: CommandGateway) -> APIRouter:
    """Create the switch/curtain routes that drive gateway devices.

    POST sends a SWITCH command and answers from the submitted token;
    GET answers from the last known token for the node.
    """

    router = APIRouter()

    @router.post("/switch/{node_id}")
    async def set_switch(node_id: str, request: Request) -> dict[str, bool]:
        arg = await _arg_from(request)
        await commands.send_command(node_id, arg)
        return {"is_active": arg == "ON"}

    @router.get("/switch/{node_id}")
    async def get_switch(node_id: str) -> dict[str, bool]:
        return {"is_active": await commands.read_state(node_id) == "ON"}

    @router.post("/curtain/{node_id}")
    async def set_curtain(node_id: str, request: Request) -> dict[str, bool]:
        arg = await _arg_from(request)
        await commands.send_command(node_id, arg)
        return {"is_open": arg == "OPEN"}

    @router.get("/curtain/{node_id}")
    async def get_curtain(node_id: str) -> dict[str, bool]:
        return {"is_open": await commands.read_state(node_id) == "OPEN"}

    return router
