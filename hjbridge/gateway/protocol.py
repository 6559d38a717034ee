"""
Wire format of the HJ device gateway.

Every message is a JSON object wrapped as ``!<json>$``. There is no length
prefix and no escaping: framing relies on the JSON body never containing
a bare ``$``.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Union

from hjbridge.bridge_logging import get_logger

FRAME_START = b"!"
FRAME_END = b"$"

REQUESTER = "HJ_Server"
BROADCAST_NODE = "*"

log = get_logger("HJB.Protocol")


class Opcode(str, Enum):
    CCU_HB = "CCU_HB"
    SYNC_INFO = "SYNC_INFO"
    SWITCH = "SWITCH"
    LOGIN = "LOGIN"
    QUERY = "QUERY"

    @classmethod
    def lookup(cls, value: str) -> "Opcode | None":
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True, slots=True)
class TextArg:
    value: str


@dataclass(frozen=True, slots=True)
class ObjectArg:
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class OtherArg:
    """Any JSON value that is neither a string nor an object (numbers, lists, null)."""

    value: Any = None


Arg = Union[TextArg, ObjectArg, OtherArg]


def wrap_arg(value: Any) -> Arg:
    if isinstance(value, str):
        return TextArg(value)
    if isinstance(value, dict):
        return ObjectArg(dict(value))
    return OtherArg(value)


def unwrap_arg(arg: Arg) -> Any:
    if isinstance(arg, TextArg):
        return arg.value
    if isinstance(arg, ObjectArg):
        return arg.fields
    return arg.value


@dataclass(frozen=True, slots=True)
class Message:
    nodeid: str
    opcode: str
    arg: Arg = field(default_factory=OtherArg)
    requester: str = REQUESTER
    req_id: int | None = None
    status: str | None = None

    @property
    def known_opcode(self) -> Opcode | None:
        return Opcode.lookup(self.opcode)

    @property
    def text(self) -> str | None:
        return self.arg.value if isinstance(self.arg, TextArg) else None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "nodeid": self.nodeid,
            "opcode": self.opcode,
            "arg": unwrap_arg(self.arg),
            "requester": self.requester,
        }
        # reqId and status are omitted when empty.
        if self.req_id:
            payload["reqId"] = self.req_id
        if self.status:
            payload["status"] = self.status
        return payload

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Message":
        req_id = payload.get("reqId")
        if req_id is not None and (isinstance(req_id, bool) or not isinstance(req_id, int)):
            raise ValueError(f"reqId must be an integer, got {req_id!r}")
        status = payload.get("status")
        if status is not None and not isinstance(status, str):
            raise ValueError(f"status must be a string, got {status!r}")
        return cls(
            nodeid=str(payload.get("nodeid", "")),
            opcode=str(payload.get("opcode", "")),
            arg=wrap_arg(payload.get("arg")),
            requester=str(payload.get("requester", "")),
            req_id=req_id,
            status=status,
        )


def new_request_id() -> int:
    return int(time.time())


def encode_frame(message: Message) -> bytes:
    body = json.dumps(message.to_payload(), ensure_ascii=False, separators=(",", ":"))
    return FRAME_START + body.encode("utf-8") + FRAME_END


def decode_fragment(fragment: bytes) -> Message | None:
    """Parse one ``!<json>`` fragment (trailing ``$`` already removed)."""

    if not fragment.startswith(FRAME_START):
        return None
    try:
        payload = json.loads(fragment[len(FRAME_START):].decode("utf-8"))
        if not isinstance(payload, dict):
            return None
        return Message.from_payload(payload)
    except (UnicodeDecodeError, ValueError):
        return None


class FrameDecoder:
    """Incremental decoder: feed raw socket chunks, get complete messages back."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    @property
    def pending(self) -> bytes:
        return bytes(self._buffer)

    def feed(self, data: bytes) -> list[Message]:
        self._buffer.extend(data)
        return list(self._drain())

    def _drain(self) -> Iterator[Message]:
        while True:
            end = self._buffer.find(FRAME_END)
            if end < 0:
                return
            fragment = bytes(self._buffer[:end])
            del self._buffer[: end + 1]
            message = decode_fragment(fragment)
            if message is None:
                log.debug("HJB.Protocol.FrameDropped", extra={"fields": {"fragment": fragment[:200].decode("utf-8", "replace")}})
                continue
            yield message


def login_message(username: str, password: str, zkid: str) -> Message:
    # seq/device/version are always sent as empty strings.
    return Message(
        nodeid=BROADCAST_NODE,
        opcode=Opcode.LOGIN.value,
        arg=ObjectArg(
            {
                "username": username,
                "password": password,
                "zkid": zkid,
                "seq": "",
                "device": "",
                "version": "",
            }
        ),
    )


def heartbeat_message() -> Message:
    return Message(nodeid=BROADCAST_NODE, opcode=Opcode.CCU_HB.value, arg=TextArg(BROADCAST_NODE))


def query_message(node_id: str) -> Message:
    return Message(
        nodeid=node_id,
        opcode=Opcode.QUERY.value,
        arg=TextArg(BROADCAST_NODE),
        req_id=new_request_id(),
    )


def switch_message(node_id: str, raw_arg: str) -> Message:
    return Message(
        nodeid=node_id,
        opcode=Opcode.SWITCH.value,
        arg=TextArg(raw_arg),
        req_id=new_request_id(),
    )
