"""
HJ Gateway Session Engine

Persistent TCP session to the device gateway: framing, dispatch,
heartbeats and reconnect handling.
"""

from hjbridge.gateway.errors import GatewayError, GatewayNotConnectedError, GatewayTransportError
from hjbridge.gateway.protocol import FrameDecoder, Message, Opcode
from hjbridge.gateway.state import BridgeState, DeviceRegistry

__all__ = [
    "BridgeState",
    "DeviceRegistry",
    "FrameDecoder",
    "GatewayError",
    "GatewayNotConnectedError",
    "GatewayTransportError",
    "Message",
    "Opcode",
]
