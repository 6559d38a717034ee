from __future__ import annotations


class GatewayError(RuntimeError):
    """Base class for gateway session failures."""


class GatewayNotConnectedError(GatewayError):
    """Raised when a frame is sent while no session generation is active."""


class GatewayTransportError(GatewayError):
    """Raised when writing to the gateway socket fails.

    By the time this is raised the session has already been marked
    disconnected and the supervisor is backing off.
    """
