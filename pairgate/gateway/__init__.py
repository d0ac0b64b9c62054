"""HTTP gateway for device pairing."""

from pairgate.gateway.server import GatewayServer

__all__ = ["GatewayServer"]
