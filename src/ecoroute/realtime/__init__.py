# src/ecoroute/realtime/__init__.py
"""Real-time presence, chat and notification delivery."""

from .gateway import RealtimeGateway, get_gateway
from .presence import ConnectedUser, Connection, PresenceRegistry

__all__ = [
    "ConnectedUser",
    "Connection",
    "PresenceRegistry",
    "RealtimeGateway",
    "get_gateway",
]
