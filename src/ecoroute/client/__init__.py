"""Python client for the EcoRoute real-time channel."""

from .session import RealtimeSession

__all__ = ["RealtimeSession"]
