# src/ecoroute/schemas/__init__.py
"""
Pydantic schemas for API and real-time payloads.

These schemas define the structure of wire data for serialization and validation.
"""

from .chat import ChatMessageResponse, SendMessagePayload, TypingPayload
from .job import QueueCounts
from .notification import BroadcastPayload, NotificationCreate, NotificationResponse
from .user import OnlineUser

__all__ = [
    "BroadcastPayload",
    "ChatMessageResponse",
    "NotificationCreate",
    "NotificationResponse",
    "OnlineUser",
    "QueueCounts",
    "SendMessagePayload",
    "TypingPayload",
]
