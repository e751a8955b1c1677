# src/ecoroute/models/__init__.py
"""SQLAlchemy models for the EcoRoute real-time core."""

from .chat_message import ChatMessage
from .job import QueuedJob
from .notification import Notification
from .user import User

__all__ = [
    "ChatMessage",
    "Notification",
    "QueuedJob",
    "User",
]
