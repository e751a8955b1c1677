# src/ecoroute/workers/__init__.py
"""Background workers consuming the durable job queue."""

from .base import JobWorker
from .email import EmailWorker
from .notification import NotificationWorker

__all__ = ["JobWorker", "EmailWorker", "NotificationWorker"]
