# src/ecoroute/services/__init__.py
"""Business logic services for the EcoRoute real-time core."""

from .job_queue import Backoff, JobQueue
from .queue_service import QueueService

__all__ = [
    "Backoff",
    "JobQueue",
    "QueueService",
]
