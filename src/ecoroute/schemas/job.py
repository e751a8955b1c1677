# src/ecoroute/schemas/job.py
"""Schemas for queue introspection."""

from pydantic import BaseModel


class QueueCounts(BaseModel):
    """Job counts of one queue, keyed by state."""

    pending: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
    delayed: int = 0
