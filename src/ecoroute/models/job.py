# src/ecoroute/models/job.py
"""SQLAlchemy model for durable background jobs."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, SmallInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ecoroute.db.session import Base
from ecoroute.db.time import utcnow

JOB_STATUS_PENDING = "pending"
JOB_STATUS_ACTIVE = "active"
JOB_STATUS_COMPLETED = "completed"
JOB_STATUS_FAILED = "failed"

QUEUE_EMAIL = "email"
QUEUE_NOTIFICATION = "notification"

BACKOFF_FIXED = "fixed"
BACKOFF_EXPONENTIAL = "exponential"


class QueuedJob(Base):
    """Unit of deferred work with a bounded retry budget."""

    __tablename__ = "queued_jobs"
    __table_args__ = (Index("ix_queued_jobs_queue_status_run_at", "queue", "status", "run_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    queue: Mapped[str] = mapped_column(String(50), nullable=False)
    job_type: Mapped[str] = mapped_column(String(50), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # 'pending', 'active', 'completed', 'failed'
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=JOB_STATUS_PENDING)
    attempts_made: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=3)
    backoff_type: Mapped[str] = mapped_column(String(20), nullable=False, default=BACKOFF_EXPONENTIAL)
    backoff_delay_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=2000)

    run_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
