"""Durable background job queue backed by the ``queued_jobs`` table.

Jobs are appended by request handlers and gateway events and consumed by
``ecoroute.workers`` one at a time. Delivery is at-least-once: a job that
raises is rescheduled with a backoff delay until its attempt budget is
exhausted, after which it is marked ``failed`` and logged. Failures never
propagate back to the caller of :meth:`JobQueue.enqueue`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from ecoroute.db.session import SessionLocal
from ecoroute.db.time import utcnow
from ecoroute.models import QueuedJob
from ecoroute.models.job import (
    BACKOFF_EXPONENTIAL,
    BACKOFF_FIXED,
    JOB_STATUS_ACTIVE,
    JOB_STATUS_COMPLETED,
    JOB_STATUS_FAILED,
    JOB_STATUS_PENDING,
    QUEUE_EMAIL,
    QUEUE_NOTIFICATION,
)
from ecoroute.schemas.job import QueueCounts

# Configure logger for this module
logger = logging.getLogger(__name__)

KNOWN_QUEUES = (QUEUE_EMAIL, QUEUE_NOTIFICATION)
DEFAULT_ATTEMPTS = 3
ERROR_TEXT_LIMIT = 2000


@dataclass(frozen=True)
class Backoff:
    """Delay policy applied before each retry."""

    type: str = BACKOFF_EXPONENTIAL
    delay_ms: int = 2000

    def __post_init__(self) -> None:
        if self.type not in (BACKOFF_FIXED, BACKOFF_EXPONENTIAL):
            raise ValueError(f"Unknown backoff type: {self.type}")
        if self.delay_ms < 0:
            raise ValueError("Backoff delay must not be negative")

    def delay_for(self, attempts_made: int) -> timedelta:
        """Return the wait before the retry following attempt number ``attempts_made``."""
        if self.type == BACKOFF_FIXED:
            return timedelta(milliseconds=self.delay_ms)
        return timedelta(milliseconds=self.delay_ms * 2 ** max(0, attempts_made - 1))


@dataclass(frozen=True)
class ClaimedJob:
    """Detached snapshot of a job handed to a worker."""

    id: int
    queue: str
    job_type: str
    payload: dict[str, Any]
    attempts_made: int
    max_attempts: int


class JobQueue:
    """Enqueue, claim and settle jobs.

    Every method opens its own short session so it can be called from a
    worker thread; each state change is a single commit.
    """

    def __init__(self, session_factory: Callable[[], Session] | None = None) -> None:
        self._session_factory = session_factory or SessionLocal

    def enqueue(
        self,
        queue: str,
        job_type: str,
        payload: dict[str, Any] | None = None,
        *,
        attempts: int = DEFAULT_ATTEMPTS,
        backoff: Backoff | None = None,
        delay_ms: int = 0,
    ) -> int:
        """Append a job and return its id without waiting for processing."""
        if attempts < 1:
            raise ValueError("A job needs at least one attempt")
        policy = backoff or Backoff()
        with self._session_factory() as db:
            job = QueuedJob(
                queue=queue,
                job_type=job_type,
                payload=dict(payload or {}),
                status=JOB_STATUS_PENDING,
                attempts_made=0,
                max_attempts=attempts,
                backoff_type=policy.type,
                backoff_delay_ms=policy.delay_ms,
                run_at=utcnow() + timedelta(milliseconds=delay_ms),
            )
            db.add(job)
            db.commit()
            db.refresh(job)
            logger.debug("Enqueued %s job %s on queue %s", job_type, job.id, queue)
            return job.id

    def claim_next(self, queue: str, now: datetime | None = None) -> ClaimedJob | None:
        """Mark the oldest due pending job of ``queue`` active and return it."""
        moment = now or utcnow()
        with self._session_factory() as db:
            job = (
                db.query(QueuedJob)
                .filter(
                    QueuedJob.queue == queue,
                    QueuedJob.status == JOB_STATUS_PENDING,
                    QueuedJob.run_at <= moment,
                )
                .order_by(QueuedJob.run_at, QueuedJob.id)
                .with_for_update(skip_locked=True)
                .first()
            )
            if job is None:
                return None

            job.status = JOB_STATUS_ACTIVE
            job.attempts_made += 1
            db.commit()
            return ClaimedJob(
                id=job.id,
                queue=job.queue,
                job_type=job.job_type,
                payload=dict(job.payload or {}),
                attempts_made=job.attempts_made,
                max_attempts=job.max_attempts,
            )

    def complete(self, job_id: int) -> None:
        """Settle a job as completed; it is never retried afterwards."""
        with self._session_factory() as db:
            job = db.get(QueuedJob, job_id)
            if job is None:
                return
            job.status = JOB_STATUS_COMPLETED
            job.finished_at = utcnow()
            db.commit()

    def fail(
        self,
        job_id: int,
        error: str,
        *,
        now: datetime | None = None,
        retry: bool = True,
    ) -> str:
        """Record a failed attempt and return the job's resulting status.

        The job goes back to ``pending`` after its backoff delay while
        attempts remain and ``retry`` is true; otherwise it is failed for good.
        """
        moment = now or utcnow()
        with self._session_factory() as db:
            job = db.get(QueuedJob, job_id)
            if job is None:
                return JOB_STATUS_FAILED

            job.last_error = error[:ERROR_TEXT_LIMIT]
            if retry and job.attempts_made < job.max_attempts:
                policy = Backoff(job.backoff_type, job.backoff_delay_ms)
                job.status = JOB_STATUS_PENDING
                job.run_at = moment + policy.delay_for(job.attempts_made)
                logger.warning(
                    "%s job %s attempt %d/%d failed, retrying at %s: %s",
                    job.job_type,
                    job.id,
                    job.attempts_made,
                    job.max_attempts,
                    job.run_at.isoformat(),
                    error,
                )
            else:
                job.status = JOB_STATUS_FAILED
                job.finished_at = moment
                logger.error(
                    "%s job %s on queue %s failed permanently after %d attempt(s): %s",
                    job.job_type,
                    job.id,
                    job.queue,
                    job.attempts_made,
                    error,
                )
            db.commit()
            return job.status

    def recover_stalled(self, queue: str | None = None) -> int:
        """Return jobs left ``active`` by a crashed worker to ``pending``."""
        with self._session_factory() as db:
            query = db.query(QueuedJob).filter(QueuedJob.status == JOB_STATUS_ACTIVE)
            if queue is not None:
                query = query.filter(QueuedJob.queue == queue)
            recovered = query.update(
                {QueuedJob.status: JOB_STATUS_PENDING},
                synchronize_session=False,
            )
            db.commit()
        if recovered:
            logger.warning("Recovered %d stalled job(s)", recovered)
        return int(recovered)

    def get(self, job_id: int) -> QueuedJob | None:
        """Return a job row, detached from its session."""
        with self._session_factory() as db:
            job = db.get(QueuedJob, job_id)
            if job is not None:
                db.expunge(job)
            return job

    def status(self, now: datetime | None = None) -> dict[str, QueueCounts]:
        """Return per-queue job counts.

        Pending jobs whose ``run_at`` lies in the future are reported as delayed.
        """
        moment = now or utcnow()
        result = {name: QueueCounts() for name in KNOWN_QUEUES}
        with self._session_factory() as db:
            rows = (
                db.query(QueuedJob.queue, QueuedJob.status, func.count(QueuedJob.id))
                .group_by(QueuedJob.queue, QueuedJob.status)
                .all()
            )
            delayed_rows = (
                db.query(QueuedJob.queue, func.count(QueuedJob.id))
                .filter(QueuedJob.status == JOB_STATUS_PENDING, QueuedJob.run_at > moment)
                .group_by(QueuedJob.queue)
                .all()
            )

        for queue, status, count in rows:
            counts = result.setdefault(queue, QueueCounts())
            setattr(counts, status, int(count))
        for queue, count in delayed_rows:
            counts = result[queue]
            counts.delayed = int(count)
            counts.pending -= int(count)
        return result


_job_queue: JobQueue | None = None


def get_job_queue() -> JobQueue:
    """Return the process-wide job queue."""
    global _job_queue
    if _job_queue is None:
        _job_queue = JobQueue()
    return _job_queue
