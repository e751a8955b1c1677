"""Polling worker that drains one queue of the durable job table."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from ecoroute.core.errors import UnknownJobTypeError
from ecoroute.core.settings import settings
from ecoroute.services.job_queue import ClaimedJob, JobQueue, get_job_queue

# Configure logger for this module
logger = logging.getLogger(__name__)

JobHandler = Callable[[ClaimedJob], Awaitable[Any]]


class JobWorker:
    """Consumes jobs of one queue, one at a time.

    Each claimed job is dispatched to the handler registered for its
    ``job_type``. A handler that returns settles the job as completed; one
    that raises consumes an attempt and the job is retried after its backoff
    or failed for good. Unknown job types fail immediately.
    """

    queue_name: str = ""

    def __init__(
        self,
        queue: JobQueue | None = None,
        handlers: Mapping[str, JobHandler] | None = None,
        poll_interval: float | None = None,
    ) -> None:
        self.queue = queue or get_job_queue()
        self.handlers: dict[str, JobHandler] = dict(handlers or {})
        self.poll_interval = max(
            0.05,
            float(poll_interval if poll_interval is not None else settings.queue_poll_interval_seconds),
        )
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    def register(self, job_type: str, handler: JobHandler) -> None:
        """Register ``handler`` for ``job_type``."""
        self.handlers[job_type] = handler

    async def start(self) -> None:
        """Start the background consume loop."""
        if self._task is None or self._task.done():
            await asyncio.to_thread(self.queue.recover_stalled, self.queue_name)
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the loop after the job in progress settles."""
        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                processed = await self.run_once()
            except SQLAlchemyError as e:
                logger.warning("%s worker could not reach the job store: %s", self.queue_name, e)
                processed = False

            if processed:
                continue
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

    async def run_once(self) -> bool:
        """Claim and process at most one due job; return whether one was found."""
        job = await asyncio.to_thread(self.queue.claim_next, self.queue_name)
        if job is None:
            return False

        await self.process(job)
        return True

    async def process(self, job: ClaimedJob) -> None:
        """Run the handler for ``job`` and settle its state."""
        logger.info(
            "Processing %s job %s (attempt %d/%d)",
            job.job_type,
            job.id,
            job.attempts_made,
            job.max_attempts,
        )
        handler = self.handlers.get(job.job_type)
        try:
            if handler is None:
                raise UnknownJobTypeError(f"No handler for {self.queue_name} job type {job.job_type!r}")
            await handler(job)
        except UnknownJobTypeError as e:
            await asyncio.to_thread(self.queue.fail, job.id, str(e), retry=False)
            return
        except Exception as e:  # noqa: BLE001 - any handler failure consumes an attempt
            await asyncio.to_thread(self.queue.fail, job.id, f"{type(e).__name__}: {e}")
            return

        await asyncio.to_thread(self.queue.complete, job.id)
        logger.info("%s job %s completed", job.job_type, job.id)
