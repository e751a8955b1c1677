"""Worker persisting queued notifications."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from sqlalchemy.orm import Session

from ecoroute.core.settings import settings
from ecoroute.db.session import SessionLocal
from ecoroute.models.job import QUEUE_NOTIFICATION
from ecoroute.schemas.notification import NotificationCreate, NotificationResponse
from ecoroute.services import notification_service
from ecoroute.services.job_queue import ClaimedJob, JobQueue
from ecoroute.services.queue_service import NOTIFICATION_CREATE
from ecoroute.workers.base import JobWorker

logger = logging.getLogger(__name__)

# Receives (user_id, wire payload) for each stored notification meant to be pushed.
NotificationCallback = Callable[[int, dict[str, Any]], Awaitable[Any]]


class NotificationWorker(JobWorker):
    """Stores each queued notification through the shared creation path.

    When the job asks for it, the stored record is handed to ``on_created``
    so the gateway can push it to the recipient if they are online.
    Between jobs the worker also hard-deletes expired notifications, at most
    once per ``purge_interval`` seconds.
    """

    queue_name = QUEUE_NOTIFICATION

    def __init__(
        self,
        queue: JobQueue | None = None,
        session_factory: Callable[[], Session] | None = None,
        on_created: NotificationCallback | None = None,
        poll_interval: float | None = None,
        purge_interval: float | None = None,
    ) -> None:
        super().__init__(queue=queue, poll_interval=poll_interval)
        self._session_factory = session_factory or SessionLocal
        self.on_created = on_created
        self.purge_interval = (
            purge_interval if purge_interval is not None else settings.notification_purge_interval_seconds
        )
        self._next_purge = 0.0
        self.register(NOTIFICATION_CREATE, self._create)

    async def run_once(self) -> bool:
        await self.purge_expired_if_due()
        return await super().run_once()

    def _purge(self) -> int:
        with self._session_factory() as db:
            return notification_service.purge_expired(db)

    async def purge_expired_if_due(self) -> int:
        """Remove expired notifications when the purge interval has elapsed."""
        now = time.monotonic()
        if now < self._next_purge:
            return 0
        self._next_purge = now + self.purge_interval
        removed = await asyncio.to_thread(self._purge)
        if removed:
            logger.info("Purged %d expired notification(s)", removed)
        return removed

    def _store(self, data: NotificationCreate) -> dict[str, Any]:
        with self._session_factory() as db:
            notification = notification_service.create_notification(db, data)
            return NotificationResponse.model_validate(notification).to_wire()

    async def _create(self, job: ClaimedJob) -> None:
        payload = job.payload
        data = NotificationCreate(
            user_id=payload["userId"],
            type=payload.get("type", "system"),
            title=payload["title"],
            message=payload["message"],
            data=payload.get("data") or {},
            **(payload.get("extra") or {}),
        )
        record = await asyncio.to_thread(self._store, data)
        logger.info("Notification %s (%s) saved for user %s", record["id"], data.type, data.user_id)

        if self.on_created is None or not payload.get("push", True):
            return
        # The row is stored; a failed live push must not trigger a duplicate on retry.
        try:
            await self.on_created(data.user_id, record)
        except Exception as e:  # noqa: BLE001
            logger.warning("Live push of notification %s failed: %s", record["id"], e)
