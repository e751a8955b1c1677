"""Worker delivering queued transactional emails."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from ecoroute.models.job import QUEUE_EMAIL
from ecoroute.services import email_service
from ecoroute.services.email_service import RenderedEmail
from ecoroute.services.job_queue import ClaimedJob, JobQueue
from ecoroute.services.queue_service import (
    EMAIL_COLLECTION,
    EMAIL_CUSTOM,
    EMAIL_ROUTE,
    EMAIL_VERIFICATION,
    EMAIL_WELCOME,
)
from ecoroute.workers.base import JobWorker


EmailSender = Callable[[str, RenderedEmail], Awaitable[None]]


class EmailWorker(JobWorker):
    """Renders the template of each email job and hands it to SMTP.

    Delivery errors propagate so the job is retried; they never reach the
    request that enqueued the email.
    """

    queue_name = QUEUE_EMAIL

    def __init__(
        self,
        queue: JobQueue | None = None,
        sender: EmailSender | None = None,
        poll_interval: float | None = None,
    ) -> None:
        super().__init__(queue=queue, poll_interval=poll_interval)
        self.sender = sender or email_service.send_email
        for kind in (EMAIL_WELCOME, EMAIL_VERIFICATION, EMAIL_COLLECTION, EMAIL_ROUTE):
            self.register(kind, self._send_template)
        self.register(EMAIL_CUSTOM, self._send_custom)

    async def _send_template(self, job: ClaimedJob) -> None:
        payload = job.payload
        rendered = email_service.render_template(
            job.job_type,
            payload.get("name", ""),
            payload.get("data") or {},
        )
        await self.sender(payload.get("to", ""), rendered)

    async def _send_custom(self, job: ClaimedJob) -> None:
        data = job.payload.get("data") or {}
        rendered = RenderedEmail(
            subject=data.get("subject", ""),
            html=data.get("html", ""),
            text=data.get("text", ""),
        )
        await self.sender(job.payload.get("to", ""), rendered)
