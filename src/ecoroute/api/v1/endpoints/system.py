"""Operational endpoints for the EcoRoute API."""

from __future__ import annotations

import asyncio
from typing import Annotated, Any

from fastapi import APIRouter, Depends

from ecoroute.core.settings import settings
from ecoroute.realtime.gateway import RealtimeGateway
from ecoroute.services.job_queue import JobQueue, get_job_queue

from .realtime import get_gateway_dep

router = APIRouter(prefix="/system", tags=["system"])


def get_job_queue_dep() -> JobQueue:
    """Return the shared job queue."""
    return get_job_queue()


JobQueueDep = Annotated[JobQueue, Depends(get_job_queue_dep)]
GatewayDep = Annotated[RealtimeGateway, Depends(get_gateway_dep)]


@router.get("/queues")
async def get_queue_status(queue: JobQueueDep) -> dict[str, dict[str, int]]:
    """Return pending/active/completed/failed/delayed job counts per queue.

    Args:
        queue: Job queue to inspect

    Returns:
        Mapping of queue name to its job counts
    """
    counts = await asyncio.to_thread(queue.status)
    return {name: value.model_dump() for name, value in counts.items()}


@router.get("/presence")
async def get_presence(gateway: GatewayDep) -> dict[str, Any]:
    """Return how many users hold a live connection on this process."""
    return {"online": gateway.online_count()}


@router.get("/config")
async def get_public_config() -> dict[str, Any]:
    """Return a sanitized snapshot of public runtime configuration.

    Excludes secrets, SMTP credentials and connection strings.
    """
    return {
        "app": {
            "name": settings.app_name,
            "version": settings.app_version,
            "debug": settings.debug,
        },
        "realtime": {
            "ping_interval_seconds": settings.ws_ping_interval_seconds,
            "ping_timeout_seconds": settings.ws_ping_timeout_seconds,
            "history_limit": settings.chat_history_limit,
            "default_room": settings.chat_default_room,
        },
        "queues": {
            "workers_enabled": settings.queue_workers_enabled,
            "email_attempts": settings.email_job_attempts,
            "notification_attempts": settings.notification_job_attempts,
        },
    }
