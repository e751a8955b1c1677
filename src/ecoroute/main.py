# src/ecoroute/main.py
"""Main entry point for the EcoRoute real-time API."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from ecoroute.api.v1 import (
    messages_router,
    notifications_router,
    realtime_router,
    system_router,
)
from ecoroute.core.settings import settings
from ecoroute.realtime.gateway import get_gateway
from ecoroute.workers import EmailWorker, JobWorker, NotificationWorker

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="EcoRoute API",
    description="Presence, chat and notification delivery for reverse-logistics cooperatives",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(realtime_router, prefix="/api/v1")
app.include_router(notifications_router, prefix="/api/v1")
app.include_router(messages_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    app.state.workers = []
    if not settings.queue_workers_enabled:
        return

    gateway = get_gateway()
    workers: list[JobWorker] = [
        EmailWorker(),
        NotificationWorker(on_created=gateway.notify_user),
    ]
    for worker in workers:
        await worker.start()
    app.state.workers = workers
    logger.info("Started %d queue worker(s)", len(workers))


@app.on_event("shutdown")
async def on_shutdown() -> None:
    workers: list[JobWorker] = getattr(app.state, "workers", [])
    for worker in workers:
        await worker.stop()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "EcoRoute API",
        "version": settings.app_version,
        "realtime": "/api/v1/ws",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("ecoroute.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
