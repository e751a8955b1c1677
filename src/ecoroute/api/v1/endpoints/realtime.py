# src/ecoroute/api/v1/endpoints/realtime.py
"""WebSocket transport for the real-time gateway."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from ecoroute.core.errors import AdmissionError
from ecoroute.core.settings import settings
from ecoroute.db.time import utcnow
from ecoroute.realtime.connection import WebSocketConnection
from ecoroute.realtime.gateway import RealtimeGateway, get_gateway

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


def get_gateway_dep() -> RealtimeGateway:
    """Return the shared real-time gateway."""
    return get_gateway()


GatewayDep = Annotated[RealtimeGateway, Depends(get_gateway_dep)]


def _handshake_token(websocket: WebSocket) -> str | None:
    token = websocket.query_params.get("token")
    if token:
        return token
    header = websocket.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


def _frame_text(message: dict[str, Any]) -> str | None:
    """Return the payload of a received frame; binary frames must be UTF-8."""
    if message["type"] == "websocket.disconnect":
        code = message.get("code", status.WS_1000_NORMAL_CLOSURE)
        raise WebSocketDisconnect(code, message.get("reason"))
    if message.get("text") is not None:
        return message["text"]
    try:
        return (message.get("bytes") or b"").decode("utf-8")
    except UnicodeDecodeError:
        return None


def _parse_frame(raw: str) -> tuple[str, Any] | None:
    try:
        frame = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
        return None
    return frame["event"], frame.get("data")


async def _heartbeat(connection: WebSocketConnection, interval: float) -> None:
    try:
        while True:
            await asyncio.sleep(interval)
            await connection.send("ping", {"ts": utcnow().isoformat()})
    except Exception as e:  # noqa: BLE001 - the receive loop notices the closed socket
        logger.debug("Heartbeat for %s stopped: %s", connection.id, e)


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, gateway: GatewayDep) -> None:
    """Admit the client, then feed its events to the gateway until it leaves.

    The credential is taken from the ``token`` query parameter or an
    ``Authorization: Bearer`` header. Rejected handshakes are closed before
    ``accept`` so no handler ever runs for them. A client that stays silent
    (no events, no ``pong``) past the heartbeat timeout is disconnected.
    """
    try:
        principal = await gateway.admit(_handshake_token(websocket))
    except AdmissionError as e:
        logger.info("Rejected real-time connection: %s", e)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=str(e))
        return

    await websocket.accept()
    connection = WebSocketConnection(websocket)
    await gateway.connect(connection, principal)
    heartbeat = asyncio.create_task(_heartbeat(connection, settings.ws_ping_interval_seconds))
    timed_out = False
    try:
        while True:
            try:
                message = await asyncio.wait_for(
                    websocket.receive(),
                    timeout=settings.ws_ping_timeout_seconds,
                )
            except asyncio.TimeoutError:
                logger.info("Connection %s missed its heartbeat window", connection.id)
                timed_out = True
                break

            raw = _frame_text(message)
            parsed = _parse_frame(raw) if raw is not None else None
            if parsed is None:
                logger.debug("Ignoring malformed frame from %s", connection.id)
                continue
            event, data = parsed
            if event == "pong":
                continue
            await gateway.handle(connection, event, data)
    except WebSocketDisconnect:
        pass
    finally:
        heartbeat.cancel()
        await gateway.disconnect(connection)

    if timed_out:
        await websocket.close(code=status.WS_1001_GOING_AWAY)
